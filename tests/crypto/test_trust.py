"""Unit tests for the trust store."""

import pytest

from prebuilt.crypto.keys import generate_keypair, public_key_to_base64
from prebuilt.crypto.trust import TrustStore

IDENTITY = "gh-pub:github.com/acme/index"
OTHER = "cuhttp:prebuilt.example.com/index"


def test_empty_store_has_no_keys() -> None:
    store = TrustStore()
    assert store.keys_for(IDENTITY) == ()
    assert not store.has_keys(IDENTITY)
    assert store.identities == ()


def test_with_key_returns_new_store() -> None:
    _, key = generate_keypair()
    empty = TrustStore()
    store = empty.with_key(IDENTITY, key)
    assert store.keys_for(IDENTITY) == (key,)
    assert empty.keys_for(IDENTITY) == ()


def test_adding_a_key_keeps_existing_keys() -> None:
    _, first = generate_keypair()
    _, second = generate_keypair()
    store = TrustStore().with_key(IDENTITY, first).with_key(IDENTITY, second)
    assert store.keys_for(IDENTITY) == (first, second)


def test_duplicate_keys_are_ignored() -> None:
    _, key = generate_keypair()
    store = TrustStore().with_key(IDENTITY, key)
    assert store.with_key(IDENTITY, key) is store


def test_keys_are_scoped_to_identity() -> None:
    _, key = generate_keypair()
    store = TrustStore().with_key(IDENTITY, key)
    assert store.has_keys(IDENTITY)
    assert not store.has_keys(OTHER)


def test_merge_is_union() -> None:
    _, a = generate_keypair()
    _, b = generate_keypair()
    _, c = generate_keypair()
    left = TrustStore().with_key(IDENTITY, a)
    right = TrustStore().with_keys(IDENTITY, [a, b]).with_key(OTHER, c)
    merged = left.merge(right)
    assert merged.keys_for(IDENTITY) == (a, b)
    assert merged.keys_for(OTHER) == (c,)
    assert set(merged.identities) == {IDENTITY, OTHER}


def test_from_seeds() -> None:
    _, key = generate_keypair()
    store = TrustStore.from_seeds([(IDENTITY, public_key_to_base64(key))])
    assert store.keys_for(IDENTITY) == (key,)


def test_from_seeds_rejects_bad_key() -> None:
    with pytest.raises(ValueError):
        TrustStore.from_seeds([(IDENTITY, "garbage")])
