"""Trust store: which public keys may sign an index's documents.

An index is named by its normalized identity (see
``prebuilt.index.layout.IndexLocation.identity``). The store maps each
identity to an ordered, de-duplicated tuple of keys. It is immutable:
``with_key`` returns a new store, and adding keys for an identity never
removes the keys it already had.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from prebuilt.crypto.keys import MinisignPublicKey, load_public_key_from_base64


@dataclass(frozen=True)
class TrustStore:
    """Immutable mapping from index identity to trusted minisign keys.

    Example:
        >>> from prebuilt.crypto.keys import generate_keypair
        >>> _, key = generate_keypair()
        >>> store = TrustStore().with_key("gh-pub:github.com/acme/index", key)
        >>> store.with_key("gh-pub:github.com/acme/index", key) is store
        True
    """

    _keys: Mapping[str, tuple[MinisignPublicKey, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def with_key(self, identity: str, key: MinisignPublicKey) -> TrustStore:
        existing = self._keys.get(identity, ())
        if key in existing:
            return self
        updated = dict(self._keys)
        updated[identity] = (*existing, key)
        return TrustStore(MappingProxyType(updated))

    def with_keys(self, identity: str, keys: Iterable[MinisignPublicKey]) -> TrustStore:
        store = self
        for key in keys:
            store = store.with_key(identity, key)
        return store

    def merge(self, other: TrustStore) -> TrustStore:
        store = self
        for identity, keys in other._keys.items():
            store = store.with_keys(identity, keys)
        return store

    def keys_for(self, identity: str) -> tuple[MinisignPublicKey, ...]:
        return self._keys.get(identity, ())

    def has_keys(self, identity: str) -> bool:
        return bool(self._keys.get(identity))

    @property
    def identities(self) -> tuple[str, ...]:
        return tuple(self._keys)

    @classmethod
    def from_seeds(cls, seeds: Iterable[tuple[str, str]]) -> TrustStore:
        """Build from ``(identity, base64 key)`` pairs. Raises ValueError on a bad key."""
        store = cls()
        for identity, encoded in seeds:
            store = store.with_key(identity, load_public_key_from_base64(encoded))
        return store
