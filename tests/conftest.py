"""Shared pytest fixtures for prebuilt tests."""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from prebuilt.crypto.policy import VerificationPolicy
from prebuilt.crypto.trust import TrustStore
from prebuilt.crypto.verifier import Verifier
from prebuilt.index.client import IndexClient
from prebuilt.index.layout import IndexLocation
from prebuilt.observability import clear_context
from tests.factories import INDEX_URL, TARGET, FakeIndex, Signer


@pytest.fixture(autouse=True)
def _isolate_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory
) -> Iterator[None]:
    """Keep the user's config file and PREBUILT_* variables out of tests."""
    for name in list(os.environ):
        if name.startswith("PREBUILT_") or name in ("FORCE_COLOR", "NO_COLOR"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path_factory.mktemp("xdg")))
    yield
    clear_context()


@pytest.fixture
def signer() -> Signer:
    return Signer.generate()


@pytest.fixture
def location() -> IndexLocation:
    return IndexLocation.parse(INDEX_URL)


@pytest.fixture
def fake_index(location: IndexLocation, signer: Signer) -> FakeIndex:
    return FakeIndex(location=location, signer=signer)


@pytest.fixture
def trust_store(location: IndexLocation, signer: Signer) -> TrustStore:
    return TrustStore().with_key(location.identity, signer.public_key)


@pytest.fixture
def verifier(trust_store: TrustStore) -> Verifier:
    return Verifier(trust_store, VerificationPolicy())


@pytest.fixture
def client(fake_index: FakeIndex) -> Iterator[IndexClient]:
    with IndexClient(fake_index.location, TARGET, transport=fake_index.transport) as c:
        yield c
