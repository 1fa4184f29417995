"""Minisign public keys over Ed25519.

A minisign public key is base64 of ``b"Ed" + key_id(8) + ed25519_key(32)``,
optionally preceded by an ``untrusted comment:`` line when read from a
``.pub`` file.
"""

from __future__ import annotations

import base64
import binascii
import os
from dataclasses import dataclass, field
from importlib import resources

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

KEY_ALGORITHM = b"Ed"
KEY_ID_LENGTH = 8
ED25519_KEY_LENGTH = 32
PUBLIC_KEY_LENGTH = len(KEY_ALGORITHM) + KEY_ID_LENGTH + ED25519_KEY_LENGTH
UNTRUSTED_COMMENT_PREFIX = "untrusted comment:"

# Public key of the default index, shipped with the package
BUNDLED_KEY_RESOURCE = "cargo-prebuilt-index.pub"


@dataclass(frozen=True)
class MinisignPublicKey:
    """Ed25519 verifying key plus the 8-byte key id minisign binds signatures to."""

    key_id: bytes
    key: Ed25519PublicKey = field(compare=False)
    raw: bytes = field(repr=False)

    @property
    def key_id_hex(self) -> str:
        # minisign prints key ids little-endian
        return self.key_id[::-1].hex().upper()


def _strip_comments(text: str) -> str:
    lines = [line.strip() for line in text.strip().splitlines() if line.strip()]
    lines = [line for line in lines if not line.lower().startswith(UNTRUSTED_COMMENT_PREFIX)]
    if len(lines) != 1:
        raise ValueError("Minisign public key must be a single base64 line")
    return lines[0]


def load_public_key_from_base64(text: str) -> MinisignPublicKey:
    """From base64 minisign key text. Raises ValueError if malformed."""
    encoded = _strip_comments(text)
    try:
        raw = base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 in public key: {e}") from e
    if len(raw) != PUBLIC_KEY_LENGTH:
        raise ValueError(f"Minisign public key must be {PUBLIC_KEY_LENGTH} bytes, got {len(raw)}")
    if raw[:2] != KEY_ALGORITHM:
        raise ValueError(f"Unsupported public key algorithm: {raw[:2]!r}")
    key_id = raw[2 : 2 + KEY_ID_LENGTH]
    key = Ed25519PublicKey.from_public_bytes(raw[2 + KEY_ID_LENGTH :])
    return MinisignPublicKey(key_id=key_id, key=key, raw=raw)


def public_key_to_base64(key: MinisignPublicKey) -> str:
    return base64.b64encode(key.raw).decode("ascii")


def public_key_from_private(private_key: Ed25519PrivateKey, key_id: bytes) -> MinisignPublicKey:
    if len(key_id) != KEY_ID_LENGTH:
        raise ValueError(f"Key id must be {KEY_ID_LENGTH} bytes, got {len(key_id)}")
    public_key = private_key.public_key()
    raw_key = public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return MinisignPublicKey(key_id=key_id, key=public_key, raw=KEY_ALGORITHM + key_id + raw_key)


def generate_keypair() -> tuple[Ed25519PrivateKey, MinisignPublicKey]:
    private_key = Ed25519PrivateKey.generate()
    return (private_key, public_key_from_private(private_key, os.urandom(KEY_ID_LENGTH)))


def load_bundled_key() -> str:
    """Base64 text of the default index key shipped in ``prebuilt/keys``."""
    return (
        resources.files("prebuilt.keys").joinpath(BUNDLED_KEY_RESOURCE).read_text(encoding="utf-8")
    )
