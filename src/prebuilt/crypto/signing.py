"""Minisign signatures over index documents (Ed25519).

Signature file layout::

    untrusted comment: <free text>
    base64(alg(2) + key_id(8) + ed25519_signature(64))
    trusted comment: <free text>
    base64(global_signature(64))

``alg`` is ``ED`` when the signed message is the BLAKE2b-512 digest of the
document and the legacy ``Ed`` when the document itself was signed. The
global signature covers ``ed25519_signature + trusted_comment`` so the
trusted comment cannot be swapped.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from prebuilt.crypto.keys import KEY_ID_LENGTH, UNTRUSTED_COMMENT_PREFIX, MinisignPublicKey

PREHASHED_ALGORITHM = b"ED"
LEGACY_ALGORITHM = b"Ed"
SIGNATURE_LENGTH = 64
TRUSTED_COMMENT_PREFIX = "trusted comment: "


@dataclass(frozen=True)
class MinisignSignature:
    algorithm: bytes
    key_id: bytes
    signature: bytes
    trusted_comment: bytes
    global_signature: bytes


def _b64(value: str, what: str) -> bytes:
    try:
        return base64.b64decode(value.strip(), validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 in {what}: {e}") from e


def parse_signature(text: str) -> MinisignSignature:
    """Parse minisign signature text. Raises ValueError if malformed."""
    lines = text.strip("\n").splitlines()
    if len(lines) < 4:
        raise ValueError(f"Signature must have 4 lines, got {len(lines)}")
    if not lines[0].lower().startswith(UNTRUSTED_COMMENT_PREFIX):
        raise ValueError("Signature is missing its untrusted comment line")
    if not lines[2].startswith(TRUSTED_COMMENT_PREFIX):
        raise ValueError("Signature is missing its trusted comment line")

    blob = _b64(lines[1], "signature")
    expected = 2 + KEY_ID_LENGTH + SIGNATURE_LENGTH
    if len(blob) != expected:
        raise ValueError(f"Signature must be {expected} bytes, got {len(blob)}")
    global_signature = _b64(lines[3], "global signature")
    if len(global_signature) != SIGNATURE_LENGTH:
        raise ValueError(
            f"Global signature must be {SIGNATURE_LENGTH} bytes, got {len(global_signature)}"
        )
    return MinisignSignature(
        algorithm=blob[:2],
        key_id=blob[2 : 2 + KEY_ID_LENGTH],
        signature=blob[2 + KEY_ID_LENGTH :],
        trusted_comment=lines[2][len(TRUSTED_COMMENT_PREFIX) :].encode("utf-8"),
        global_signature=global_signature,
    )


def _prehash(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=64).digest()


def verify_signature(
    data: bytes,
    signature: MinisignSignature,
    public_key: MinisignPublicKey,
    allow_legacy: bool = False,
) -> bool:
    """True iff ``signature`` was made over ``data`` by ``public_key``."""
    if signature.key_id != public_key.key_id:
        return False
    if signature.algorithm == PREHASHED_ALGORITHM:
        message = _prehash(data)
    elif signature.algorithm == LEGACY_ALGORITHM and allow_legacy:
        message = data
    else:
        return False
    try:
        public_key.key.verify(signature.signature, message)
        public_key.key.verify(
            signature.global_signature, signature.signature + signature.trusted_comment
        )
    except InvalidSignature:
        return False
    return True


def sign_document(
    data: bytes,
    private_key: Ed25519PrivateKey,
    key_id: bytes,
    trusted_comment: str = "",
    untrusted_comment: str = "signature from prebuilt secret key",
) -> str:
    """Produce prehashed minisign signature text for ``data``."""
    if len(key_id) != KEY_ID_LENGTH:
        raise ValueError(f"Key id must be {KEY_ID_LENGTH} bytes, got {len(key_id)}")
    raw_signature = private_key.sign(_prehash(data))
    comment = trusted_comment.encode("utf-8")
    global_signature = private_key.sign(raw_signature + comment)
    blob = base64.b64encode(PREHASHED_ALGORITHM + key_id + raw_signature).decode("ascii")
    return "\n".join(
        [
            f"untrusted comment: {untrusted_comment}",
            blob,
            f"{TRUSTED_COMMENT_PREFIX}{trusted_comment}",
            base64.b64encode(global_signature).decode("ascii"),
            "",
        ]
    )
