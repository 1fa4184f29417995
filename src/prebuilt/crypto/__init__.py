"""Prebuilt cryptographic layer.

This module provides the trust boundary between an index and the local
machine:
- Minisign (Ed25519) public keys and signatures over index documents
- An immutable trust store of keys per index identity
- A verification policy with an ordered hash algorithm priority list
- The Verifier that applies both to documents and archive bytes
"""

from prebuilt.crypto import keys
from prebuilt.crypto import signing
from prebuilt.crypto.keys import MinisignPublicKey
from prebuilt.crypto.policy import DEFAULT_HASH_PRIORITY, VerificationPolicy
from prebuilt.crypto.trust import TrustStore
from prebuilt.crypto.verifier import Verifier, verify_blob

__all__ = [
    "keys",
    "signing",
    "DEFAULT_HASH_PRIORITY",
    "MinisignPublicKey",
    "TrustStore",
    "VerificationPolicy",
    "Verifier",
    "verify_blob",
]
