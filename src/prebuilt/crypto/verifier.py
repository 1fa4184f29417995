"""Signature and hash verification of index content.

``verify_signature`` and ``verify_blob`` answer yes/no. The ``require_*``
methods turn a "no" into a VerificationError and are what the pipeline
calls; each is a no-op only when its kind of check is switched off by policy.
"""

from __future__ import annotations

import hmac

from prebuilt.crypto.policy import VerificationPolicy
from prebuilt.crypto.signing import parse_signature, verify_signature as verify_minisign
from prebuilt.crypto.trust import TrustStore
from prebuilt.errors import VerificationError
from prebuilt.models.entities import Manifest
from prebuilt.models.enums import SignatureScheme
from prebuilt.observability import get_logger

logger = get_logger(__name__)


def digest_matches(expected_hex: str, actual_hex: str) -> bool:
    """Constant-time comparison of two hex digests."""
    return hmac.compare_digest(expected_hex.strip().lower().encode(), actual_hex.lower().encode())


def verify_blob(
    blob: bytes, relative_path: str, manifest: Manifest, policy: VerificationPolicy
) -> bool:
    """True iff ``blob`` matches the manifest entry for ``relative_path``.

    Only the first policy algorithm present in the entry is checked. No
    entry, or no algorithm shared between policy and entry, is False.
    """
    digests = manifest.digests_for(relative_path)
    algorithm = policy.first_shared(digests)
    if algorithm is None:
        return False
    return digest_matches(digests[algorithm.value], algorithm.hexdigest(blob))


class Verifier:
    """Checks index documents and blobs against a trust store and policy.

    Both collaborators are immutable and shared across every package of a
    run; the verifier itself holds no per-package state.
    """

    def __init__(self, trust_store: TrustStore, policy: VerificationPolicy) -> None:
        self.trust_store = trust_store
        self.policy = policy

    @property
    def checks_hashes(self) -> bool:
        return self.policy.checks_hashes

    def verify_signature(self, document: bytes, signature: str | None, identity: str) -> bool:
        """True iff any trusted key for ``identity`` validates ``signature``.

        Always True for the ``none`` scheme.
        """
        if self.policy.signature is SignatureScheme.NONE:
            return True
        if not signature:
            return False
        try:
            parsed = parse_signature(signature)
        except ValueError as e:
            logger.warning("prebuilt.verify.signature_malformed", identity=identity, error=str(e))
            return False
        return any(
            verify_minisign(document, parsed, key, allow_legacy=self.policy.allow_legacy_signatures)
            for key in self.trust_store.keys_for(identity)
        )

    def verify_blob(self, blob: bytes, relative_path: str, manifest: Manifest) -> bool:
        return verify_blob(blob, relative_path, manifest, self.policy)

    def require_signature(
        self, document: bytes, signature: str | None, identity: str, subject: str
    ) -> bool:
        """Raise VerificationError unless the signature validates.

        Returns:
            True if a signature was checked, False if signature checks are off.
        """
        if not self.policy.requires_signatures:
            return False
        if not self.verify_signature(document, signature, identity):
            raise VerificationError(
                "signature",
                subject,
                "no trusted key for this index validates the signature",
                details={"identity": identity},
            )
        logger.debug("prebuilt.verify.signature_ok", subject=subject, identity=identity)
        return True

    def require_blob(self, blob: bytes, relative_path: str, manifest: Manifest) -> bool:
        """Raise VerificationError unless ``blob`` matches its manifest entry.

        Returns:
            True if a digest was checked, False if hash checks are off.
        """
        if not self.policy.checks_hashes:
            return False
        digests = manifest.digests_for(relative_path)
        algorithm = self.policy.first_shared(digests)
        if algorithm is None:
            raise VerificationError(
                "hash",
                relative_path,
                "no hash algorithm shared between policy and manifest",
                details={
                    "policy": [a.value for a in self.policy.hashes],
                    "manifest": sorted(digests),
                },
            )
        if not digest_matches(digests[algorithm.value], algorithm.hexdigest(blob)):
            raise VerificationError(
                "hash",
                relative_path,
                f"{algorithm.value} digest mismatch",
                details={"algorithm": algorithm.value},
            )
        logger.debug("prebuilt.verify.hash_ok", subject=relative_path, algorithm=algorithm.value)
        return True

    def require_digest(
        self, hexdigest: str, algorithm_name: str, relative_path: str, manifest: Manifest
    ) -> None:
        """Check an already computed digest (streamed archive members)."""
        expected = manifest.digests_for(relative_path).get(algorithm_name)
        if expected is None or not digest_matches(expected, hexdigest):
            raise VerificationError(
                "hash",
                relative_path,
                f"{algorithm_name} digest mismatch",
                details={"algorithm": algorithm_name},
            )
