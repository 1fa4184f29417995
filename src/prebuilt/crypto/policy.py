"""Verification policy: hash algorithm priority and signature scheme.

The manifest decides which algorithms are present; the policy decides
which of those is used. ``first_shared`` walks the policy's priority list
and returns the first algorithm the manifest entry provides, so the
strongest acceptable algorithm is always the one checked.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from prebuilt.models.enums import HashAlgorithm, SignatureScheme

DEFAULT_HASH_PRIORITY: tuple[HashAlgorithm, ...] = (
    HashAlgorithm.SHA3_512,
    HashAlgorithm.SHA3_256,
    HashAlgorithm.SHA512,
    HashAlgorithm.SHA256,
)

DISABLED = "none"


@dataclass(frozen=True)
class VerificationPolicy:
    """Ordered hash algorithms plus the index signature scheme.

    Hash checks and signature checks are switched independently: the
    ``none`` hash setting skips digests but still requires signed documents,
    and the ``none`` signature scheme skips signatures but still checks
    digests. Only ``enabled=False`` (``--no-verify``) turns both off.

    Attributes:
        hashes: Algorithms in priority order, strongest first. Empty when
            hash checks are off.
        signature: Scheme for info.json / hashes.json signatures.
        enabled: False when the user explicitly disabled verification.
        verify_hashes: False when hash checks alone are switched off.
        allow_legacy_signatures: Accept minisign signatures over the raw
            document instead of its BLAKE2b-512 digest.
    """

    hashes: tuple[HashAlgorithm, ...] = DEFAULT_HASH_PRIORITY
    signature: SignatureScheme = SignatureScheme.MINISIGN
    enabled: bool = True
    verify_hashes: bool = True
    allow_legacy_signatures: bool = False

    def __post_init__(self) -> None:
        if self.checks_hashes and not self.hashes:
            raise ValueError("Verification policy needs at least one hash algorithm")
        if len(set(self.hashes)) != len(self.hashes):
            raise ValueError("Verification policy lists a hash algorithm twice")

    @classmethod
    def disabled(cls) -> VerificationPolicy:
        return cls(
            hashes=(), signature=SignatureScheme.NONE, enabled=False, verify_hashes=False
        )

    @classmethod
    def from_names(
        cls,
        hashes: Iterable[str] | None = None,
        signature: str | None = None,
        no_verify: bool = False,
    ) -> VerificationPolicy:
        """Build from configuration strings.

        Only ``no_verify`` yields the disabled policy. ``hashes`` of
        ``["none"]`` switches off hash checks and keeps ``signature``.

        Raises:
            ValueError: On an unknown algorithm or scheme name.
        """
        if no_verify:
            return cls.disabled()
        scheme = SignatureScheme(signature) if signature else SignatureScheme.MINISIGN
        names = [n.strip().lower() for n in hashes or () if n.strip()]
        if names == [DISABLED]:
            return cls(hashes=(), signature=scheme, verify_hashes=False)
        algorithms = tuple(HashAlgorithm(n) for n in names) if names else DEFAULT_HASH_PRIORITY
        return cls(hashes=algorithms, signature=scheme)

    @property
    def requires_signatures(self) -> bool:
        return self.enabled and self.signature is not SignatureScheme.NONE

    @property
    def checks_hashes(self) -> bool:
        return self.enabled and self.verify_hashes

    def first_shared(self, available: Mapping[str, str]) -> HashAlgorithm | None:
        """First policy algorithm that ``available`` (algorithm -> digest) provides."""
        for algorithm in self.hashes:
            if available.get(algorithm.value):
                return algorithm
        return None
