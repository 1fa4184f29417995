"""Enumerations for prebuilt.

This module defines all enum types used by the pipeline to ensure
type safety and prevent magic strings.
"""

import hashlib
from enum import Enum


class HashAlgorithm(str, Enum):
    """Digest algorithms a hashes manifest may carry.

    Declaration order carries no meaning. The order in which algorithms are
    tried is owned by VerificationPolicy.

    Example:
        >>> HashAlgorithm.SHA256.hexdigest(b"")[:8]
        'e3b0c442'
    """

    SHA3_512 = "sha3_512"
    SHA3_256 = "sha3_256"
    SHA512 = "sha512"
    SHA256 = "sha256"

    def new(self) -> "hashlib._Hash":
        """Return a fresh hashlib object for incremental hashing."""
        return hashlib.new(self.value)

    def hexdigest(self, data: bytes) -> str:
        h = self.new()
        h.update(data)
        return h.hexdigest()


class SignatureScheme(str, Enum):
    """Signature scheme used for index documents (info.json, hashes.json)."""

    NONE = "none"
    MINISIGN = "minisign"


class ExistingBinaryPolicy(str, Enum):
    """What to do when a binary is already present in the install directory."""

    OVERWRITE = "overwrite"
    SAFE = "safe"


class IndexKind(str, Enum):
    """URL layout of a remote index.

    GH_PUB is a public GitHub repository whose releases hold the files;
    CUHTTP is a plain HTTPS directory tree.
    """

    GH_PUB = "gh-pub"
    CUHTTP = "cuhttp"


class ReportType(str, Enum):
    """Compliance report kinds and whether they are downloaded or printed.

    Example:
        >>> ReportType.LICENSE_DL.kind
        'license'
        >>> ReportType.DEPS_OUT.prints
        True
    """

    AUDIT_DL = "audit_dl"
    AUDIT_OUT = "audit_out"
    DEPS_DL = "deps_dl"
    DEPS_OUT = "deps_out"
    LICENSE_DL = "license_dl"
    LICENSE_OUT = "license_out"

    @property
    def kind(self) -> str:
        """Report name on the index (license, deps, audit)."""
        return self.value.rsplit("_", 1)[0]

    @property
    def prints(self) -> bool:
        """True if the report is written to stdout instead of the report directory."""
        return self.value.endswith("_out")

    @classmethod
    def defaults(cls) -> tuple["ReportType", ...]:
        return (cls.LICENSE_DL,)
