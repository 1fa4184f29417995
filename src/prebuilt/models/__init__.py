"""Prebuilt models.

Value objects shared by the index client, verifier, installer and pipeline.
"""

from prebuilt.models.base import IndexDocumentModel, PrebuiltBaseModel
from prebuilt.models.entities import (
    HashesDocument,
    InstalledArtifact,
    Manifest,
    Metadata,
    PackageRequest,
    ResolvedRelease,
    TargetHashes,
)
from prebuilt.models.enums import (
    ExistingBinaryPolicy,
    HashAlgorithm,
    IndexKind,
    ReportType,
    SignatureScheme,
)

__all__ = [
    "ExistingBinaryPolicy",
    "HashAlgorithm",
    "HashesDocument",
    "IndexDocumentModel",
    "IndexKind",
    "InstalledArtifact",
    "Manifest",
    "Metadata",
    "PackageRequest",
    "PrebuiltBaseModel",
    "ReportType",
    "ResolvedRelease",
    "SignatureScheme",
    "TargetHashes",
]
