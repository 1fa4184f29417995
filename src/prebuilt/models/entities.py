"""Core entities of the fetch-verify-install pipeline.

PackageRequest and ResolvedRelease identify what is installed. Metadata and
HashesDocument mirror the info.json and hashes.json documents an index
publishes per release; Manifest is the flattened per-target view of
hashes.json that the verifier and installer consume. InstalledArtifact is
produced only after a binary has been verified and written.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import Field, field_validator

from prebuilt.errors import ResolutionError
from prebuilt.models.base import IndexDocumentModel, PrebuiltBaseModel
from prebuilt.models.constants import (
    ARCHIVE_SUFFIX,
    PACKAGE_ID_PATTERN,
    TARGET_PATTERN,
    VERSION_PATTERN,
)

_PACKAGE_ID_RE = re.compile(PACKAGE_ID_PATTERN)
_VERSION_RE = re.compile(VERSION_PATTERN)


def is_valid_package_id(value: str) -> bool:
    return bool(_PACKAGE_ID_RE.match(value))


def is_valid_version(value: str) -> bool:
    return bool(_VERSION_RE.match(value))


class PackageRequest(PrebuiltBaseModel):
    """A package to install, with an optional pinned version.

    Example:
        >>> PackageRequest.parse("ripgrep@14.1.0")
        PackageRequest(id='ripgrep', version='14.1.0')
        >>> PackageRequest.parse("ripgrep").version is None
        True
    """

    id: str
    version: str | None = None

    @classmethod
    def parse(cls, token: str) -> PackageRequest:
        """Parse an ``id[@version]`` token.

        Raises:
            ResolutionError: If the id or version is malformed. Both end up in
                index URLs, so anything outside the allowed alphabets is refused.
        """
        token = token.strip()
        package, sep, version = token.partition("@")
        if not is_valid_package_id(package):
            raise ResolutionError(package or token, "invalid package id")
        if sep and not is_valid_version(version):
            raise ResolutionError(package, "invalid version", version=version or None)
        return cls(id=package, version=version if sep else None)

    def __str__(self) -> str:
        return f"{self.id}@{self.version}" if self.version else self.id


class ResolvedRelease(PrebuiltBaseModel):
    """A concrete (id, version, target) triple. Never "latest"."""

    id: str = Field(..., pattern=PACKAGE_ID_PATTERN)
    version: str = Field(..., pattern=VERSION_PATTERN)
    target: str = Field(..., pattern=TARGET_PATTERN)

    @property
    def archive_name(self) -> str:
        """File name of the archive on the index, also its manifest key."""
        return f"{self.target}{ARCHIVE_SUFFIX}"

    def __str__(self) -> str:
        return f"{self.id}@{self.version} ({self.target})"


class Metadata(IndexDocumentModel):
    """info.json: what a release is and which binaries it ships."""

    info_version: str = "1"
    id: str
    version: str
    license: str | None = None
    git: str | None = None
    description: str | None = None
    bins: list[str] = Field(..., min_length=1)
    targets: list[str] = Field(default_factory=list)

    @field_validator("info_version", mode="before")
    @classmethod
    def _coerce_version(cls, v: object) -> object:
        return str(v) if isinstance(v, int) else v


class TargetHashes(IndexDocumentModel):
    """Digests for one target: the archive and each binary inside it."""

    archive: dict[str, str] = Field(default_factory=dict)
    bins: dict[str, dict[str, str]] = Field(default_factory=dict)


class HashesDocument(IndexDocumentModel):
    """hashes.json: ``target -> {archive, bins}`` digests for one release."""

    hashes_version: str = "1"
    id: str
    version: str
    hashes: dict[str, TargetHashes] = Field(default_factory=dict)

    @field_validator("hashes_version", mode="before")
    @classmethod
    def _coerce_version(cls, v: object) -> object:
        return str(v) if isinstance(v, int) else v


class Manifest(PrebuiltBaseModel):
    """Flattened digests for one release/target: ``path -> {algorithm -> hex}``.

    The archive is keyed by its file name (``<target>.tar.gz``) and each
    binary by its archive entry name.
    """

    id: str | None = None
    version: str | None = None
    entries: dict[str, dict[str, str]] = Field(default_factory=dict)

    @classmethod
    def from_hashes(cls, document: HashesDocument, release: ResolvedRelease) -> Manifest:
        target = document.hashes.get(release.target)
        if target is None:
            return cls(id=document.id, version=document.version)
        entries: dict[str, dict[str, str]] = {}
        if target.archive:
            entries[release.archive_name] = _normalize(target.archive)
        for name, digests in target.bins.items():
            entries[name] = _normalize(digests)
        return cls(id=document.id, version=document.version, entries=entries)

    def digests_for(self, path: str) -> dict[str, str]:
        return self.entries.get(path, {})


def _normalize(digests: dict[str, str]) -> dict[str, str]:
    return {alg.lower(): value.strip().lower() for alg, value in digests.items()}


class InstalledArtifact(PrebuiltBaseModel):
    """A binary written to the install directory after verification."""

    path: Path
    mode: int
    release: ResolvedRelease
