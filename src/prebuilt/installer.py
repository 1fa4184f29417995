"""Safe extraction of a verified tar+gzip archive into the install directory.

The archive is read as a single-pass stream of members. Each member is
checked before any byte of it is written:

- its name must be a bare file name (no path separator, not ``.``/``..``),
  since it is joined directly onto the install directory
- it must be a regular file named after one of the release's binaries
- in safe mode, nothing may exist at its target path yet

Members are written into a staging directory inside the install directory
and hashed while written. Only when the whole archive has been read and
every member verified are the staged files moved into place, so a rejected
archive installs nothing.
"""

from __future__ import annotations

import gzip
import io
import os
import shutil
import tarfile
import tempfile
import zlib
from collections.abc import Iterable
from pathlib import Path

from prebuilt.crypto.verifier import Verifier
from prebuilt.errors import (
    ConflictError,
    DirectoryError,
    FilesystemError,
    MalformedArchiveError,
    UnexpectedEntryError,
    UnsafePathError,
    VerificationError,
)
from prebuilt.models.constants import BIN_MODE, MAX_EXTRACTED_BYTES
from prebuilt.models.entities import InstalledArtifact, Manifest, ResolvedRelease
from prebuilt.models.enums import ExistingBinaryPolicy
from prebuilt.observability import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024
STAGING_PREFIX = ".prebuilt-staging-"
WINDOWS_EXE_SUFFIX = ".exe"

_ARCHIVE_ERRORS = (tarfile.TarError, EOFError, zlib.error, gzip.BadGzipFile)


def _separators() -> frozenset[str]:
    seps = {"/", "\\", os.sep}
    if os.altsep:
        seps.add(os.altsep)
    return frozenset(seps)


def is_safe_entry_name(name: str) -> bool:
    """True if ``name`` can be joined onto a directory without leaving it.

    Example:
        >>> is_safe_entry_name("rg")
        True
        >>> is_safe_entry_name("../evil")
        False
    """
    if not name or name in (".", "..") or "\x00" in name:
        return False
    return not any(sep in name for sep in _separators())


def expected_entry_names(bins: Iterable[str], target: str) -> frozenset[str]:
    """Archive member names allowed for a release's binaries on ``target``."""
    names = set(bins)
    if "windows" in target:
        names |= {f"{b}{WINDOWS_EXE_SUFFIX}" for b in bins if not b.endswith(WINDOWS_EXE_SUFFIX)}
    return frozenset(names)


def prepare_directory(path: Path, create: bool = True) -> Path:
    """Make sure ``path`` is a usable directory.

    Raises:
        DirectoryError: If it is missing and ``create`` is False, is not a
            directory, or cannot be created.
    """
    if path.is_dir():
        return path
    if path.exists():
        raise DirectoryError(str(path), "exists but is not a directory")
    if not create:
        raise DirectoryError(str(path), "does not exist and directory creation is disabled")
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryError(str(path), e.strerror or str(e)) from e
    logger.info("prebuilt.directory.created", path=str(path))
    return path


def _exists(path: Path) -> bool:
    return path.exists() or path.is_symlink()


class Installer:
    """Writes the binaries of a verified archive into an install directory.

    Args:
        verifier: Checks each member's bytes against the manifest while it is
            streamed. With hash checks off no member digest is checked.
        max_extracted_bytes: Upper bound on the bytes written for one
            archive, summed over its members.
    """

    def __init__(
        self, verifier: Verifier, max_extracted_bytes: int = MAX_EXTRACTED_BYTES
    ) -> None:
        self.verifier = verifier
        self.max_extracted_bytes = max_extracted_bytes

    def extract(
        self,
        archive: bytes,
        dest_dir: Path,
        existing_binary_policy: ExistingBinaryPolicy,
        release: ResolvedRelease,
        bins: Iterable[str],
        manifest: Manifest,
    ) -> list[InstalledArtifact]:
        """Extract ``archive`` into ``dest_dir``; all members or none.

        Raises:
            UnsafePathError: A member name contains a path separator.
            UnexpectedEntryError: A member is not an expected binary.
            ConflictError: Safe mode and a binary already exists.
            VerificationError: A member does not match its manifest digest.
            MalformedArchiveError: The archive is not readable tar+gzip or
                expands past ``max_extracted_bytes``.
            FilesystemError: Writing to ``dest_dir`` failed.
        """
        expected = expected_entry_names(bins, release.target)
        try:
            staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=dest_dir))
        except OSError as e:
            raise FilesystemError(str(dest_dir), e.strerror or str(e)) from e
        try:
            staged = self._stage(
                archive, staging, dest_dir, expected, existing_binary_policy, manifest
            )
            return self._commit(staged, staging, dest_dir, existing_binary_policy, release)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _check_member(
        self,
        member: tarfile.TarInfo,
        dest_dir: Path,
        expected: frozenset[str],
        seen: set[str],
        policy: ExistingBinaryPolicy,
    ) -> None:
        name = member.name
        if not is_safe_entry_name(name):
            raise UnsafePathError(name)
        if name not in expected:
            raise UnexpectedEntryError(name, "not a binary of this release")
        if not member.isfile():
            raise UnexpectedEntryError(name, "not a regular file")
        if name in seen:
            raise UnexpectedEntryError(name, "duplicate entry")
        if policy is ExistingBinaryPolicy.SAFE and _exists(dest_dir / name):
            raise ConflictError(str(dest_dir / name))

    def _stage(
        self,
        archive: bytes,
        staging: Path,
        dest_dir: Path,
        expected: frozenset[str],
        policy: ExistingBinaryPolicy,
        manifest: Manifest,
    ) -> list[str]:
        staged: list[str] = []
        seen: set[str] = set()
        written = 0
        try:
            with tarfile.open(fileobj=io.BytesIO(archive), mode="r|gz") as tar:
                for member in tar:
                    self._check_member(member, dest_dir, expected, seen, policy)
                    name = member.name

                    algorithm = None
                    if self.verifier.checks_hashes:
                        digests = manifest.digests_for(name)
                        algorithm = self.verifier.policy.first_shared(digests)
                        if algorithm is None:
                            raise VerificationError(
                                "hash",
                                name,
                                "no hash algorithm shared between policy and manifest",
                                details={"manifest": sorted(digests)},
                            )

                    source = tar.extractfile(member)
                    if source is None:
                        raise UnexpectedEntryError(name, "has no content")
                    hasher = algorithm.new() if algorithm is not None else None
                    with open(staging / name, "xb") as out:
                        while chunk := source.read(CHUNK_SIZE):
                            written += len(chunk)
                            if written > self.max_extracted_bytes:
                                raise MalformedArchiveError(
                                    f"archive expands past {self.max_extracted_bytes} bytes"
                                )
                            out.write(chunk)
                            if hasher is not None:
                                hasher.update(chunk)
                    if algorithm is not None and hasher is not None:
                        self.verifier.require_digest(
                            hasher.hexdigest(), algorithm.value, name, manifest
                        )

                    seen.add(name)
                    staged.append(name)
                    logger.debug("prebuilt.archive.member_staged", entry=name, size=member.size)
        except _ARCHIVE_ERRORS as e:
            raise MalformedArchiveError(str(e) or type(e).__name__) from e
        except OSError as e:
            raise FilesystemError(str(staging), e.strerror or str(e)) from e

        if not staged:
            raise MalformedArchiveError("archive contains no binaries")
        return staged

    def _commit(
        self,
        staged: list[str],
        staging: Path,
        dest_dir: Path,
        policy: ExistingBinaryPolicy,
        release: ResolvedRelease,
    ) -> list[InstalledArtifact]:
        for name in staged:
            if policy is ExistingBinaryPolicy.SAFE and _exists(dest_dir / name):
                raise ConflictError(str(dest_dir / name))

        artifacts: list[InstalledArtifact] = []
        for name in staged:
            source = staging / name
            target = dest_dir / name
            try:
                if os.name == "posix":
                    os.chmod(source, BIN_MODE)
                os.replace(source, target)
            except OSError as e:
                raise FilesystemError(str(target), e.strerror or str(e)) from e
            artifacts.append(
                InstalledArtifact(path=self._canonical(target), mode=BIN_MODE, release=release)
            )
        return artifacts

    @staticmethod
    def _canonical(path: Path) -> Path:
        try:
            return path.resolve(strict=True)
        except OSError as e:
            logger.warning("prebuilt.install.canonicalize_failed", path=str(path), error=str(e))
            return path.absolute()
