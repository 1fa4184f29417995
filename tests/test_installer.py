"""Tests for safe archive extraction."""

from __future__ import annotations

import gzip
import hashlib
import os
import stat
from pathlib import Path

import pytest

from prebuilt.crypto.policy import VerificationPolicy
from prebuilt.crypto.trust import TrustStore
from prebuilt.crypto.verifier import Verifier
from prebuilt.errors import (
    ConflictError,
    DirectoryError,
    MalformedArchiveError,
    UnexpectedEntryError,
    UnsafePathError,
    VerificationError,
)
from prebuilt.installer import (
    STAGING_PREFIX,
    Installer,
    expected_entry_names,
    is_safe_entry_name,
    prepare_directory,
)
from prebuilt.models.entities import Manifest, ResolvedRelease
from prebuilt.models.enums import ExistingBinaryPolicy
from tests.factories import TARGET, make_archive, make_symlink_archive

RELEASE = ResolvedRelease(id="foo", version="1.2.0", target=TARGET)
BINS = {"foo": b"foo binary v1", "foo-helper": b"helper binary v1"}

OVERWRITE = ExistingBinaryPolicy.OVERWRITE
SAFE = ExistingBinaryPolicy.SAFE


def _manifest(bins: dict[str, bytes]) -> Manifest:
    return Manifest(
        id=RELEASE.id,
        version=RELEASE.version,
        entries={n: {"sha256": hashlib.sha256(d).hexdigest()} for n, d in bins.items()},
    )


@pytest.fixture
def installer() -> Installer:
    return Installer(Verifier(TrustStore(), VerificationPolicy()))


def _listing(path: Path) -> list[str]:
    return sorted(p.name for p in path.iterdir())


class TestEntryNames:
    """Tests for archive entry name checks."""

    @pytest.mark.parametrize("name", ["foo", "foo-helper", "foo.exe", "..foo"])
    def test_safe(self, name: str) -> None:
        assert is_safe_entry_name(name)

    @pytest.mark.parametrize(
        "name", ["", ".", "..", "../evil", "bin/foo", "/etc/passwd", "dir\\foo", "fo\x00o"]
    )
    def test_unsafe(self, name: str) -> None:
        assert not is_safe_entry_name(name)

    def test_windows_targets_allow_exe(self) -> None:
        assert expected_entry_names(["foo"], "x86_64-pc-windows-msvc") == {"foo", "foo.exe"}
        assert expected_entry_names(["foo"], TARGET) == {"foo"}


class TestExtract:
    """Tests for Installer.extract."""

    def test_installs_all_binaries(self, installer: Installer, tmp_path: Path) -> None:
        artifacts = installer.extract(
            make_archive(BINS), tmp_path, OVERWRITE, RELEASE, list(BINS), _manifest(BINS)
        )
        assert [a.path.name for a in artifacts] == ["foo", "foo-helper"]
        assert _listing(tmp_path) == ["foo", "foo-helper"]
        assert (tmp_path / "foo").read_bytes() == BINS["foo"]
        for artifact in artifacts:
            assert artifact.path.is_absolute()
            assert artifact.mode == 0o755
            assert artifact.release == RELEASE

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_binaries_are_executable(self, installer: Installer, tmp_path: Path) -> None:
        installer.extract(
            make_archive(BINS), tmp_path, OVERWRITE, RELEASE, list(BINS), _manifest(BINS)
        )
        assert stat.S_IMODE((tmp_path / "foo").stat().st_mode) == 0o755

    def test_path_traversal_installs_nothing(self, installer: Installer, tmp_path: Path) -> None:
        dest = tmp_path / "bin"
        dest.mkdir()
        members = {"foo": BINS["foo"], "../evil": b"evil"}
        with pytest.raises(UnsafePathError) as exc_info:
            installer.extract(
                make_archive(members), dest, OVERWRITE, RELEASE, ["foo", "../evil"],
                _manifest(members),
            )
        assert exc_info.value.entry == "../evil"
        assert _listing(dest) == []
        assert not (tmp_path / "evil").exists()

    def test_nested_path_is_rejected(self, installer: Installer, tmp_path: Path) -> None:
        members = {"bin/foo": BINS["foo"]}
        with pytest.raises(UnsafePathError):
            installer.extract(
                make_archive(members), tmp_path, OVERWRITE, RELEASE, ["foo"], _manifest(members)
            )
        assert _listing(tmp_path) == []

    def test_unexpected_entry(self, installer: Installer, tmp_path: Path) -> None:
        members = {"foo": BINS["foo"], "README.md": b"hello"}
        with pytest.raises(UnexpectedEntryError) as exc_info:
            installer.extract(
                make_archive(members), tmp_path, OVERWRITE, RELEASE, ["foo"], _manifest(members)
            )
        assert exc_info.value.entry == "README.md"
        assert _listing(tmp_path) == []

    def test_symlink_entry_is_rejected(self, installer: Installer, tmp_path: Path) -> None:
        with pytest.raises(UnexpectedEntryError, match="regular file"):
            installer.extract(
                make_symlink_archive("foo", "/etc/passwd"), tmp_path, OVERWRITE, RELEASE,
                ["foo"], Manifest(),
            )
        assert _listing(tmp_path) == []

    def test_hash_mismatch_installs_nothing(self, installer: Installer, tmp_path: Path) -> None:
        manifest = _manifest({"foo": b"something else", "foo-helper": BINS["foo-helper"]})
        archive = make_archive(BINS)
        with pytest.raises(VerificationError) as exc_info:
            installer.extract(archive, tmp_path, OVERWRITE, RELEASE, list(BINS), manifest)
        assert exc_info.value.kind == "hash"
        assert exc_info.value.subject == "foo"
        assert _listing(tmp_path) == []

    def test_member_without_digest_fails(self, installer: Installer, tmp_path: Path) -> None:
        manifest = _manifest({"foo": BINS["foo"]})
        archive = make_archive(BINS)
        with pytest.raises(VerificationError, match="no hash algorithm shared"):
            installer.extract(archive, tmp_path, OVERWRITE, RELEASE, list(BINS), manifest)
        assert _listing(tmp_path) == []

    def test_verification_disabled(self, tmp_path: Path) -> None:
        installer = Installer(Verifier(TrustStore(), VerificationPolicy.disabled()))
        artifacts = installer.extract(
            make_archive(BINS), tmp_path, OVERWRITE, RELEASE, list(BINS), Manifest()
        )
        assert len(artifacts) == 2

    def test_safe_mode_conflict_leaves_existing_binary(
        self, installer: Installer, tmp_path: Path
    ) -> None:
        existing = tmp_path / "foo-helper"
        existing.write_bytes(b"user's own helper")
        before = hashlib.sha256(existing.read_bytes()).hexdigest()
        with pytest.raises(ConflictError):
            installer.extract(
                make_archive(BINS), tmp_path, SAFE, RELEASE, list(BINS), _manifest(BINS)
            )
        assert hashlib.sha256(existing.read_bytes()).hexdigest() == before
        assert _listing(tmp_path) == ["foo-helper"]

    def test_overwrite_is_idempotent(self, installer: Installer, tmp_path: Path) -> None:
        archive = make_archive(BINS)
        installer.extract(archive, tmp_path, OVERWRITE, RELEASE, list(BINS), _manifest(BINS))
        first = {p.name: p.read_bytes() for p in tmp_path.iterdir()}
        installer.extract(archive, tmp_path, OVERWRITE, RELEASE, list(BINS), _manifest(BINS))
        assert {p.name: p.read_bytes() for p in tmp_path.iterdir()} == first

    def test_overwrite_replaces_existing(self, installer: Installer, tmp_path: Path) -> None:
        (tmp_path / "foo").write_bytes(b"old")
        installer.extract(
            make_archive(BINS), tmp_path, OVERWRITE, RELEASE, list(BINS), _manifest(BINS)
        )
        assert (tmp_path / "foo").read_bytes() == BINS["foo"]

    def test_duplicate_entry(self, installer: Installer, tmp_path: Path) -> None:
        archive = make_archive([("foo", BINS["foo"]), ("foo", BINS["foo"])])
        with pytest.raises(UnexpectedEntryError, match="duplicate"):
            installer.extract(archive, tmp_path, OVERWRITE, RELEASE, ["foo"], _manifest(BINS))
        assert _listing(tmp_path) == []

    @pytest.mark.parametrize("blob", [b"", b"not a gzip stream", gzip.compress(b"not a tar")])
    def test_malformed_archive(self, installer: Installer, tmp_path: Path, blob: bytes) -> None:
        with pytest.raises(MalformedArchiveError):
            installer.extract(blob, tmp_path, OVERWRITE, RELEASE, ["foo"], _manifest(BINS))
        assert not any(p.name.startswith(STAGING_PREFIX) for p in tmp_path.iterdir())

    def test_truncated_archive(self, installer: Installer, tmp_path: Path) -> None:
        bins = {"foo": os.urandom(64 * 1024)}
        archive = make_archive(bins)
        truncated = archive[: len(archive) // 2]
        with pytest.raises(MalformedArchiveError):
            installer.extract(truncated, tmp_path, OVERWRITE, RELEASE, ["foo"], _manifest(bins))
        assert _listing(tmp_path) == []

    def test_highly_compressed_member_is_capped(self, tmp_path: Path) -> None:
        bins = {"foo": bytes(1024 * 1024)}
        archive = make_archive(bins)
        assert len(archive) < 64 * 1024
        installer = Installer(
            Verifier(TrustStore(), VerificationPolicy()), max_extracted_bytes=64 * 1024
        )
        with pytest.raises(MalformedArchiveError, match="expands past"):
            installer.extract(archive, tmp_path, OVERWRITE, RELEASE, ["foo"], _manifest(bins))
        assert _listing(tmp_path) == []

    def test_extracted_bytes_are_summed_over_members(self, tmp_path: Path) -> None:
        installer = Installer(
            Verifier(TrustStore(), VerificationPolicy()), max_extracted_bytes=20
        )
        with pytest.raises(MalformedArchiveError, match="expands past 20 bytes"):
            installer.extract(
                make_archive(BINS), tmp_path, OVERWRITE, RELEASE, list(BINS), _manifest(BINS)
            )
        assert _listing(tmp_path) == []

    def test_empty_archive(self, installer: Installer, tmp_path: Path) -> None:
        with pytest.raises(MalformedArchiveError, match="no binaries"):
            installer.extract(make_archive({}), tmp_path, OVERWRITE, RELEASE, ["foo"], Manifest())


class TestPrepareDirectory:
    """Tests for install/report directory preparation."""

    def test_creates_missing(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b"
        assert prepare_directory(target) == target
        assert target.is_dir()

    def test_no_create(self, tmp_path: Path) -> None:
        with pytest.raises(DirectoryError):
            prepare_directory(tmp_path / "missing", create=False)
        assert not (tmp_path / "missing").exists()

    def test_existing_file(self, tmp_path: Path) -> None:
        (tmp_path / "file").write_text("x")
        with pytest.raises(DirectoryError, match="not a directory"):
            prepare_directory(tmp_path / "file")
