"""Per-package fetch, verify and install pipeline.

Packages are processed one at a time, in request order::

    resolve -> fetch info.json + hashes.json -> verify signatures
            -> check documents describe the release -> fetch archive
            -> verify archive digest -> extract (verifying each binary)
            -> events -> reports

Any PrebuiltError aborts the current package only; the run continues with
the next one. Trust store and policy are shared read-only by every package;
documents and archive bytes are dropped before the next package starts.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from prebuilt.config import Config
from prebuilt.crypto.verifier import Verifier
from prebuilt.errors import NotFoundError, PrebuiltError, ResolutionError, VerificationError
from prebuilt.events import EventEmitter
from prebuilt.index.client import FetchedDocument, IndexClient
from prebuilt.installer import Installer, prepare_directory
from prebuilt.models.constants import HASHES_FILE, INFO_FILE
from prebuilt.models.entities import (
    InstalledArtifact,
    Manifest,
    Metadata,
    PackageRequest,
    ResolvedRelease,
)
from prebuilt.models.enums import ExistingBinaryPolicy
from prebuilt.observability import bind_context, clear_context, get_logger
from prebuilt.reports import ReportFetcher

logger = get_logger(__name__)


@dataclass
class PackageResult:
    """Outcome of one requested package."""

    token: str
    artifacts: list[InstalledArtifact] = field(default_factory=list)
    error: PrebuiltError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RunSummary:
    results: list[PackageResult] = field(default_factory=list)

    @property
    def failed(self) -> list[PackageResult]:
        return [r for r in self.results if not r.ok]

    @property
    def installed(self) -> list[InstalledArtifact]:
        return [a for r in self.results for a in r.artifacts]

    @property
    def exit_code(self) -> int:
        """0 if every package installed, else the exit code of the first failure."""
        for result in self.results:
            if result.error is not None:
                return result.error.exit_code
        return 0


def check_release_documents(
    release: ResolvedRelease, metadata: Metadata, manifest: Manifest
) -> None:
    """Verified documents must describe the release that was asked for.

    Raises:
        VerificationError: A document names another package or version.
        ResolutionError: The release has no build for the requested target.
    """
    if (metadata.id, metadata.version) != (release.id, release.version):
        raise VerificationError(
            "document",
            INFO_FILE,
            f"describes {metadata.id}@{metadata.version}, expected {release.id}@{release.version}",
        )
    if (manifest.id, manifest.version) != (release.id, release.version):
        raise VerificationError(
            "document",
            HASHES_FILE,
            f"describes {manifest.id}@{manifest.version}, expected {release.id}@{release.version}",
        )
    if metadata.targets and release.target not in metadata.targets:
        raise ResolutionError(
            release.id,
            f"no build for target {release.target}",
            version=release.version,
            details={"targets": metadata.targets},
        )


class Pipeline:
    """Installs requested packages from one index into one directory.

    Args:
        client: Index client bound to the index and target.
        verifier: Shared, immutable signature and hash checks.
        installer: Archive extraction into ``install_dir``.
        install_dir: Existing directory receiving the binaries.
        existing_binary_policy: Overwrite or refuse existing binaries.
        events: JSON event stream (disabled by default).
        reports: Report fetcher, or None to skip reports.
    """

    def __init__(
        self,
        client: IndexClient,
        verifier: Verifier,
        installer: Installer,
        install_dir: Path,
        existing_binary_policy: ExistingBinaryPolicy = ExistingBinaryPolicy.OVERWRITE,
        events: EventEmitter | None = None,
        reports: ReportFetcher | None = None,
    ) -> None:
        self.client = client
        self.verifier = verifier
        self.installer = installer
        self.install_dir = install_dir
        self.existing_binary_policy = existing_binary_policy
        self.events = events or EventEmitter()
        self.reports = reports

    @property
    def identity(self) -> str:
        return self.client.location.identity

    def install(self, request: PackageRequest) -> list[InstalledArtifact]:
        """Run the whole pipeline for one package. Raises PrebuiltError on failure."""
        release = self.client.resolve(request)
        bind_context(version=release.version)
        self.events.target(release)

        info = self._fetch_metadata(request, release)
        hashes = self.client.fetch_manifest(release)
        info_verified = self.verifier.require_signature(
            info.content, info.signature, self.identity, info.name
        )
        hashes_verified = self.verifier.require_signature(
            hashes.content, hashes.signature, self.identity, hashes.name
        )
        self.events.info_verify(release, info_verified and hashes_verified)

        metadata = info.document
        manifest = hashes.document
        check_release_documents(release, metadata, manifest)

        blob = self.client.fetch_blob(release)
        blob_verified = self.verifier.require_blob(blob, release.archive_name, manifest)
        self.events.hashes_verify(release, blob_verified)

        artifacts = self.installer.extract(
            blob,
            self.install_dir,
            self.existing_binary_policy,
            release,
            metadata.bins,
            manifest,
        )
        del blob

        for artifact in artifacts:
            self.events.binary_installed(release, artifact.path)
            logger.info("prebuilt.binary.installed", path=str(artifact.path))

        if self.reports is not None:
            self.reports.fetch(release)
        return artifacts

    def _fetch_metadata(
        self, request: PackageRequest, release: ResolvedRelease
    ) -> FetchedDocument[Metadata]:
        """info.json marks a release as published; without it a pinned version is unknown."""
        info_url = self.client.location.file_url(release, INFO_FILE)
        try:
            return self.client.fetch_metadata(release)
        except NotFoundError as e:
            if request.version is None or e.url != info_url:
                raise
            raise ResolutionError(
                request.id, "version not found on index", version=request.version
            ) from e

    def run(self, tokens: Iterable[str]) -> RunSummary:
        """Install every ``id[@version]`` token, continuing past failures."""
        summary = RunSummary()
        for token in tokens:
            bind_context(package=token)
            try:
                artifacts = self.install(PackageRequest.parse(token))
            except PrebuiltError as e:
                logger.error(
                    "prebuilt.package.failed",
                    code=e.code,
                    error=e.message,
                    exit_code=e.exit_code,
                )
                summary.results.append(PackageResult(token, error=e))
            else:
                logger.info("prebuilt.package.installed", binaries=len(artifacts))
                summary.results.append(PackageResult(token, artifacts=artifacts))
            finally:
                clear_context()
        return summary


def run_from_config(
    config: Config,
    transport: httpx.BaseTransport | None = None,
    echo: Callable[[str], None] = print,
) -> RunSummary:
    """Prepare directories, then install ``config.packages``.

    Raises:
        DirectoryError: Before any network access, if a directory is unusable.
    """
    create = not config.no_create_path
    install_dir = prepare_directory(config.path, create=create)
    if any(not r.prints for r in config.reports):
        prepare_directory(config.report_path, create=create)

    verifier = Verifier(config.trust_store, config.policy)
    with IndexClient(
        config.index,
        config.target,
        auth=config.auth,
        signature_scheme=config.policy.signature,
        transport=transport,
    ) as client:
        reports = (
            ReportFetcher(client, config.report_path, config.reports, echo=echo)
            if config.reports
            else None
        )
        pipeline = Pipeline(
            client,
            verifier,
            Installer(verifier),
            install_dir,
            existing_binary_policy=config.existing_binary_policy,
            events=EventEmitter(enabled=config.out),
            reports=reports,
        )
        return pipeline.run(config.packages)
