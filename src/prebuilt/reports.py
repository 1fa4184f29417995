"""Best-effort download of compliance reports (license, deps, audit).

Reports are informational metadata published next to a release. They are
not signed and are never executed, so a missing or failing report is a
warning and never fails the package.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

from prebuilt.errors import FilesystemError, NetworkError
from prebuilt.index.client import IndexClient
from prebuilt.models.constants import REPORT_SUFFIX
from prebuilt.models.entities import ResolvedRelease
from prebuilt.models.enums import ReportType
from prebuilt.observability import get_logger

logger = get_logger(__name__)


class ReportFetcher:
    """Downloads or prints the configured reports for an installed release.

    Args:
        client: Index client for the release's index.
        report_dir: Root of downloaded reports; ``<id>/<version>/<kind>.report``
            is written below it.
        reports: Report types to fetch.
        echo: Where ``*_out`` reports are printed.
    """

    def __init__(
        self,
        client: IndexClient,
        report_dir: Path,
        reports: Iterable[ReportType],
        echo: Callable[[str], None] = print,
    ) -> None:
        self.client = client
        self.report_dir = report_dir
        self.reports = tuple(dict.fromkeys(reports))
        self.echo = echo

    def report_path(self, release: ResolvedRelease, kind: str) -> Path:
        return self.report_dir / release.id / release.version / f"{kind}{REPORT_SUFFIX}"

    def fetch(self, release: ResolvedRelease) -> list[Path]:
        """Fetch every configured report. Returns the paths written."""
        written: list[Path] = []
        for report in self.reports:
            try:
                body = self.client.fetch_report(release, report.kind)
            except NetworkError as e:
                logger.warning(
                    "prebuilt.report.failed",
                    package=release.id,
                    version=release.version,
                    report=report.kind,
                    error=e.message,
                )
                continue
            if body is None:
                logger.warning(
                    "prebuilt.report.missing",
                    package=release.id,
                    version=release.version,
                    report=report.kind,
                )
                continue
            text = body.decode("utf-8", errors="replace")
            if report.prints:
                self.echo(text)
                continue
            try:
                written.append(self._write(release, report.kind, text))
            except FilesystemError as e:
                logger.warning(
                    "prebuilt.report.write_failed",
                    package=release.id,
                    version=release.version,
                    report=report.kind,
                    error=e.message,
                )
        return written

    def _write(self, release: ResolvedRelease, kind: str, text: str) -> Path:
        path = self.report_path(release, kind)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise FilesystemError(str(path), e.strerror or str(e)) from e
        logger.info("prebuilt.report.written", report=kind, path=str(path))
        return path
