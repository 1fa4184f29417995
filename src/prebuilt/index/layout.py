"""Index locations and their URL layouts.

An index is given as an HTTPS URL, optionally prefixed with its kind::

    https://github.com/cargo-prebuilt/index          (gh-pub, inferred)
    cuhttp+https://prebuilt.example.com/index        (cuhttp, explicit)

The kind decides where the latest-version pointer and release files live.
The normalized identity names the index in the trust store, so two
spellings of the same index share their keys.
"""

from __future__ import annotations

from urllib.parse import urlsplit

from pydantic import field_validator

from prebuilt.errors import ConfigError
from prebuilt.models.base import PrebuiltBaseModel
from prebuilt.models.constants import (
    CUHTTP_LATEST_FILE,
    GH_STABLE_INDEX_TAG,
    REPORT_SUFFIX,
    SIGNATURE_SUFFIX,
)
from prebuilt.models.entities import ResolvedRelease
from prebuilt.models.enums import IndexKind
from prebuilt.utils.sanitization import sanitize_url

GITHUB_HOST = "github.com"


class IndexLocation(PrebuiltBaseModel):
    """A parsed, HTTPS-only index location.

    Example:
        >>> loc = IndexLocation.parse("https://GitHub.com/cargo-prebuilt/index/")
        >>> loc.identity
        'gh-pub:github.com/cargo-prebuilt/index'
        >>> loc.latest_url("ripgrep")
        'https://github.com/cargo-prebuilt/index/releases/download/stable-index/ripgrep'
    """

    kind: IndexKind
    host: str
    path: str
    port: int | None = None

    @field_validator("path")
    @classmethod
    def _strip_slashes(cls, v: str) -> str:
        return v.strip("/")

    @classmethod
    def parse(cls, spec: str) -> IndexLocation:
        """Parse an index spec. Raises ConfigError unless it is an HTTPS URL."""
        raw = spec.strip()
        kind: IndexKind | None = None
        prefix, sep, rest = raw.partition("+")
        if sep and "://" in rest and "://" not in prefix:
            try:
                kind = IndexKind(prefix.lower())
            except ValueError as e:
                raise ConfigError(
                    f"Unknown index kind {prefix!r}. Try gh-pub, cuhttp.",
                    details={"index": sanitize_url(raw)},
                ) from e
            raw = rest
        details = {"index": sanitize_url(raw)}

        try:
            parts = urlsplit(raw)
        except ValueError as e:
            raise ConfigError(f"Invalid index URL: {e}", details=details) from e
        if parts.scheme.lower() != "https":
            raise ConfigError(
                f"Index must use https, got {parts.scheme or 'no scheme'!r}",
                details=details,
            )
        if not parts.hostname:
            raise ConfigError("Index URL has no host", details=details)
        if parts.query or parts.fragment:
            raise ConfigError("Index URL must not carry a query or fragment", details=details)
        if parts.username or parts.password:
            raise ConfigError("Index URL must not embed credentials; use --auth", details=details)

        try:
            port = parts.port
        except ValueError as e:
            raise ConfigError(f"Invalid index port: {e}", details=details) from e
        host = parts.hostname.lower()
        if port == 443:
            port = None
        if kind is None:
            kind = IndexKind.GH_PUB if host == GITHUB_HOST else IndexKind.CUHTTP
        if kind is IndexKind.GH_PUB and parts.path.strip("/").count("/") != 1:
            raise ConfigError(
                "gh-pub index must be https://github.com/<owner>/<repo>",
                details=details,
            )
        return cls(kind=kind, host=host, path=parts.path, port=port)

    @property
    def base_url(self) -> str:
        netloc = self.host if self.port is None else f"{self.host}:{self.port}"
        return f"https://{netloc}/{self.path}" if self.path else f"https://{netloc}"

    @property
    def identity(self) -> str:
        """Trust domain of this index: ``<kind>:<host>[:port]/<path>``."""
        netloc = self.host if self.port is None else f"{self.host}:{self.port}"
        return f"{self.kind.value}:{netloc}/{self.path}"

    def latest_url(self, package: str) -> str:
        if self.kind is IndexKind.GH_PUB:
            return f"{self.base_url}/releases/download/{GH_STABLE_INDEX_TAG}/{package}"
        return f"{self.base_url}/{package}/{CUHTTP_LATEST_FILE}"

    def file_url(self, release: ResolvedRelease, file_name: str) -> str:
        if self.kind is IndexKind.GH_PUB:
            return f"{self.base_url}/releases/download/{release.id}-{release.version}/{file_name}"
        return f"{self.base_url}/{release.id}/{release.version}/{file_name}"

    def signature_url(self, release: ResolvedRelease, file_name: str) -> str:
        return self.file_url(release, f"{file_name}{SIGNATURE_SUFFIX}")

    def report_url(self, release: ResolvedRelease, kind: str) -> str:
        return self.file_url(release, f"{kind}{REPORT_SUFFIX}")

    def __str__(self) -> str:
        return self.base_url
