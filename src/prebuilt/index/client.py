"""HTTPS client for a prebuilt index.

Resolves versions and downloads the per-release documents (info.json,
hashes.json and their minisign signatures), the archive and the optional
reports. Nothing is retried: a failed request aborts the current package.

Every response body is buffered in memory under a size cap. Nothing
returned here has been verified yet; callers hand the raw bytes to the
Verifier before using them.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from functools import cached_property, partial
from typing import Any, Generic, TypeVar

import httpx
from pydantic import ValidationError

from prebuilt import __version__
from prebuilt.errors import NetworkError, NotFoundError, ResolutionError, VerificationError
from prebuilt.index.layout import IndexLocation
from prebuilt.models.constants import (
    DEFAULT_TIMEOUT_SECONDS,
    HASHES_FILE,
    INFO_FILE,
    MAX_BLOB_BYTES,
    MAX_DOCUMENT_BYTES,
)
from prebuilt.models.entities import (
    HashesDocument,
    Manifest,
    Metadata,
    PackageRequest,
    ResolvedRelease,
    is_valid_version,
)
from prebuilt.models.enums import SignatureScheme
from prebuilt.observability import get_logger
from prebuilt.utils.sanitization import sanitize_token, sanitize_url

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FetchedDocument(Generic[T]):
    """Raw bytes of an index document, the signature covering them, and a parser.

    The content is only parsed when ``document`` is first read, which the
    pipeline does after the signature has been verified.
    """

    name: str
    content: bytes
    signature: str | None
    parser: Callable[[bytes], T] = field(repr=False, compare=False)

    @cached_property
    def document(self) -> T:
        return self.parser(self.content)


def parse_metadata(content: bytes) -> Metadata:
    """Parse info.json. Raises VerificationError(kind="document") on a schema mismatch."""
    try:
        return Metadata.model_validate_json(content)
    except ValidationError as e:
        raise VerificationError(
            "document",
            INFO_FILE,
            "does not match the info.json schema",
            details={"errors": e.error_count()},
        ) from e


def parse_manifest(content: bytes, release: ResolvedRelease) -> Manifest:
    """Parse hashes.json into the flattened manifest for ``release.target``."""
    try:
        hashes = HashesDocument.model_validate_json(content)
    except ValidationError as e:
        raise VerificationError(
            "document",
            HASHES_FILE,
            "does not match the hashes.json schema",
            details={"errors": e.error_count()},
        ) from e
    return Manifest.from_hashes(hashes, release)


def _require_https(request: httpx.Request) -> None:
    if request.url.scheme != "https":
        raise NetworkError(
            sanitize_url(str(request.url)), "refusing to send a non-https request"
        )


class IndexClient:
    """Synchronous client for one index and one target.

    Args:
        location: Parsed HTTPS index location.
        target: Target triple of the binaries to download.
        auth: Optional bearer token for private indexes.
        signature_scheme: Whether to download ``.minisig`` files alongside documents.
        timeout: Per-request timeout in seconds.
        max_blob_bytes: Upper bound on a buffered archive.
        transport: Optional httpx transport for tests (e.g. MockTransport).
    """

    def __init__(
        self,
        location: IndexLocation,
        target: str,
        auth: str | None = None,
        signature_scheme: SignatureScheme = SignatureScheme.MINISIGN,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_blob_bytes: int = MAX_BLOB_BYTES,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.location = location
        self.target = target
        self.signature_scheme = signature_scheme
        self.max_blob_bytes = max_blob_bytes

        headers = {"User-Agent": f"prebuilt/{__version__}"}
        if auth:
            headers["Authorization"] = f"Bearer {auth}"
        client_kwargs: dict[str, Any] = {
            "headers": headers,
            "timeout": httpx.Timeout(timeout),
            "follow_redirects": True,
            "event_hooks": {"request": [_require_https]},
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.Client(**client_kwargs)
        logger.debug(
            "prebuilt.index.client_created",
            index=location.base_url,
            kind=location.kind.value,
            target=target,
            auth=sanitize_token(auth),
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> IndexClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _get(self, url: str, limit: int) -> bytes | None:
        """GET ``url`` into memory. None on 404."""
        try:
            with self._client.stream("GET", url) as response:
                if response.status_code == 404:
                    return None
                if response.is_error:
                    raise NetworkError(url, f"HTTP {response.status_code}")
                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > limit:
                    raise NetworkError(url, f"response of {declared} bytes exceeds {limit}")
                buf = bytearray()
                for chunk in response.iter_bytes():
                    buf.extend(chunk)
                    if len(buf) > limit:
                        raise NetworkError(url, f"response exceeds {limit} bytes")
                return bytes(buf)
        except httpx.HTTPError as e:
            raise NetworkError(url, str(e) or type(e).__name__) from e

    def _require(self, url: str, limit: int = MAX_DOCUMENT_BYTES) -> bytes:
        body = self._get(url, limit)
        if body is None:
            raise NotFoundError(url)
        return body

    def resolve(self, request: PackageRequest) -> ResolvedRelease:
        """Pin ``request`` to a concrete version for this client's target.

        A pinned version is taken as given; the pipeline reports a missing
        info.json for it as an unknown version.

        Raises:
            ResolutionError: Unknown package or invalid latest version.
            NetworkError: Transport failure.
        """
        if request.version is None:
            url = self.location.latest_url(request.id)
            body = self._get(url, MAX_DOCUMENT_BYTES)
            if body is None:
                raise ResolutionError(request.id, "package not found on index")
            version = body.decode("utf-8", errors="replace").strip()
            if not is_valid_version(version):
                raise ResolutionError(
                    request.id, f"index returned an invalid latest version {version[:64]!r}"
                )
            release = ResolvedRelease(id=request.id, version=version, target=self.target)
        else:
            release = ResolvedRelease(id=request.id, version=request.version, target=self.target)
        logger.info("prebuilt.index.resolved", package=release.id, version=release.version)
        return release

    def _fetch_signed(self, release: ResolvedRelease, name: str) -> tuple[bytes, str | None]:
        content = self._require(self.location.file_url(release, name))
        signature = None
        if self.signature_scheme is not SignatureScheme.NONE:
            raw = self._require(self.location.signature_url(release, name))
            signature = raw.decode("utf-8", errors="replace")
        return content, signature

    def fetch_metadata(self, release: ResolvedRelease) -> FetchedDocument[Metadata]:
        """Download info.json and, unless the scheme is ``none``, its signature.

        Raises:
            NotFoundError: Document or signature missing.
        """
        content, signature = self._fetch_signed(release, INFO_FILE)
        return FetchedDocument(INFO_FILE, content, signature, parse_metadata)

    def fetch_manifest(self, release: ResolvedRelease) -> FetchedDocument[Manifest]:
        """Download hashes.json and, unless the scheme is ``none``, its signature.

        The parsed document is the flattened view for this client's target.
        """
        content, signature = self._fetch_signed(release, HASHES_FILE)
        return FetchedDocument(
            HASHES_FILE, content, signature, partial(parse_manifest, release=release)
        )

    def fetch_blob(self, release: ResolvedRelease) -> bytes:
        """Download the tar+gzip archive for the release's target."""
        url = self.location.file_url(release, release.archive_name)
        blob = self._require(url, self.max_blob_bytes)
        logger.debug("prebuilt.index.blob_downloaded", url=url, size=len(blob))
        return blob

    def fetch_report(self, release: ResolvedRelease, kind: str) -> bytes | None:
        """Download a report (license, deps, audit). None if the index has none."""
        return self._get(self.location.report_url(release, kind), MAX_DOCUMENT_BYTES)
