"""Prebuilt Error Taxonomy.

This module defines the error hierarchy for the fetch-verify-install
pipeline. Every error carries a stable error code, a human-readable
message, structured details, and the process exit status used when the
error ends a run.

Configuration-time errors (``ConfigError`` and its subclasses) abort the
whole run before any package is processed. Every other error aborts only
the package currently being installed.
"""
from __future__ import annotations

from typing import Any


class PrebuiltError(Exception):
    """Base exception for all prebuilt errors.

    Attributes:
        code: Error code following the prebuilt:<area>/<reason> pattern
        message: Human-readable error message
        details: Optional additional error context
        exit_code: Process exit status reported for this error class
    """

    exit_code: int = 1

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigError(PrebuiltError):
    """Raised when the merged configuration is unusable.

    Examples are a non-HTTPS index URL, an unknown report or hash name, or
    ``--pub-key`` given without ``--index``.
    """

    exit_code = 10

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(code="prebuilt:config/invalid", message=message, details=details)


class MissingTrustKeysError(ConfigError):
    """Raised when verification is mandatory but no key is trusted for the index.

    Attributes:
        identity: The index identity with zero trusted keys
    """

    exit_code = 11

    def __init__(self, identity: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=f"Expected to find public key(s) for index {identity}, but there was none.",
            details={"identity": identity, **(details or {})},
        )
        self.code = "prebuilt:config/missing_keys"
        self.identity = identity


class DirectoryError(ConfigError):
    """Raised when an install or report directory is missing and may not be created.

    Attributes:
        path: The offending directory
        reason: Why the directory is unusable
    """

    exit_code = 12

    def __init__(self, path: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=f"Directory {path} is unusable: {reason}",
            details={"path": path, "reason": reason, **(details or {})},
        )
        self.code = "prebuilt:config/directory"
        self.path = path
        self.reason = reason


class NetworkError(PrebuiltError):
    """Transport, DNS or TLS failure talking to the index. Never retried."""

    exit_code = 20

    def __init__(self, url: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="prebuilt:index/network",
            message=f"Request to {url} failed: {reason}",
            details={"url": url, "reason": reason, **(details or {})},
        )
        self.url = url
        self.reason = reason


class ResolutionError(PrebuiltError):
    """Raised when a package or version is unknown to the index.

    Attributes:
        package: Requested package id
        version: Requested version, if any
    """

    exit_code = 21

    def __init__(
        self,
        package: str,
        reason: str,
        version: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        label = f"{package}@{version}" if version else package
        super().__init__(
            code="prebuilt:index/resolution",
            message=f"Could not resolve {label}: {reason}",
            details={"package": package, "version": version, **(details or {})},
        )
        self.package = package
        self.version = version


class NotFoundError(PrebuiltError):
    """Raised when a document, signature or archive is missing from the index."""

    exit_code = 22

    def __init__(self, url: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="prebuilt:index/not_found",
            message=f"Not found on index: {url}",
            details={"url": url, **(details or {})},
        )
        self.url = url


class VerificationError(PrebuiltError):
    """Signature, hash or document check failed. Always fatal for the package.

    Attributes:
        kind: What was being verified (signature, hash, document)
        subject: The file or entry that failed verification
    """

    exit_code = 30

    def __init__(
        self,
        kind: str,
        subject: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code=f"prebuilt:verify/{kind}",
            message=f"Could not verify {kind} of {subject}: {reason}",
            details={"kind": kind, "subject": subject, **(details or {})},
        )
        self.kind = kind
        self.subject = subject


class UnsafePathError(PrebuiltError):
    """Raised when an archive entry name could escape the install directory.

    The whole archive is rejected, not just the entry.
    """

    exit_code = 40

    def __init__(self, entry: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="prebuilt:archive/unsafe_path",
            message=f"Archive entry {entry!r} has an illegal path",
            details={"entry": entry, **(details or {})},
        )
        self.entry = entry


class UnexpectedEntryError(PrebuiltError):
    """Raised when an archive entry is not an expected binary of the release."""

    exit_code = 41

    def __init__(self, entry: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="prebuilt:archive/unexpected_entry",
            message=f"Archive entry {entry!r} is not allowed: {reason}",
            details={"entry": entry, "reason": reason, **(details or {})},
        )
        self.entry = entry
        self.reason = reason


class ConflictError(PrebuiltError):
    """Raised in safe mode when a binary already exists at the target path."""

    exit_code = 42

    def __init__(self, path: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="prebuilt:install/conflict",
            message=f"Binary already exists at {path} and safe mode is on",
            details={"path": path, **(details or {})},
        )
        self.path = path


class MalformedArchiveError(PrebuiltError):
    """Raised when the blob is not a readable tar+gzip container or expands too far."""

    exit_code = 43

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="prebuilt:archive/malformed",
            message=f"Malformed archive: {reason}",
            details=details or {},
        )
        self.reason = reason


class FilesystemError(PrebuiltError):
    """Raised when reading or writing the local filesystem fails."""

    exit_code = 44

    def __init__(self, path: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="prebuilt:install/io",
            message=f"Filesystem error at {path}: {reason}",
            details={"path": path, "reason": reason, **(details or {})},
        )
        self.path = path
        self.reason = reason
