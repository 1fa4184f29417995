"""Structured logging configuration for prebuilt.

This module configures structlog for structured logging with support for
both interactive (console) and machine (JSON) output formats.

Logs are written to stderr. Stdout is reserved for the JSON event stream
and for reports printed with the ``*_out`` report types.

Environment Variables:
    PREBUILT_LOG_FORMAT: Set to "json" for JSON output, "console" for colored output
    PREBUILT_LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR)

Example:
    >>> from prebuilt.observability.logging import get_logger, configure_logging
    >>>
    >>> configure_logging(log_format="console", log_level="INFO", colors=False)
    >>> logger = get_logger("prebuilt.pipeline")
    >>> logger.info("prebuilt.package.installed", package="foo", version="1.2.0")
"""

import logging
import os
import sys
from typing import Any

import structlog
from structlog.typing import Processor

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "console"

ENV_LOG_FORMAT = "PREBUILT_LOG_FORMAT"
ENV_LOG_LEVEL = "PREBUILT_LOG_LEVEL"

REDACTED_PLACEHOLDER = "***REDACTED***"

# Key substrings (case-insensitive) that indicate sensitive data to redact
_SENSITIVE_KEY_PATTERNS = frozenset({"password", "token", "secret", "authorization", "auth"})

_logging_configured = False


def _is_sensitive_key(key: str) -> bool:
    lower = key.lower()
    return any(pattern in lower for pattern in _SENSITIVE_KEY_PATTERNS)


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Sanitize a dict for safe logging by redacting sensitive field values.

    Keys matching (case-insensitive) password, token, secret, authorization
    or auth have their values replaced with REDACTED_PLACEHOLDER. Nested
    dicts and lists of dicts are handled recursively.

    Example:
        >>> sanitize_for_logging({"index": "https://example.com", "auth": "ghp_abc"})
        {'index': 'https://example.com', 'auth': '***REDACTED***'}
    """
    if not data:
        return {}
    result: dict[str, Any] = {}
    for k, v in data.items():
        if _is_sensitive_key(k):
            result[k] = REDACTED_PLACEHOLDER
        elif isinstance(v, dict):
            result[k] = sanitize_for_logging(v)
        elif isinstance(v, list):
            result[k] = [
                sanitize_for_logging(item) if isinstance(item, dict) else item for item in v
            ]
        else:
            result[k] = v
    return result


def _get_log_level() -> str:
    return os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).upper()


def _get_log_format() -> str:
    return os.environ.get(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT).lower()


def _get_shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _get_console_renderer(colors: bool) -> Processor:
    return structlog.dev.ConsoleRenderer(
        colors=colors,
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    colors: bool | None = None,
    force: bool = False,
) -> None:
    """Configure structured logging for the application.

    Args:
        log_format: Output format - "json" or "console". Defaults to env var or "console"
        log_level: Minimum log level. Defaults to env var or "INFO"
        colors: Colorize console output. Defaults to whether stderr is a terminal
        force: If True, reconfigure even if already configured
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    log_format = log_format or _get_log_format()
    log_level = log_level or _get_log_level()
    if colors is None:
        colors = sys.stderr.isatty()

    shared_processors = _get_shared_processors()

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = _get_console_renderer(colors)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level))

    _logging_configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the given name.

    If logging has not been configured, it is configured with default settings.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger = logger.bind(package="foo", version="1.2.0")
        >>> logger.info("prebuilt.archive.extracted")
    """
    if not _logging_configured:
        configure_logging()

    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables (e.g. package, version) included in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables, e.g. at the end of one package."""
    structlog.contextvars.clear_contextvars()
