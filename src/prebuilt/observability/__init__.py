"""Observability module for prebuilt.

Structured logging with a console renderer for interactive use and a JSON
renderer for CI.

Example:
    >>> from prebuilt.observability import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("prebuilt.package.resolved", package="foo", version="1.2.0")
"""

from prebuilt.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    sanitize_for_logging,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "sanitize_for_logging",
]
