"""Utility helpers for prebuilt."""

from prebuilt.utils.sanitization import sanitize_token, sanitize_url

__all__ = [
    "sanitize_token",
    "sanitize_url",
]
