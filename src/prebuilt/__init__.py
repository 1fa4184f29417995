"""Fetch, verify and install prebuilt binaries from a signed index."""

__version__ = "0.1.0"
