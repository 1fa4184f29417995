"""Prebuilt index access.

Public exports:
    IndexLocation: Parsed HTTPS index URL, its layout and trust identity
    IndexClient: Version resolution and downloads for one index/target
    FetchedDocument: Parsed document plus the bytes its signature covers
"""

from prebuilt.index.client import FetchedDocument, IndexClient
from prebuilt.index.layout import IndexLocation

__all__ = [
    "FetchedDocument",
    "IndexClient",
    "IndexLocation",
]
