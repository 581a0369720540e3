"""
=============================================================================
CONTENT
=============================================================================

What the server serves, as opposed to how it serves it.

    store.py    ContentStore, Page, ContentType, ContentEncoding
    assets.py   AssetReader (file-backed page bytes)

=============================================================================
"""

from .store import (
    MANIFEST_NAME,
    ContentEncoding,
    ContentStore,
    ContentType,
    FileSource,
    InlineSource,
    Page,
    PageSource,
)
from .assets import AssetReader

__all__ = [
    "MANIFEST_NAME",
    "AssetReader",
    "ContentEncoding",
    "ContentStore",
    "ContentType",
    "FileSource",
    "InlineSource",
    "Page",
    "PageSource",
]
