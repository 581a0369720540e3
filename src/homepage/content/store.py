"""
=============================================================================
CONTENT STORE
=============================================================================

The set of pages this server knows about, loaded once from pages.json.

=============================================================================
MANIFEST FORMAT
=============================================================================

    [
      {"uri": "/",         "text": "hello",       "etag": "v1", "contentType": "plain"},
      {"uri": "/about",    "file": "about.html",  "gzip": "about.html.gz",
                           "etag": "a7",          "contentType": "text/html"},
      {"uri": "/notes.md", "file": "notes.md",    "contentType": "markdown"}
    ]

    ┌─────────────┬──────────┬──────────────────────────────────────────────┐
    │ field       │ required │ meaning                                      │
    ├─────────────┼──────────┼──────────────────────────────────────────────┤
    │ uri         │ yes      │ exact request target, unique                 │
    │ contentType │ yes      │ html / markdown / plain (or the MIME string) │
    │ etag        │ no       │ cache validator; absent = never cached       │
    │ text        │ one of   │ inline body                                  │
    │ file        │ one of   │ identity bytes, relative to content dir      │
    │ gzip        │ no       │ gzip bytes, only together with "file"        │
    │ scriptSrc   │ no       │ CSP script-src override                      │
    └─────────────┴──────────┴──────────────────────────────────────────────┘

=============================================================================
WHY NO LOCKS?
=============================================================================

The store is built before the first socket is bound and never changes
afterwards. Pages are frozen dataclasses and the lookup table is wrapped
in a MappingProxyType, so every worker thread can read it concurrently
without synchronization.

=============================================================================
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from ..errors import ManifestError


logger = logging.getLogger(__name__)


MANIFEST_NAME = "pages.json"


class ContentType(Enum):
    """MIME type of a page. The value is the bare MIME string."""

    HTML = "text/html"
    MARKDOWN = "text/markdown"
    PLAIN = "text/plain"

    @property
    def header_value(self) -> str:
        """Value for the Content-Type header."""
        return f"{self.value}{_CONTENT_TYPE_OPTIONS[self]}"

    @classmethod
    def parse(cls, name: str) -> "ContentType":
        """
        Look up a content type by MIME string or short name.

            ContentType.parse("text/html")  → ContentType.HTML
            ContentType.parse("markdown")   → ContentType.MARKDOWN

        Raises:
            ValueError: If the name is neither.
        """
        try:
            return _CONTENT_TYPE_NAMES[name]
        except KeyError:
            raise ValueError(f"unknown content type: {name!r}") from None


# Every content type is text, so every one gets the same charset.
_CONTENT_TYPE_OPTIONS = {
    ContentType.HTML: "; charset=utf-8",
    ContentType.MARKDOWN: "; charset=utf-8",
    ContentType.PLAIN: "; charset=utf-8",
}

_CONTENT_TYPE_NAMES = {
    **{ct.value: ct for ct in ContentType},
    "html": ContentType.HTML,
    "markdown": ContentType.MARKDOWN,
    "plain": ContentType.PLAIN,
}


class ContentEncoding(Enum):
    """
    Encoding of a representation.

    Used on both sides of negotiation: what the client accepts, and which
    byte variants a page has on disk.
    """

    IDENTITY = "identity"
    GZIP = "gzip"


# =============================================================================
# PAGE SOURCES
# =============================================================================
#
# A page's bytes come from exactly one of two places:
#
#     InlineSource  ── the text is in the manifest itself
#     FileSource    ── one file per encoding, read on every request
#
# =============================================================================

@dataclass(frozen=True)
class InlineSource:
    """Body text stored directly in the manifest."""

    text: str


@dataclass(frozen=True)
class FileSource:
    """
    Body stored in files under the content directory.

    Invariant: `files` always contains ContentEncoding.IDENTITY.
    """

    files: Mapping[ContentEncoding, str]

    def __post_init__(self):
        if ContentEncoding.IDENTITY not in self.files:
            raise ValueError("file source needs an identity variant")
        # Freeze the mapping so the page stays immutable
        object.__setattr__(self, "files", MappingProxyType(dict(self.files)))

    @property
    def identity_path(self) -> str:
        return self.files[ContentEncoding.IDENTITY]

    @property
    def gzip_path(self) -> Optional[str]:
        return self.files.get(ContentEncoding.GZIP)


PageSource = Union[InlineSource, FileSource]


@dataclass(frozen=True)
class Page:
    """
    One servable resource.

    Attributes:
        uri: Exact request target this page answers to.
        source: Where the body bytes come from.
        content_type: MIME type for the Content-Type header.
        etag: Cache validator, or None to disable conditional caching.
        script_src: Optional Content-Security-Policy script source.
    """

    uri: str
    source: PageSource
    content_type: ContentType
    etag: Optional[str] = None
    script_src: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Page":
        """
        Decode one manifest entry.

        Raises:
            ValueError: If the entry violates the manifest schema.
        """
        if not isinstance(data, dict):
            raise ValueError("entry must be an object")

        uri = _require_str(data, "uri")
        etag = _optional_str(data, "etag")
        script_src = _optional_str(data, "scriptSrc")
        content_type = ContentType.parse(_require_str(data, "contentType"))

        text = _optional_str(data, "text")
        file = _optional_str(data, "file")
        gzip = _optional_str(data, "gzip")

        if text is not None and file is not None:
            raise ValueError("'text' and 'file' are mutually exclusive")

        if text is not None:
            if gzip is not None:
                raise ValueError("'gzip' requires 'file'")
            source: PageSource = InlineSource(text)
        elif file is not None:
            files = {ContentEncoding.IDENTITY: file}
            if gzip is not None:
                files[ContentEncoding.GZIP] = gzip
            source = FileSource(files)
        else:
            raise ValueError("one of 'text' or 'file' is required")

        return cls(
            uri=uri,
            source=source,
            content_type=content_type,
            etag=etag,
            script_src=script_src,
        )


def _require_str(data: Dict[str, Any], key: str) -> str:
    if key not in data:
        raise ValueError(f"missing field '{key}'")
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"field '{key}' must be a string")
    return value


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    if data.get(key) is None:
        return None
    return _require_str(data, key)


class ContentStore:
    """
    Immutable URI → Page lookup.

    =========================================================================
    LIFECYCLE
    =========================================================================

        startup                         every request
        ───────                         ─────────────
        ContentStore.load(path)  ──►    store.get(request.target)
            │                               │
            └─ ManifestError = exit 1       └─ None = 404

    =========================================================================
    """

    def __init__(self, pages: Mapping[str, Page] = None):
        self._pages: Mapping[str, Page] = MappingProxyType(dict(pages or {}))

    @classmethod
    def from_pages(cls, pages) -> "ContentStore":
        """
        Build a store from an iterable of pages.

        Raises:
            ManifestError: If two pages share a URI.
        """
        table: Dict[str, Page] = {}
        for index, page in enumerate(pages):
            if page.uri in table:
                raise ManifestError(f"duplicate uri '{page.uri}'", index=index)
            table[page.uri] = page
        return cls(table)

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "ContentStore":
        """
        Decode a manifest document.

        Raises:
            ManifestError: On invalid JSON or any schema violation.
        """
        try:
            entries = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ManifestError(f"invalid JSON: {e}") from e

        if not isinstance(entries, list):
            raise ManifestError("manifest must be a JSON array of pages")

        pages = []
        for index, entry in enumerate(entries):
            try:
                pages.append(Page.from_dict(entry))
            except ValueError as e:
                raise ManifestError(str(e), index=index) from e

        return cls.from_pages(pages)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ContentStore":
        """
        Read and decode a manifest file.

        Args:
            path: Path to pages.json.

        Raises:
            ManifestError: If the file cannot be read or decoded.
        """
        path = Path(path)
        logger.info(f"Loading manifest from {path}")
        try:
            raw = path.read_bytes()
        except OSError as e:
            raise ManifestError(f"cannot read {path}: {e.strerror or e}") from e

        store = cls.from_json(raw)
        logger.info(f"Loaded {len(store)} pages")
        return store

    def get(self, uri: str) -> Optional[Page]:
        """Return the page for `uri`, or None."""
        return self._pages.get(uri)

    def __len__(self) -> int:
        return len(self._pages)

    def __iter__(self) -> Iterator[Page]:
        return iter(self._pages.values())

    @property
    def uris(self) -> list[str]:
        return sorted(page.uri for page in self)
