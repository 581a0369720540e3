"""
=============================================================================
CONTENT NEGOTIATION
=============================================================================

Picks which stored representation of a page to send.

    Request:  Accept-Encoding: gzip, deflate, br
    Page:     {"file": "about.html", "gzip": "about.html.gz"}

    ┌───────────────────┬──────────────────┬──────────────────────────────┐
    │ page source       │ client has gzip? │ served                       │
    ├───────────────────┼──────────────────┼──────────────────────────────┤
    │ inline text       │ (ignored)        │ identity, UTF-8 of the text  │
    │ file + gzip file  │ yes              │ gzip, bytes of the gzip file │
    │ file + gzip file  │ no               │ identity, bytes of the file  │
    │ file only         │ (ignored)        │ identity, bytes of the file  │
    └───────────────────┴──────────────────┴──────────────────────────────┘

Nothing is compressed at request time. A gzip variant exists only if
someone put a pre-compressed file next to the original.

=============================================================================
PARSING RULES
=============================================================================

Deliberately literal:

    "gzip, br"        → {identity, gzip}
    " gzip "          → {identity, gzip}      (whitespace trimmed)
    "GZIP"            → {identity}            (case-sensitive)
    "gzip;q=0.5"      → {identity}            (q-values are not parsed)
    (header absent)   → {identity}

identity is always in the set: every client can take unencoded bytes.

=============================================================================
"""

import logging
from typing import FrozenSet, Optional, Tuple

from ..content.assets import AssetReader
from ..content.store import ContentEncoding, FileSource, InlineSource, PageSource


logger = logging.getLogger(__name__)


def accepted_encodings(accept_encoding: Optional[str]) -> FrozenSet[ContentEncoding]:
    """
    Encodings a client accepts, from its Accept-Encoding header value.

    Args:
        accept_encoding: Raw header value, or None if absent.
    """
    encodings = {ContentEncoding.IDENTITY}
    if accept_encoding:
        tokens = [token.strip() for token in accept_encoding.split(",")]
        if ContentEncoding.GZIP.value in tokens:
            encodings.add(ContentEncoding.GZIP)
    return frozenset(encodings)


def negotiate(
    accepted: FrozenSet[ContentEncoding],
    source: PageSource,
    reader: AssetReader,
) -> Tuple[ContentEncoding, bytes]:
    """
    Resolve a page source to the encoding and bytes to send.

    Args:
        accepted: Result of accepted_encodings().
        source: The page's source variant.
        reader: File access for file-backed pages.

    Returns:
        (encoding, body bytes)

    Raises:
        ContentReadError: If a file-backed variant cannot be read.
    """
    if isinstance(source, InlineSource):
        logger.debug("Serving inline text")
        return ContentEncoding.IDENTITY, source.text.encode("utf-8")

    if isinstance(source, FileSource):
        if ContentEncoding.GZIP in accepted and source.gzip_path is not None:
            logger.debug(f"Serving gzip variant {source.gzip_path}")
            return ContentEncoding.GZIP, reader.read(source.gzip_path)

        logger.debug(f"Serving identity variant {source.identity_path}")
        return ContentEncoding.IDENTITY, reader.read(source.identity_path)

    raise TypeError(f"unknown page source: {type(source).__name__}")
