"""
=============================================================================
CACHE VALIDATION
=============================================================================

ETag handling for a single page.

    First visit                         Revisit
    ───────────                         ───────
    GET /about                          GET /about
                                        If-None-Match: a7
         │                                   │
         ▼                                   ▼
    200 OK                              304 Not Modified
    Cache-Control: public               ETag: a7
    ETag: a7                            (no body)
    <body>

The comparison is plain string equality against a single value. Lists
("a7, b2"), the wildcard "*" and weak validators (W/"a7") get no special
treatment: they simply do not match.

=============================================================================
"""

from enum import Enum
from typing import Optional


class CacheDecision(Enum):
    """What the cache guard concluded about a request."""

    UNCACHED = "uncached"          # page has no etag: no caching headers at all
    NOT_MODIFIED = "not_modified"  # client copy is current: answer 304
    CACHEABLE = "cacheable"        # send the body with Cache-Control + ETag


def validate_cache(page_etag: Optional[str], if_none_match: Optional[str]) -> CacheDecision:
    """
    Compare a page's etag with the client's If-None-Match value.

    Args:
        page_etag: The page's stored etag, or None if caching is disabled.
        if_none_match: The request header value, or None if absent.
    """
    if page_etag is None:
        return CacheDecision.UNCACHED
    if if_none_match is not None and if_none_match == page_etag:
        return CacheDecision.NOT_MODIFIED
    return CacheDecision.CACHEABLE
