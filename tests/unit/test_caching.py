"""
Unit tests for ETag validation.
"""

import pytest

from homepage.pipeline.caching import CacheDecision, validate_cache


@pytest.mark.parametrize("etag,if_none_match,expected", [
    (None, None, CacheDecision.UNCACHED),
    (None, "v1", CacheDecision.UNCACHED),
    ("v1", "v1", CacheDecision.NOT_MODIFIED),
    ("v1", None, CacheDecision.CACHEABLE),
    ("v1", "v2", CacheDecision.CACHEABLE),
    ("v1", "V1", CacheDecision.CACHEABLE),
    ("v1", "v1, v2", CacheDecision.CACHEABLE),
    ("v1", "*", CacheDecision.CACHEABLE),
    ("v1", 'W/"v1"', CacheDecision.CACHEABLE),
    ("v1", "", CacheDecision.CACHEABLE),
])
def test_validate_cache(etag, if_none_match, expected):
    assert validate_cache(etag, if_none_match) is expected
