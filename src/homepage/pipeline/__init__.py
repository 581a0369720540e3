"""
Request pipeline: the decisions between a parsed request and its response.

    guards.py       the ordered stages (method, length, lookup, cache, ...)
    negotiation.py  Accept-Encoding parsing and variant selection
    caching.py      ETag / If-None-Match validation
    pipeline.py     RequestPipeline, the reducer over the stages
"""

from .caching import CacheDecision, validate_cache
from .guards import Continue, RequestContext, Respond
from .negotiation import accepted_encodings, negotiate
from .pipeline import STAGES, RequestPipeline

__all__ = [
    "CacheDecision",
    "validate_cache",
    "Continue",
    "RequestContext",
    "Respond",
    "accepted_encodings",
    "negotiate",
    "STAGES",
    "RequestPipeline",
]
