"""
Middleware wrapped around the request pipeline.

    base.py     Middleware ABC and MiddlewarePipeline
    logging.py  AccessLogMiddleware (one line per request)
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import AccessLogMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "AccessLogMiddleware",
    "RequestLog",
]
