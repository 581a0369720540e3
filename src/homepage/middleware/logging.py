"""
Access logging.

One line per answered request on the "homepage.access" logger, either
Apache-style text:

    127.0.0.1 - - [18/Oct/2026:09:12:01 +0000] "GET /about HTTP/1.1" 200 1834 0.41ms

or one JSON object per line for log shippers. Route or silence it
independently of the application log:

    logging.getLogger("homepage.access").setLevel(logging.WARNING)
"""

import json
import logging
import time
from dataclasses import asdict, dataclass
from typing import Optional

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("homepage.access")

LOG_FORMATS = ("text", "json")


@dataclass
class RequestLog:
    """One access-log entry."""

    client_ip: str
    method: str
    target: str
    version: str
    status_code: int
    content_length: int
    content_encoding: str
    user_agent: str
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {self.target} {self.version}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class AccessLogMiddleware(Middleware):
    """
    Times each request and logs the outcome.

    Should be the outermost middleware so the duration covers everything
    and every request is logged, including those answered by a guard.
    """

    def __init__(
        self,
        log_format: str = "text",
        log_level: int = logging.INFO,
        skip_targets: Optional[list[str]] = None,
    ):
        """
        Args:
            log_format: "text" (Apache-like) or "json".
            log_level: Level the entries are logged at.
            skip_targets: Request targets that are answered but not logged.
        """
        if log_format not in LOG_FORMATS:
            raise ValueError(
                f"log_format must be one of {', '.join(LOG_FORMATS)}, got {log_format!r}"
            )
        self.log_format = log_format
        self.log_level = log_level
        self.skip_targets = set(skip_targets or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        start = time.perf_counter()
        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(
                f"Request failed: {request.method} {request.target} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        if request.target in self.skip_targets:
            return response

        entry = RequestLog(
            client_ip=request.client_address[0],
            method=request.method,
            target=request.target,
            version=request.version,
            status_code=int(response.status),
            content_length=len(response.body),
            content_encoding=response.headers.get("Content-Encoding", "identity"),
            user_agent=request.user_agent or "-",
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return response
