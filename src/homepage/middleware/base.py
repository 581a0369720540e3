"""
=============================================================================
MIDDLEWARE
=============================================================================

Wrappers around the request pipeline for concerns that are not part of
deciding the response: access logging today, anything similar later.

    ┌────────────────────────────────────────────────────────────┐
    │ AccessLogMiddleware                                        │
    │   before: start the clock                                  │
    │   ┌────────────────────────────────────────────────────┐   │
    │   │ RequestPipeline.handle(request)                    │   │
    │   │   method → length → lookup → cache → encoding → .. │   │
    │   └────────────────────────────────────────────────────┘   │
    │   after: write one access-log line                         │
    └────────────────────────────────────────────────────────────┘

A middleware sees the request on the way in and the response on the way
out, and must call next(request) unless it answers on its own.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

        class Stamp(Middleware):
            def __call__(self, request, next):
                response = next(request)
                response.set_header("X-Stamp", "1")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Args:
            request: The parsed request
            next: The rest of the chain; call it to continue

        Returns:
            The response from next(), possibly modified, or a response
            of this middleware's own
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

    First added is outermost: it sees the request first and the
    response last.

        handler = (MiddlewarePipeline()
            .add(AccessLogMiddleware())
            .wrap(request_pipeline.handle))

        response = handler(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around handler.

        Wraps in reverse so the first-added middleware ends up outermost:

            [A, B] + h  →  A(B(h))
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._bind(middleware, current)
        return current

    @staticmethod
    def _bind(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)

        return wrapped
