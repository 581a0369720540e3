"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

    request.py       bytes → HTTPRequest (RequestParser, HTTPParseError)
    response.py      HTTPResponse, ResponseBuilder, assemble(), not_modified()
    status_codes.py  HTTPStatus with reason phrases

Nothing here knows about pages beyond their ContentType and
ContentEncoding; the decisions live in homepage.pipeline.

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    assemble,
    text_response,
    not_modified,
    format_http_date,
)
from .status_codes import HTTPStatus

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "HTTPResponse",
    "ResponseBuilder",
    "assemble",
    "text_response",
    "not_modified",
    "format_http_date",
    "HTTPStatus",
]
