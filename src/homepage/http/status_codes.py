"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The statuses this server can produce, and nothing else.

    ┌──────┬────────────────────────┬─────────────────────────────────────┐
    │ code │ phrase                 │ produced by                         │
    ├──────┼────────────────────────┼─────────────────────────────────────┤
    │ 200  │ OK                     │ assembly stage                      │
    │ 304  │ Not Modified           │ cache guard (If-None-Match == ETag) │
    │ 404  │ Not Found              │ lookup guard                        │
    │ 405  │ Method Not Allowed     │ method guard (anything but GET)     │
    │ 414  │ URI Too Long           │ URI length guard                    │
    │ 500  │ Internal Server Error  │ unreadable asset, handler crash     │
    │ 503  │ Service Unavailable    │ worker queue full                   │
    └──────┴────────────────────────┴─────────────────────────────────────┘

Malformed requests get no status at all: the connection is dropped.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status code with its reason phrase.

    IntEnum so that HTTPStatus.OK == 200 and f"{status}" renders "200".
    """

    OK = 200
    NOT_MODIFIED = 304
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    URI_TOO_LONG = 414
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503

    def __str__(self) -> str:
        return str(self.value)

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line."""
        return _STATUS_PHRASES[self]

    @property
    def allows_body(self) -> bool:
        """
        Whether a response with this status may carry a body.

        304 never does (RFC 7232 §4.1), so it also gets no Content-Length.
        """
        return self is not HTTPStatus.NOT_MODIFIED


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.URI_TOO_LONG: "URI Too Long",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}
