"""
=============================================================================
HTTP RESPONSE ASSEMBLY
=============================================================================

Builds the response head for every page and error this server sends.

=============================================================================
HEADER ORDER
=============================================================================

Headers are added in a fixed order, and only ever added - the assembler
never overwrites a header it did not set itself:

    HTTP/1.1 200 OK\r\n
    Connection: close\r\n                        ← only when mirroring the client
    Content-Type: text/html; charset=utf-8\r\n
    Content-Security-Policy: default-src 'self'\r\n
    X-Content-Type-Options: 'nosniff'\r\n
    Content-Encoding: gzip\r\n                   ← only for the gzip variant
    Cache-Control: public\r\n                    ← only for pages with an etag
    ETag: v1\r\n                                 ←
    Content-Length: 1234\r\n                     ← always last, from the body
    Date: ... / Server: ...\r\n                  ← added at serialization
    \r\n
    <body>

Content-Length is computed from the final body bytes, which means the
whole body has to be in memory before the head is complete. Pages are
small; that is the trade this server makes instead of chunked encoding.

=============================================================================
CONNECTION MIRRORING
=============================================================================

The assembler only says something about the connection when the
protocol default would be wrong:

    ┌──────────┬──────────────────────┬────────────────────────────────┐
    │ version  │ client intent        │ Connection header              │
    ├──────────┼──────────────────────┼────────────────────────────────┤
    │ HTTP/1.0 │ keep-alive           │ keep-alive  (not the default)  │
    │ HTTP/1.0 │ (none)               │ -           (close is default) │
    │ HTTP/1.1 │ close                │ close       (not the default)  │
    │ HTTP/1.1 │ (none)               │ -           (persist default)  │
    └──────────┴──────────────────────┴────────────────────────────────┘

If a Connection header saying keep-alive or close was already put on
the builder, mirroring is skipped entirely.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Union

from .request import HTTPRequest
from .status_codes import HTTPStatus
from ..content.store import ContentEncoding, ContentType


@dataclass
class HTTPResponse:
    """
    A response ready to be serialized.

    Headers keep insertion order, which is the order they go on the wire.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 404 Not Found"."""
        return f"{self.version} {self.status} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def to_bytes(
        self,
        server_name: str = "homepage",
        now: Optional[datetime] = None,
    ) -> bytes:
        """
        Serialize head and body for socket.sendall().

        Date and Server are added here rather than by the assembler so
        that assembling the same request twice gives identical responses.
        Content-Length is filled in if missing, except on 304.

        Args:
            server_name: Value for the Server header.
            now: Timestamp for the Date header (defaults to the current time).
        """
        headers = dict(self.headers)

        if self.status.allows_body and "Content-Length" not in headers:
            headers["Content-Length"] = str(len(self.body))

        if "Date" not in headers:
            headers["Date"] = format_http_date(now or datetime.now(timezone.utc))

        if "Server" not in headers:
            headers["Server"] = server_name

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        lines.append("")

        head = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        if not self.status.allows_body:
            return head
        return head + self.body


class ResponseBuilder:
    """
    Fluent builder for a response to one request.

    Each method adds one group of headers and returns self. build()
    appends Content-Length and freezes the result into an HTTPResponse.

        response = (ResponseBuilder(request, HTTPStatus.OK)
            .connection()
            .content_type(ContentType.HTML)
            .security(page.script_src)
            .content_encoding(ContentEncoding.GZIP)
            .caching(page.etag)
            .body(data)
            .build())

    Most callers should use assemble(), which calls these in the
    required order.
    """

    def __init__(self, request: HTTPRequest, status: HTTPStatus = HTTPStatus.OK):
        self._request = request
        self._status = status
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def header(self, name: str, value: str) -> "ResponseBuilder":
        """Add a header unless one with the same name is already set."""
        self._headers.setdefault(name, value)
        return self

    def connection(self) -> "ResponseBuilder":
        """Mirror the client's connection intent where the default differs."""
        preset = {
            token.strip().lower()
            for token in self._headers.get("Connection", "").split(",")
        }
        if "keep-alive" in preset or "close" in preset:
            return self

        major, minor = self._request.version_info
        keep_alive = self._request.is_keep_alive

        if keep_alive and (major, minor) == (1, 0):
            self.header("Connection", "keep-alive")
        elif not keep_alive and major == 1 and minor >= 1:
            self.header("Connection", "close")
        return self

    def content_type(self, content_type: ContentType) -> "ResponseBuilder":
        return self.header("Content-Type", content_type.header_value)

    def security(self, script_src: Optional[str] = None) -> "ResponseBuilder":
        """
        Add Content-Security-Policy and X-Content-Type-Options.

        A page may name a single script source; everything else is
        restricted to the page's own origin.
        """
        if script_src is not None:
            self.header("Content-Security-Policy", f"script-src '{script_src}'")
        else:
            self.header("Content-Security-Policy", "default-src 'self'")
        return self.header("X-Content-Type-Options", "'nosniff'")

    def content_encoding(self, encoding: Optional[ContentEncoding]) -> "ResponseBuilder":
        """Add Content-Encoding for anything but identity."""
        if encoding is not None and encoding is not ContentEncoding.IDENTITY:
            self.header("Content-Encoding", encoding.value)
        return self

    def caching(self, etag: Optional[str]) -> "ResponseBuilder":
        """Mark the response cacheable by any cache, validated by etag."""
        if etag is not None:
            self.header("Cache-Control", "public")
            self.header("ETag", etag)
        return self

    def etag(self, etag: Optional[str]) -> "ResponseBuilder":
        if etag is not None:
            self.header("ETag", etag)
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def build(self) -> HTTPResponse:
        """Add Content-Length (last) and return the response."""
        headers = dict(self._headers)
        body = self._body
        if self._status.allows_body:
            headers["Content-Length"] = str(len(body))
        else:
            body = b""

        return HTTPResponse(
            status=self._status,
            headers=headers,
            body=body,
            version=self._request.version,
        )


# =============================================================================
# ASSEMBLY FUNCTIONS
# =============================================================================
#
# The pipeline never touches ResponseBuilder directly. It calls one of:
#
#     assemble()       full response: page content or an error text
#     text_response()  plain-text error with a message
#     not_modified()   304 short-circuit
#
# =============================================================================

def assemble(
    request: HTTPRequest,
    status: HTTPStatus,
    content_type: ContentType = ContentType.PLAIN,
    body: bytes = b"",
    content_encoding: Optional[ContentEncoding] = None,
    script_src: Optional[str] = None,
    etag: Optional[str] = None,
    extra_headers: Optional[Dict[str, str]] = None,
) -> HTTPResponse:
    """
    Assemble a complete response in the canonical header order.

    Args:
        request: The request being answered (version, keep-alive intent).
        status: Response status.
        content_type: MIME type of the body.
        body: Body bytes, already encoded.
        content_encoding: Encoding chosen by negotiation, if any.
        script_src: CSP script source supplied by the page.
        etag: Set only when the page is cacheable; adds Cache-Control
              and ETag.
        extra_headers: Additional headers placed after the standard
                       ones (e.g. Allow on a 405).
    """
    builder = (ResponseBuilder(request, status)
        .connection()
        .content_type(content_type)
        .security(script_src)
        .content_encoding(content_encoding)
        .caching(etag))

    for name, value in (extra_headers or {}).items():
        builder.header(name, value)

    return builder.body(body).build()


def text_response(
    request: HTTPRequest,
    status: HTTPStatus,
    text: str,
    extra_headers: Optional[Dict[str, str]] = None,
) -> HTTPResponse:
    """Plain-text response, used for all error statuses."""
    return assemble(
        request,
        status,
        content_type=ContentType.PLAIN,
        body=text.encode("utf-8"),
        extra_headers=extra_headers,
    )


def not_modified(
    request: HTTPRequest,
    etag: str,
    script_src: Optional[str] = None,
) -> HTTPResponse:
    """
    304 Not Modified.

    No body, no Content-Type, no Content-Length. The ETag is repeated
    so caches can refresh their stored validator.
    """
    return (ResponseBuilder(request, HTTPStatus.NOT_MODIFIED)
        .connection()
        .security(script_src)
        .etag(etag)
        .build())


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an RFC 7231 HTTP-date.

    Always GMT: "Thu, 15 Jan 2026 12:30:45 GMT".
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    dt = dt.astimezone(timezone.utc)
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
