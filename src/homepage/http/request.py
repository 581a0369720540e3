"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes of one HTTP/1.x request into an HTTPRequest.

=============================================================================
WHAT THE PIPELINE NEEDS FROM A REQUEST
=============================================================================

    GET /about?lang=en HTTP/1.0\r\n
    ─┬─ ───────┬────── ───┬────
     │         │          └── version      → Connection header mirroring
     │         └───────────── target       → length guard, page lookup
     └─────────────────────── method       → method guard
    If-None-Match: v1\r\n                  → cache guard
    Accept-Encoding: gzip, br\r\n          → content negotiation
    Connection: keep-alive\r\n             → keep-alive intent
    \r\n

The target is kept EXACTLY as sent. Pages are keyed by the literal URI
in pages.json, so "/about?lang=en" and "/about" are different pages and
"/a%20b" is not "/a b".

The request line is decoded as UTF-8, the header lines as latin-1:

    GET /über HTTP/1.1      b"/\xc3\xbcber" → "/über"   (5 characters)
    GET /\xff HTTP/1.1      not UTF-8       → HTTPParseError

so the length guard counts characters and non-ASCII URIs in pages.json
can be matched.

=============================================================================
MALFORMED VS. DISALLOWED
=============================================================================

The parser only rejects what is not HTTP at all:

    "GARBAGE"                    → HTTPParseError (no response, close)
    "GET / HTTP/2.0"             → HTTPParseError (unsupported version)
    "DELETE / HTTP/1.1"          → parsed fine; the method guard says 405
    "GET /<200 chars> HTTP/1.1"  → parsed fine; the length guard says 414

Anything that is well-formed goes through so that the pipeline, not the
parser, decides the status code.

=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


class HTTPParseError(Exception):
    """
    The request bytes are not a valid HTTP/1.x request.

    The server logs these and closes the connection without answering.
    """


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         Request method, case preserved ("GET").
        target:         Request target exactly as received ("/a?b=1").
        version:        "HTTP/1.0" or "HTTP/1.1".
        headers:        Header map with lower-cased names.
        body:           Body bytes (Content-Length framed).
        client_address: (ip, port) of the peer.
    """

    method: str
    target: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    client_address: Tuple[str, int] = ("", 0)

    @property
    def version_info(self) -> Tuple[int, int]:
        """(major, minor) of the HTTP version: "HTTP/1.0" → (1, 0)."""
        major, minor = self.version[len("HTTP/"):].split(".")
        return int(major), int(minor)

    @property
    def connection_tokens(self) -> set[str]:
        """
        Lower-cased tokens of the Connection header.

            "Keep-Alive, Upgrade" → {"keep-alive", "upgrade"}
        """
        raw = self.headers.get("connection", "")
        return {token.strip().lower() for token in raw.split(",") if token.strip()}

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client wants the connection kept open.

        HTTP/1.1 persists unless the client says "close".
        HTTP/1.0 closes unless the client says "keep-alive".
        """
        tokens = self.connection_tokens
        if self.version_info >= (1, 1):
            return "close" not in tokens
        return "keep-alive" in tokens

    @property
    def if_none_match(self) -> Optional[str]:
        """The If-None-Match value, or None when the header is absent."""
        return self.headers.get("if-none-match")

    @property
    def accept_encoding(self) -> Optional[str]:
        """The Accept-Encoding value, or None when the header is absent."""
        return self.headers.get("accept-encoding")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

    REQUEST_LINE_PATTERN: ^(token) (target) (HTTP/d.d)$

        token   - any RFC 7230 tchar sequence; validity of the method is
                  the pipeline's business, not ours
        target  - anything without a space
        version - HTTP/X.Y, of which only 1.0 and 1.1 are accepted
    """

    REQUEST_LINE_PATTERN = re.compile(
        r"^([!#$%&'*+\-.^_`|~0-9A-Za-z]+) ([^ ]+) (HTTP/\d\.\d)$"
    )
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")
    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    # Only the first line counts when these are repeated
    FIRST_VALUE_HEADERS = frozenset({"if-none-match", "accept-encoding"})

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse one complete request.

        Args:
            data: Head, blank line, and Content-Length bytes of body.
            client_address: Peer address, kept for logging.

        Raises:
            HTTPParseError: If the request is malformed or too large.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes")

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        request_line, _, header_bytes = data[:header_end].partition(b"\r\n")
        body = data[header_end + 4:]

        try:
            line = request_line.decode("utf-8")
        except UnicodeDecodeError as e:
            raise HTTPParseError(f"Request line is not valid UTF-8: {e.reason}") from None

        method, target, version = self._parse_request_line(line)
        # Header bytes outside ASCII are invalid anyway; latin-1 never fails
        headers = self._parse_headers(header_bytes.decode("latin-1").split("\r\n"))

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(
                f"Invalid Content-Length: {headers['content-length']!r}"
            ) from None
        if content_length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {content_length}")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            target=target,
            version=version,
            headers=headers,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> Tuple[str, str, str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line[:100]!r}")

        method, target, version = match.groups()
        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(f"Unsupported HTTP version: {version}")

        return method, target, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a lower-cased dict.

        Repeated headers are joined with ", " (RFC 7230 §3.2.2), except
        If-None-Match and Accept-Encoding, where the first line wins:

            If-None-Match: v1
            If-None-Match: v2      → "v1"

        Obsolete line folding is joined onto the previous header.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                raise HTTPParseError(f"Invalid header line: {line[:100]!r}")

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()

            if name not in headers:
                headers[name] = value
                current_name = name
            elif name in self.FIRST_VALUE_HEADERS:
                # Folded continuations of an ignored line are dropped too
                current_name = None
            else:
                headers[name] += ", " + value
                current_name = name

        return headers
