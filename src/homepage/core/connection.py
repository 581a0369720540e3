"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted socket: framing requests out of the byte stream,
writing responses back, closing cleanly.

=============================================================================
FRAMING
=============================================================================

A request is complete once the blank line after the head has arrived
and then Content-Length more bytes:

    buffer:  GET / HTTP/1.1\r\n ... \r\n\r\n  <body>  GET /next HTTP/1.1 ...
             └────────── head ───────────┘ └─ CL ─┘ └── stays buffered ──┘

Bytes past the end of one request stay in the buffer for the next
read_request() call, so pipelined requests on a keep-alive connection
are answered in order.

=============================================================================
TIMEOUTS
=============================================================================

    OPEN          timeout              TimeoutError (caller closes)
    KEEP_ALIVE    keep_alive_timeout   None (idle client, close)

set_keep_alive() moves a connection to KEEP_ALIVE after a response;
the next complete request moves it back to OPEN.

=============================================================================
"""

import logging
import socket
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..http.request import HTTPParseError


logger = logging.getLogger(__name__)

HEAD_TERMINATOR = b"\r\n\r\n"
DRAIN_TIMEOUT = 0.5


class ConnectionState(Enum):
    OPEN = "open"
    KEEP_ALIVE = "keep_alive"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    One client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client (ip, port).
        id: Short random id used to correlate log lines.
        state: Which timeout applies to the next read, or CLOSED.
        requests_handled: Requests read so far.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.OPEN
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request: head, blank line, Content-Length body.

        Returns:
            The request bytes, or None if the client closed the connection
            or went idle between keep-alive requests.

        Raises:
            TimeoutError: The first request did not arrive in time.
            HTTPParseError: The request grew past max_request_size.
        """
        idle = self.state == ConnectionState.KEEP_ALIVE
        if idle:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while HEAD_TERMINATOR not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    if self._buffer:
                        logger.debug(f"[{self.id}] Client closed mid-head")
                    return None
                self._buffer += chunk
                self._check_size()

            header_end = self._buffer.find(HEAD_TERMINATOR)
            body_start = header_end + len(HEAD_TERMINATOR)
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    # The parser reports the short body
                    break
                self._buffer += chunk
                self._check_size()

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.state = ConnectionState.OPEN
            return request_data

        except socket.timeout:
            if idle:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _check_size(self):
        if len(self._buffer) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""
        return data

    @staticmethod
    def _parse_content_length(head: bytes) -> int:
        """
        Content-Length from the raw head, 0 when absent or unusable.

        Only used to know how many bytes to wait for; the parser
        validates the value properly.
        """
        for line in head.decode("latin-1").lower().split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(int(line.split(":", 1)[1].strip()), 0)
                except ValueError:
                    return 0
        return 0

    def send_response(self, data: bytes) -> bool:
        """
        Write a serialized response.

        Returns:
            True if everything was sent, False if the client went away.
        """
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        return True

    def set_keep_alive(self):
        """Wait for the next request with keep_alive_timeout."""
        self.state = ConnectionState.KEEP_ALIVE

    def close(self, drain: bool = True):
        """
        Half-close, drain what the client still sends, then close.

        Draining keeps unread request bytes from turning our FIN into a
        RST that could discard the response before the client reads it.
        It can wait up to DRAIN_TIMEOUT per read; drain=False skips it
        where the calling thread must not block.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        if drain:
            try:
                self.socket.settimeout(DRAIN_TIMEOUT)
                while self.socket.recv(1024):
                    pass
            except OSError:
                pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
