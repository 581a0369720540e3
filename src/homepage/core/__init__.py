"""
=============================================================================
TRANSPORT
=============================================================================

    SocketServer    listening socket and accept loop (main thread)
         │
         │ Connection per accepted socket
         ▼
    ThreadPool      fixed workers, bounded queue; 503 when full
         │
         │ one worker owns the connection until it closes
         ▼
    Connection      request framing, response writes, clean close

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
