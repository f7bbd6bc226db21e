"""
=============================================================================
TRANSPORT CORE
=============================================================================

The HTTP transport the router sits on: raw sockets, buffered connections
and a worker pool. The server hands it one entry point and this layer
does the listening, accepting, reading and writing.

    SocketServer ──accept──► Connection ──submit──► ThreadPool worker
=============================================================================
"""

from .socket_server import SocketServer, BindError
from .connection import Connection, ConnectionState, RequestTooLargeError
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "BindError",
    "Connection",
    "ConnectionState",
    "RequestTooLargeError",
    "ThreadPool",
]
