"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

The listen/accept half of the transport. It knows nothing about HTTP:
every accepted socket is wrapped in a Connection and handed to a
callback.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer Internals                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    bind()                                                            │
    │        ├──► _create_socket()   SO_REUSEADDR, TCP_NODELAY            │
    │        ├──► bind + listen      failure → BindError                   │
    │        └──► address            real port, even for port 0          │
    │                                                                      │
    │    start(callback)             calls bind() if not done yet         │
    │        ├──► _setup_signals()   SIGINT/SIGTERM → shutdown()          │
    │        ├──► ready.set()                                              │
    │        └──► _accept_loop()     blocks until shutdown()              │
    │                 └──► callback(Connection(...))                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

accept() runs with a 1 second timeout so the loop can notice shutdown()
without a wake-up connection.
=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class BindError(OSError):
    """
    The server could not bind or listen on its address.

    Typical causes: address already in use, permission denied for a port
    below 1024, or an address that does not belong to this host.

    Attributes:
        address: The (host, port) that failed.
    """

    def __init__(self, address: Tuple[str, int], error: OSError):
        super().__init__(error.errno, f"Failed to bind to {address[0]}:{address[1]}: {error.strerror or error}")
        self.address = address
        self.error = error


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config)
        server.start(handle_connection)   # blocks until shutdown()

    From another thread:
        server.wait_until_ready(5.0)
        host, port = server.address      # the real port, even for port=0
        server.shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._bound_address: Optional[Tuple[str, int]] = None
        self._ready = threading.Event()
        self._shutdown_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) once listening, else the configured one."""
        if self._bound_address is not None:
            return self._bound_address
        return (self.config.host, self.config.port)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. False on timeout."""
        return self._ready.wait(timeout)

    def _create_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.config.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)

        # Restarting right after a stop must not fail on TIME_WAIT sockets
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        sock.settimeout(1.0)
        return sock

    def _setup_signals(self):
        """
        SIGINT (Ctrl+C) and SIGTERM (docker stop, systemd) trigger a
        graceful shutdown. Python only allows this on the main thread; a
        server started from another thread (tests, embedding) skips it.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def bind(self) -> Tuple[str, int]:
        """
        Bind and listen without accepting yet.

        Returns:
            The bound (host, port).

        Raises:
            BindError: The address could not be bound or listened on.
        """
        address = (self.config.host, self.config.port)
        self._socket = self._create_socket()

        try:
            self._socket.bind(address)
            self._socket.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to bind to {address[0]}:{address[1]}: {e}")
            self._socket.close()
            self._socket = None
            raise BindError(address, e) from e

        self._bound_address = self._socket.getsockname()[:2]
        host, port = self._bound_address
        logger.info(f"Server listening on {host}:{port}")
        return self._bound_address

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until shutdown() is called. Binds first when
        bind() was not called.

        Args:
            connection_handler: Called with every accepted Connection, on
                                the accept thread. It must not block.

        Raises:
            BindError: The address could not be bound or listened on.
        """
        if self._socket is None:
            self.bind()

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()
        self._ready.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Stop the accept loop. Idempotent, callable from any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._running = False
        self._ready.clear()
        self._shutdown_event.set()
        logger.info("Socket server stopped")

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._shutdown_event.wait(timeout)
