"""
=============================================================================
SIMPLE WEB SERVER
=============================================================================

Ties the pattern router, the static-file fallback and the socket
transport together.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    SIMPLE WEB SERVER                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │ SimpleWebServer │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            │                    │                    │              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │SocketServer  │    │  ThreadPool  │    │PatternRouter │        │
    │    │ (Networking) │    │ (Concurrency)│    │ (Dispatching)│        │
    │    └──────────────┘    └──────────────┘    └──────┬───────┘        │
    │                                                   │ no match        │
    │                                                   ▼                 │
    │                                    server.resolve_fallback()        │
    │                                      static file → 200 + Cache-Ctl  │
    │                                      otherwise   → not_found_handler│
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The router only holds the server as a FallbackProvider; it never sees
the concrete class.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. SocketServer accepts the TCP connection
    2. The connection is queued in the ThreadPool (full queue → 503)
    3. A worker reads and parses the request (bad request → 4xx/505)
    4. Un-clean path (``//``, ``.``, ``..``) → 301 to the cleaned path
    5. router.dispatch(request): first matching pattern wins, else fallback
    6. Handler raised? → logged with traceback, plain 500
    7. Response serialized (HEAD: headers only) and sent
    8. Keep-alive: back to 3, otherwise close

=============================================================================
MUTABLE SETTINGS
=============================================================================

``not_found_handler``, ``internal_error_handler``, ``static_dir`` and
``static_file_cache_param`` are plain attributes, read on every request.
They may be replaced at any time, also while serving.
=============================================================================
"""

import logging
import os
import threading
import time
from typing import Callable, Optional, Tuple

from .config import ServerConfig, max_age_directive, parse_address
from .core import SocketServer, Connection, ThreadPool, RequestTooLargeError
from .handlers.static import resolve_static_file, serve_file, default_static_dir
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus,
    PatternRouter, PatternRoute, RequestHandler, FallbackProvider,
    clean_path, error_response, redirect,
    default_not_found, default_internal_error,
)


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("simplewebserver.access")


NotFoundHandler = Callable[[HTTPRequest], HTTPResponse]
InternalErrorHandler = Callable[[HTTPRequest, BaseException], HTTPResponse]


class SimpleWebServer(FallbackProvider):
    """
    Regex-routed HTTP server with a static-file fallback.

    Example:
        server = SimpleWebServer()

        @server.route(r"^/hello$")
        def hello(request):
            return ok("Hello!")

        server.handle(r"^/api/", ApiHandler())
        server.run(":8080")

    Attributes:
        not_found_handler: ``request -> response`` used when no route and
                           no static file matched.
        internal_error_handler: ``(request, error) -> response``, invoked
                                through internal_error().
        static_dir: Absolute root of the static files.
        static_file_cache_param: Cache-Control value for static files.
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        # ─────────────────────────────────────────────────────────────────
        # REPLACEABLE BEHAVIOUR
        # ─────────────────────────────────────────────────────────────────
        self.not_found_handler: NotFoundHandler = default_not_found
        self.internal_error_handler: InternalErrorHandler = default_internal_error

        # Absolute now, so a later chdir() doesn't move the static root
        if self.config.static_dir:
            self.static_dir = os.path.abspath(self.config.static_dir)
        else:
            self.static_dir = default_static_dir()
        self.static_file_cache_param = self.config.static_cache_control

        # ─────────────────────────────────────────────────────────────────
        # COMPONENTS
        # ─────────────────────────────────────────────────────────────────
        self._router = PatternRouter(fallback=self)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._socket_server = SocketServer(self.config)
        self._thread_pool: Optional[ThreadPool] = None

        self._running = False

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    @property
    def router(self) -> PatternRouter:
        return self._router

    def handle(self, pattern: str, handler: RequestHandler) -> PatternRoute:
        """Register a RequestHandler. See PatternRouter.handle()."""
        return self._router.handle(pattern, handler)

    def handle_func(self, pattern: str, func: Callable[[HTTPRequest], HTTPResponse]) -> PatternRoute:
        """Register a plain ``request -> response`` function."""
        return self._router.handle_func(pattern, func)

    def route(self, pattern: str):
        """Decorator form of handle_func()."""
        return self._router.route(pattern)

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """Route one request. Handler exceptions propagate."""
        return self._router.dispatch(request)

    # =========================================================================
    # FALLBACK AND ERROR RESPONSES
    # =========================================================================

    def set_static_file_cache_max_age(self, age: int) -> None:
        """
        Set the static Cache-Control to ``max-age=<age>``.

        Negative ages are accepted as-is.
        """
        self.static_file_cache_param = max_age_directive(age)

    def resolve_fallback(self, request: HTTPRequest) -> HTTPResponse:
        """
        Serve ``request.path`` from the static directory, or answer with
        the not-found handler.
        """
        path = resolve_static_file(self.static_dir, request.path)
        if path is None:
            return self.not_found_handler(request)

        try:
            response = serve_file(request, path)
        except OSError as e:
            logger.warning(f"Cannot read static file {path}: {e}")
            return self.not_found_handler(request)

        response.set_header("Cache-Control", self.static_file_cache_param)
        return response

    serve_static_file = resolve_fallback

    def internal_error(self, request: HTTPRequest, error: BaseException) -> HTTPResponse:
        """
        Answer with the configured internal-error handler.

        Nothing calls this automatically. Handlers that catch their own
        exceptions use it to produce a consistent 500:

            def report(request):
                try:
                    return ok(build_report())
                except ReportError as e:
                    return server.internal_error(request, e)
        """
        return self.internal_error_handler(request, error)

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) while serving, the configured one before."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until run() is accepting connections. False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def run(self, address: Optional[str] = None):
        """
        Serve until shutdown() is called or SIGINT/SIGTERM arrives.

        Args:
            address: ``"host:port"`` overriding the configured address.
                     ``":8080"`` listens on all interfaces.

        Raises:
            BindError: The address could not be bound.
            ValueError: ``address`` is malformed or the config is invalid.
        """
        if address:
            self.config.host, self.config.port = parse_address(address)
        self.config.validate()

        self._setup_logging()

        # Fails here, before any worker thread exists
        self._socket_server.bind()

        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._thread_pool.start()
        self._running = True

        self._print_startup_banner()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Stop serving. run() returns once in-flight requests finish."""
        self._socket_server.shutdown()

    def _print_startup_banner(self):
        host, port = self.address
        print()
        print("=" * 64)
        print(f"  {self.config.server_name} running")
        print(f"  http://{host}:{port}")
        print(f"  Static files: {self.static_dir} ({self.static_file_cache_param})")
        print(f"  Workers: {self.config.min_workers}-{self.config.max_workers} threads")
        print("  Press Ctrl+C to stop")
        print("=" * 64)

        self._router.print_routes()

    def _setup_logging(self):
        level = self.config.log_level_value
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("simplewebserver").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False

        if self._thread_pool is not None:
            self._thread_pool.shutdown(wait=True, timeout=30.0)
            self._thread_pool = None

        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand the connection to a worker (runs on the accept thread)."""
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            timeout=self.config.timeout,
        )

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)
            conn.close()

    def _process_connection(self, conn: Connection):
        """Keep-alive loop for one connection (runs on a worker thread)."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        logger.info(f"[{conn.id}] Bad request from {conn.client_ip}: {e}")
                        self._send_error(conn, e.status_code)
                        break

                    conn.state = conn.state.PROCESSING
                    started = time.time()
                    response = self._respond(conn, request)
                    # A handler asking to close wins
                    handler_close = any(
                        name.lower() == "connection" and value.strip().lower() == "close"
                        for name, value in response.headers.items()
                    )
                    keep_alive = (
                        request.is_keep_alive and self.config.keep_alive and not handler_close
                    )

                    if keep_alive:
                        response.set_default_header("Connection", "keep-alive")
                        response.set_default_header(
                            "Keep-Alive",
                            f"timeout={int(self.config.keep_alive_timeout)}"
                        )
                    else:
                        response.set_header("Connection", "close")

                    response_bytes = response.to_bytes(
                        self.config.server_name,
                        include_body=request.method != "HEAD",
                    )
                    sent = conn.send_response(response_bytes)

                    access_logger.info(
                        f'{conn.client_ip} "{request.method} {request.path} {request.version}" '
                        f"{int(response.status)} {len(response.body)} "
                        f"{(time.time() - started) * 1000:.1f}ms"
                    )

                    if not sent or not keep_alive:
                        break
                    conn.set_keep_alive()

                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                    break

                except RequestTooLargeError as e:
                    logger.info(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
                    break

                except OSError as e:
                    logger.warning(f"[{conn.id}] Connection error: {e}")
                    break

    def _respond(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        cleaned = clean_path(request.path)
        if cleaned != request.path:
            location = cleaned + (f"?{request.query_string}" if request.query_string else "")
            return redirect(location, permanent=True)

        try:
            return self.dispatch(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error on {request.method} {request.path}: {e}")
            return error_response(HTTPStatus.INTERNAL_SERVER_ERROR)

    def _send_error(self, conn: Connection, status: HTTPStatus):
        """Plain error for failures before routing (parse errors, overload, timeouts)."""
        response = error_response(status)
        response.set_header("Connection", "close")
        conn.send_response(response.to_bytes(self.config.server_name))


# =============================================================================
# PACKAGE DEFAULT INSTANCE
# =============================================================================

_default_server: Optional[SimpleWebServer] = None
_default_lock = threading.Lock()


def get_default_server() -> SimpleWebServer:
    """
    The process-wide default server, created on first call.

    Every call returns the same instance. It uses ``ServerConfig()``
    defaults; build your own SimpleWebServer for anything else.
    """
    global _default_server
    if _default_server is None:
        with _default_lock:
            if _default_server is None:
                _default_server = SimpleWebServer()
    return _default_server
