"""
=============================================================================
SIMPLEWEBSERVER - Regex Routing With a Static-File Fallback
=============================================================================

A small HTTP server: request paths are searched against an ordered list
of regular expressions, the first match handles the request, and
anything unmatched is served from a static directory or answered with
"404 Not Found".

=============================================================================
QUICK START
=============================================================================

    from simplewebserver import SimpleWebServer, ok

    server = SimpleWebServer()

    @server.route(r"^/hello$")
    def hello(request):
        return ok("Hello, World!")

    server.run("127.0.0.1:8080")

    # GET /hello       → "Hello, World!"
    # GET /css/app.css → ./static/css/app.css, Cache-Control: max-age=604800
    # GET /nope        → 404 Not Found

Or with the package default server:

    import simplewebserver

    simplewebserver.handle_func(r"^/ping$", lambda request: ok("pong"))
    simplewebserver.run(":8080")

=============================================================================
PACKAGE LAYOUT
=============================================================================

    simplewebserver/
    ├── server.py          SimpleWebServer, get_default_server()
    ├── config.py          ServerConfig
    ├── http/              request, response, router, status codes, MIME
    ├── handlers/          static file resolution and serving
    └── core/              sockets, connections, thread pool

=============================================================================
"""

from typing import Callable, Optional

from .config import ServerConfig, parse_address
from .core import BindError
from .http import (
    HTTPRequest,
    HTTPResponse,
    ResponseBuilder,
    HTTPStatus,
    PatternRouter,
    PatternRoute,
    PatternCompileError,
    RequestHandler,
    HandlerFunc,
    FallbackProvider,
    parse_params,
    ok,
    redirect,
    default_not_found,
    default_internal_error,
)
from .handlers import StaticFileResolver, resolve_static_file, serve_file
from .server import SimpleWebServer, get_default_server


__version__ = "1.0.0"


# =============================================================================
# DEFAULT SERVER SHORTCUTS
# =============================================================================

def handle(pattern: str, handler: RequestHandler) -> PatternRoute:
    """Register a RequestHandler on the default server."""
    return get_default_server().handle(pattern, handler)


def handle_func(pattern: str, func: Callable[[HTTPRequest], HTTPResponse]) -> PatternRoute:
    """Register a plain function on the default server."""
    return get_default_server().handle_func(pattern, func)


def route(pattern: str):
    """Decorator registering a function on the default server."""
    return get_default_server().route(pattern)


def set_not_found_handler(handler: Callable[[HTTPRequest], HTTPResponse]) -> None:
    get_default_server().not_found_handler = handler


def set_internal_error_handler(handler: Callable[[HTTPRequest, BaseException], HTTPResponse]) -> None:
    get_default_server().internal_error_handler = handler


def run(address: Optional[str] = None) -> None:
    """Run the default server. Blocks; raises BindError on bind failure."""
    get_default_server().run(address)


__all__ = [
    "SimpleWebServer",
    "ServerConfig",
    "BindError",
    "get_default_server",
    "parse_address",

    "HTTPRequest",
    "HTTPResponse",
    "ResponseBuilder",
    "HTTPStatus",
    "ok",
    "redirect",
    "parse_params",
    "default_not_found",
    "default_internal_error",

    "PatternRouter",
    "PatternRoute",
    "PatternCompileError",
    "RequestHandler",
    "HandlerFunc",
    "FallbackProvider",

    "StaticFileResolver",
    "resolve_static_file",
    "serve_file",

    "handle",
    "handle_func",
    "route",
    "run",
    "set_not_found_handler",
    "set_internal_error_handler",

    "__version__",
]
