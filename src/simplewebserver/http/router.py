"""
=============================================================================
PATTERN ROUTER
=============================================================================

Routes requests by searching the request PATH with an ordered list of
regular expressions. The first pattern that matches wins; when none
match, the request goes to a fallback.

=============================================================================
ROUTING ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Incoming Request                                                   │
    │   GET /api/users/42                                                  │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  PATTERN ROUTER        (tried in registration order)        │   │
    │   │                                                              │   │
    │   │   1. ^/health$         → health      no                      │   │
    │   │   2. ^/api/            → api         MATCH! ── stop here     │   │
    │   │   3. ^/api/users/\\d+   → user        (never tried)           │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        │ no route matched?                                           │
    │        ▼                                                             │
    │   fallback provider set?                                             │
    │     yes → provider.resolve_fallback(request)   (static file / 404)   │
    │     no  → default_not_found(request)           (plain 404)           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
MATCHING SEMANTICS
=============================================================================

Patterns are SEARCHED in the path, not matched against all of it:

    Pattern      Path            Match?
    ─────────    ────────────    ──────
    ^/a          /a/b            yes     (anchored at the start only)
    ^/a$         /a/b            no
    a            /static/a.png   yes     (anywhere in the path!)
    \\.css$       /x/site.css     yes

Anchor with ``^`` and ``$`` when a whole-path match is wanted. Only the
path takes part: never the query string or the host.

Rules:
- FIRST MATCH WINS. A later, more specific pattern never beats an earlier
  general one. Register specific patterns first.
- NO DEDUPLICATION. Registering the same pattern twice gives two entries;
  the second one is unreachable, which is not an error.
- An EMPTY table is valid; every request goes to the fallback.

=============================================================================
HANDLERS
=============================================================================

A handler is anything with the RequestHandler capability:

    class Echo(RequestHandler):
        def serve(self, request):
            return ok(request.path)

    router.handle(r"^/echo", Echo())

Plain functions go through handle_func(), which wraps them in a
HandlerFunc:

    router.handle_func(r"^/ping$", lambda request: ok("pong"))

    @router.route(r"^/hello$")
    def hello(request):
        return ok("Hello!")

=============================================================================
CONCURRENCY
=============================================================================

The route table is an immutable tuple. Registration builds a new tuple
under a lock and swaps it in; dispatch reads the attribute once and
iterates that snapshot without locking. Registering routes while the
server is running is therefore safe: each request sees either the old or
the new table in full.
=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Tuple
import logging
import re
import threading

from .request import HTTPRequest
from .response import HTTPResponse, default_not_found


logger = logging.getLogger(__name__)


HandlerFunction = Callable[[HTTPRequest], HTTPResponse]


class PatternCompileError(ValueError):
    """
    A route pattern is not a valid regular expression.

    Raised at registration time, never at request time. Treat it as a
    startup configuration error: the route is NOT added.

    Attributes:
        pattern: The offending pattern string.
        error: The underlying ``re.error``.
    """

    def __init__(self, pattern: str, error: re.error):
        super().__init__(f"Invalid route pattern {pattern!r}: {error}")
        self.pattern = pattern
        self.error = error


class RequestHandler(ABC):
    """The capability every route handler has: serve a request."""

    @abstractmethod
    def serve(self, request: HTTPRequest) -> HTTPResponse:
        """Produce the response for ``request``."""


class HandlerFunc(RequestHandler):
    """Adapter turning a plain ``request -> response`` function into a RequestHandler."""

    def __init__(self, func: HandlerFunction):
        if not callable(func):
            raise TypeError(f"Handler function must be callable, got {type(func).__name__}")
        self.func = func

    def serve(self, request: HTTPRequest) -> HTTPResponse:
        return self.func(request)

    def __repr__(self) -> str:
        name = getattr(self.func, "__qualname__", repr(self.func))
        return f"HandlerFunc({name})"


class FallbackProvider(ABC):
    """
    Whatever answers requests that no route matched.

    The router holds a non-owning reference to one of these. A
    SimpleWebServer is the usual provider (static file, then not-found).
    """

    @abstractmethod
    def resolve_fallback(self, request: HTTPRequest) -> HTTPResponse:
        """Answer an unmatched request."""


@dataclass(frozen=True)
class PatternRoute:
    """
    A compiled pattern paired with its handler. Immutable once created.

    Example:
        PatternRoute(
            pattern=re.compile(r"^/api/"),
            handler=HandlerFunc(api),
        )
    """

    pattern: re.Pattern
    handler: RequestHandler

    def matches(self, path: str) -> bool:
        """Unanchored search of the pattern in ``path``."""
        return self.pattern.search(path) is not None

    def serve(self, request: HTTPRequest) -> HTTPResponse:
        return self.handler.serve(request)


class PatternRouter:
    """
    Ordered table of PatternRoutes with first-match-wins dispatch.

    Usage:
        router = PatternRouter()
        router.handle_func(r"^/api/", api)
        router.handle_func(r"^/$", index)

        response = router.dispatch(request)

    Attributes:
        fallback: Optional FallbackProvider for unmatched requests. When
                  None, unmatched requests get a plain 404 regardless of
                  any server's customized not-found handler.
    """

    def __init__(self, fallback: Optional[FallbackProvider] = None):
        self._routes: Tuple[PatternRoute, ...] = ()
        self._lock = threading.Lock()
        self.fallback = fallback

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def handle(self, pattern: str, handler: RequestHandler) -> PatternRoute:
        """
        Register ``handler`` for paths in which ``pattern`` is found.

        Args:
            pattern: Regular expression (Python ``re`` syntax).
            handler: A RequestHandler.

        Returns:
            The appended PatternRoute.

        Raises:
            PatternCompileError: ``pattern`` does not compile. No route
                                 is added.
            TypeError: ``handler`` is not a RequestHandler.
        """
        if not isinstance(handler, RequestHandler):
            raise TypeError(
                f"handler must be a RequestHandler, got {type(handler).__name__}; "
                f"use handle_func() for plain functions"
            )

        try:
            compiled = re.compile(pattern)
        except re.error as e:
            raise PatternCompileError(pattern, e) from e

        route = PatternRoute(pattern=compiled, handler=handler)
        with self._lock:
            self._routes = self._routes + (route,)

        logger.debug(f"Registered route {pattern!r} -> {handler!r}")
        return route

    def handle_func(self, pattern: str, func: HandlerFunction) -> PatternRoute:
        """Register a plain ``request -> response`` function. See handle()."""
        return self.handle(pattern, HandlerFunc(func))

    def route(self, pattern: str) -> Callable[[HandlerFunction], HandlerFunction]:
        """
        Decorator form of handle_func().

        The pattern is compiled when the decorator is applied, so a bad
        pattern fails at import time of the module defining the handler.

        Usage:
            @router.route(r"^/hello$")
            def hello(request):
                return ok("Hello!")
        """
        def decorator(func: HandlerFunction) -> HandlerFunction:
            self.handle_func(pattern, func)
            return func
        return decorator

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def match(self, path: str) -> Optional[PatternRoute]:
        """First route whose pattern is found in ``path``, or None."""
        for route in self._routes:
            if route.matches(path):
                return route
        return None

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Send ``request`` to the first matching route, else to the fallback.

        Handler exceptions are NOT caught here; they propagate to the
        caller (the transport decides what to do with them).
        """
        route = self.match(request.path)
        if route is not None:
            return route.serve(request)

        if self.fallback is not None:
            return self.fallback.resolve_fallback(request)
        return default_not_found(request)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> Tuple[PatternRoute, ...]:
        """Snapshot of the route table, in registration order."""
        return self._routes

    def __len__(self) -> int:
        return len(self._routes)

    def print_routes(self) -> None:
        """
        Print the route table (startup banner).

        Example output:
            Registered Routes:
            ------------------------------------------------------------
              1. ^/health$                 HandlerFunc(health)
              2. ^/api/                    HandlerFunc(api)
            ------------------------------------------------------------
        """
        print("\nRegistered Routes:")
        print("-" * 60)
        for position, route in enumerate(self._routes, start=1):
            print(f"  {position:2}. {route.pattern.pattern:24} {route.handler!r}")
        if not self._routes:
            print("  (none, every request uses the fallback)")
        print("-" * 60)
