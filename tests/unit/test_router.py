"""
Unit tests for the pattern router.
"""

import re
import threading

import pytest

from simplewebserver.http.router import (
    PatternRouter,
    PatternRoute,
    PatternCompileError,
    RequestHandler,
    HandlerFunc,
    FallbackProvider,
)
from simplewebserver.http.request import HTTPRequest
from simplewebserver.http.response import HTTPResponse, ResponseBuilder, ok
from simplewebserver.http.status_codes import HTTPStatus


def make_request(path: str, method: str = "GET") -> HTTPRequest:
    """Helper to create a request for testing."""
    return HTTPRequest(method=method, path=path)


def named_handler(name: str):
    """Handler function answering with its own name."""
    def handler(request: HTTPRequest) -> HTTPResponse:
        return ok(name)
    return handler


class RecordingFallback(FallbackProvider):
    """Fallback that remembers which requests reached it."""

    def __init__(self):
        self.requests = []

    def resolve_fallback(self, request: HTTPRequest) -> HTTPResponse:
        self.requests.append(request)
        return ResponseBuilder().status(HTTPStatus.NOT_FOUND).text("fallback").build()


class TestRegistration:
    """Tests for handle(), handle_func() and route()."""

    def test_handle_func_appends_route(self):
        router = PatternRouter()
        route = router.handle_func(r"^/users$", named_handler("users"))

        assert len(router) == 1
        assert isinstance(route, PatternRoute)
        assert route.pattern.pattern == r"^/users$"
        assert router.routes() == (route,)

    def test_handle_accepts_request_handler(self):
        class Echo(RequestHandler):
            def serve(self, request):
                return ok(request.path)

        router = PatternRouter()
        router.handle(r"^/echo", Echo())

        response = router.dispatch(make_request("/echo/abc"))
        assert response.body == b"/echo/abc"

    def test_handle_rejects_plain_function(self):
        router = PatternRouter()

        with pytest.raises(TypeError):
            router.handle(r"^/x$", named_handler("x"))

        assert len(router) == 0

    def test_handle_func_rejects_non_callable(self):
        router = PatternRouter()

        with pytest.raises(TypeError):
            router.handle_func(r"^/x$", "not a function")

    def test_invalid_pattern_raises_and_adds_nothing(self):
        router = PatternRouter()
        router.handle_func(r"^/ok$", named_handler("ok"))

        with pytest.raises(PatternCompileError) as exc_info:
            router.handle_func("([", named_handler("broken"))

        assert exc_info.value.pattern == "(["
        assert isinstance(exc_info.value.error, re.error)
        assert len(router) == 1

    def test_pattern_compile_error_is_value_error(self):
        router = PatternRouter()

        with pytest.raises(ValueError):
            router.handle_func("*oops", named_handler("x"))

    def test_route_decorator(self):
        router = PatternRouter()

        @router.route(r"^/hello$")
        def hello(request):
            return ok("Hello!")

        # The decorated function itself is returned unchanged
        assert hello(make_request("/hello")).body == b"Hello!"
        assert router.dispatch(make_request("/hello")).body == b"Hello!"

    def test_routes_keep_registration_order(self):
        router = PatternRouter()
        for pattern in (r"^/c", r"^/a", r"^/b"):
            router.handle_func(pattern, named_handler(pattern))

        assert [r.pattern.pattern for r in router.routes()] == [r"^/c", r"^/a", r"^/b"]

    def test_print_routes(self, capsys):
        router = PatternRouter()
        router.handle_func(r"^/health$", named_handler("health"))
        router.print_routes()

        out = capsys.readouterr().out
        assert "^/health$" in out
        assert "HandlerFunc" in out


class TestDispatch:
    """Tests for first-match-wins dispatch."""

    def test_first_registered_wins(self):
        router = PatternRouter()
        router.handle_func(r"^/a", named_handler("first"))
        router.handle_func(r"^/a/b", named_handler("second"))

        assert router.dispatch(make_request("/a/b")).body == b"first"

    def test_later_route_used_when_earlier_misses(self):
        router = PatternRouter()
        router.handle_func(r"^/a/b", named_handler("specific"))
        router.handle_func(r"^/a", named_handler("general"))

        assert router.dispatch(make_request("/a/b")).body == b"specific"
        assert router.dispatch(make_request("/a/c")).body == b"general"

    def test_duplicate_pattern_creates_two_entries(self):
        router = PatternRouter()
        first = named_handler("first")
        router.handle_func(r"^/dup$", first)
        router.handle_func(r"^/dup$", first)

        assert len(router) == 2
        assert router.routes()[0] is not router.routes()[1]
        assert router.dispatch(make_request("/dup")).body == b"first"

    def test_duplicate_pattern_second_unreachable(self):
        router = PatternRouter()
        router.handle_func(r"^/dup$", named_handler("first"))
        router.handle_func(r"^/dup$", named_handler("second"))

        assert router.dispatch(make_request("/dup")).body == b"first"

    def test_unanchored_pattern_matches_anywhere(self):
        router = PatternRouter()
        router.handle_func("a", named_handler("letter-a"))

        assert router.dispatch(make_request("/static/cat.png")).body == b"letter-a"
        assert router.match("/xyz") is None

    def test_anchored_pattern(self):
        router = PatternRouter()
        router.handle_func(r"^/a$", named_handler("exact"))

        assert router.match("/a") is not None
        assert router.match("/a/b") is None

    def test_only_path_is_matched(self):
        router = PatternRouter()
        router.handle_func(r"page=1", named_handler("query"))

        request = HTTPRequest(method="GET", path="/list", query_string="page=1")
        response = router.dispatch(request)

        assert response.status == HTTPStatus.NOT_FOUND

    def test_method_does_not_affect_routing(self):
        router = PatternRouter()
        router.handle_func(r"^/form$", named_handler("form"))

        for method in ("GET", "POST", "DELETE"):
            assert router.dispatch(make_request("/form", method)).body == b"form"

    def test_handler_exception_propagates(self):
        router = PatternRouter()

        def boom(request):
            raise RuntimeError("boom")

        router.handle_func(r"^/boom$", boom)

        with pytest.raises(RuntimeError, match="boom"):
            router.dispatch(make_request("/boom"))


class TestFallback:
    """Tests for unmatched requests."""

    def test_empty_router_uses_fallback(self):
        fallback = RecordingFallback()
        router = PatternRouter(fallback=fallback)

        response = router.dispatch(make_request("/anything"))

        assert response.body == b"fallback"
        assert [r.path for r in fallback.requests] == ["/anything"]

    def test_unmatched_request_uses_fallback(self):
        fallback = RecordingFallback()
        router = PatternRouter(fallback=fallback)
        router.handle_func(r"^/api/", named_handler("api"))

        router.dispatch(make_request("/api/users"))
        router.dispatch(make_request("/other"))

        assert [r.path for r in fallback.requests] == ["/other"]

    def test_standalone_router_plain_not_found(self):
        router = PatternRouter()

        response = router.dispatch(make_request("/missing"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.headers["Content-Type"] == "text/plain"
        assert response.body == b"404 Not Found"

    def test_fallback_can_be_attached_later(self):
        router = PatternRouter()
        fallback = RecordingFallback()
        router.fallback = fallback

        assert router.dispatch(make_request("/x")).body == b"fallback"


class TestHandlerFunc:
    """Tests for the plain-function adapter."""

    def test_serve_calls_function(self):
        handler = HandlerFunc(named_handler("wrapped"))
        assert handler.serve(make_request("/")).body == b"wrapped"

    def test_repr_names_function(self):
        def index(request):
            return ok("")

        assert "index" in repr(HandlerFunc(index))


class TestConcurrentRegistration:
    """Registration while dispatching must never expose a partial table."""

    def test_register_while_dispatching(self):
        router = PatternRouter()
        router.handle_func(r"^/base$", named_handler("base"))
        errors = []
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                try:
                    assert router.dispatch(make_request("/base")).body == b"base"
                except Exception as e:  # collected for the main thread
                    errors.append(e)
                    return

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for t in threads:
            t.start()

        for i in range(200):
            router.handle_func(rf"^/r{i}$", named_handler(str(i)))

        stop.set()
        for t in threads:
            t.join()

        assert errors == []
        assert len(router) == 201
        assert router.dispatch(make_request("/r150")).body == b"150"
