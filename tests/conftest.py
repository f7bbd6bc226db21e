"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Generator

import pytest

from simplewebserver import SimpleWebServer, ServerConfig
from simplewebserver.http import HTTPRequest, HTTPResponse, ok


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_form_request() -> bytes:
    """Sample HTTP POST request with a urlencoded form body."""
    body = b"a=1&a=2&b=3"
    return (
        b"POST /submit?c=4 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
        + body
    )


@pytest.fixture
def static_dir(tmp_path: Path) -> Path:
    """
    A static root laid out as:

        static/
        ├── index.html
        ├── img/logo.png
        ├── docs/            (directory, no index)
        └── data.bin         (256 bytes: 0x00..0xff)

    plus a secret.txt next to (outside) the root.
    """
    root = tmp_path / "static"
    (root / "img").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "index.html").write_text("<h1>home</h1>")
    (root / "img" / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\nfake-image")
    (root / "data.bin").write_bytes(bytes(range(256)))
    (tmp_path / "secret.txt").write_text("top secret")
    return root


@pytest.fixture
def config(static_dir: Path) -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        static_dir=str(static_dir),
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False

    def __init__(self, server: SimpleWebServer, port: int):
        self.server = server
        self.port = port
        self._thread: threading.Thread = None

    def start(self):
        """Start server in background thread and wait until it listens."""
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"address": f"127.0.0.1:{self.port}"},
            daemon=True,
        )
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


@pytest.fixture
def test_server(config: ServerConfig, free_port: int) -> Generator[TestServer, None, None]:
    """A running server with a few routes over the static_dir fixture."""
    server = SimpleWebServer(config)

    @server.route(r"^/hello$")
    def hello(request: HTTPRequest) -> HTTPResponse:
        return ok("Hello, World!")

    @server.route(r"^/api/")
    def api(request: HTTPRequest) -> HTTPResponse:
        return ok({"path": request.path, "query": request.query_string})

    @server.route(r"^/boom$")
    def boom(request: HTTPRequest) -> HTTPResponse:
        raise RuntimeError("handler exploded")

    test_srv = TestServer(server, free_port)
    test_srv.start()

    yield test_srv

    test_srv.stop()
