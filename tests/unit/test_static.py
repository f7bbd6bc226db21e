"""
Unit tests for static file resolution and serving.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from simplewebserver.handlers.static import (
    StaticFileResolver,
    resolve_static_file,
    serve_file,
    parse_range,
    UNSATISFIABLE,
)
from simplewebserver.http.request import HTTPRequest
from simplewebserver.http.response import format_http_date
from simplewebserver.http.status_codes import HTTPStatus


FIXED_MTIME = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc).timestamp()


def make_request(path: str = "/", method: str = "GET", **headers) -> HTTPRequest:
    return HTTPRequest(
        method=method,
        path=path,
        headers={name.replace("_", "-").lower(): value for name, value in headers.items()},
    )


class TestStaticFileResolver:
    """Tests for mapping request paths onto files."""

    def test_existing_file(self, static_dir: Path):
        resolver = StaticFileResolver(static_dir)

        assert resolver.resolve("/img/logo.png") == (static_dir / "img" / "logo.png").resolve()

    def test_root_is_made_absolute(self, static_dir: Path, monkeypatch):
        monkeypatch.chdir(static_dir.parent)
        resolver = StaticFileResolver("static")

        assert resolver.root_dir.is_absolute()
        assert resolver.resolve("/index.html") is not None

    def test_missing_file(self, static_dir: Path):
        assert StaticFileResolver(static_dir).resolve("/nope.txt") is None

    def test_directory_not_servable(self, static_dir: Path):
        resolver = StaticFileResolver(static_dir)

        assert resolver.resolve("/docs") is None
        assert resolver.resolve("/docs/") is None
        assert resolver.resolve("/") is None

    def test_missing_root(self, tmp_path: Path):
        assert StaticFileResolver(tmp_path / "does-not-exist").resolve("/a.txt") is None

    def test_traversal_rejected(self, static_dir: Path, caplog):
        resolver = StaticFileResolver(static_dir)

        with caplog.at_level(logging.WARNING):
            assert resolver.resolve("/../secret.txt") is None

        assert "traversal" in caplog.text.lower()

    def test_symlink_escaping_root_rejected(self, static_dir: Path):
        link = static_dir / "leak.txt"
        try:
            link.symlink_to(static_dir.parent / "secret.txt")
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported here")

        assert StaticFileResolver(static_dir).resolve("/leak.txt") is None

    def test_dot_segments_inside_root(self, static_dir: Path):
        resolver = StaticFileResolver(static_dir)

        assert resolver.resolve("/docs/../index.html") == (static_dir / "index.html").resolve()

    def test_resolve_static_file_function(self, static_dir: Path):
        assert resolve_static_file(str(static_dir), "/index.html") is not None
        assert resolve_static_file(str(static_dir), "/docs") is None

    def test_nul_byte_not_servable(self, static_dir: Path):
        resolver = StaticFileResolver(static_dir)

        assert resolver.resolve("/img\x00.png") is None
        assert resolver.resolve("/index.html\x00") is None


class TestServeFile:
    """Tests for building file responses."""

    def test_full_file(self, static_dir: Path):
        path = static_dir / "img" / "logo.png"
        response = serve_file(make_request("/img/logo.png"), path)

        assert response.status == HTTPStatus.OK
        assert response.body == path.read_bytes()
        assert response.headers["Content-Type"] == "image/png"
        assert response.headers["Accept-Ranges"] == "bytes"
        assert "Last-Modified" in response.headers
        assert "Cache-Control" not in response.headers

    def test_text_content_type_has_charset(self, static_dir: Path):
        response = serve_file(make_request("/index.html"), static_dir / "index.html")
        assert response.headers["Content-Type"] == "text/html; charset=utf-8"

    def test_unknown_extension(self, static_dir: Path):
        response = serve_file(make_request("/data.bin"), static_dir / "data.bin")
        assert response.headers["Content-Type"] == "application/octet-stream"

    def test_missing_file_raises(self, static_dir: Path):
        with pytest.raises(OSError):
            serve_file(make_request("/gone"), static_dir / "gone.txt")

    def test_not_modified(self, static_dir: Path):
        path = static_dir / "index.html"
        os.utime(path, (FIXED_MTIME, FIXED_MTIME))
        since = format_http_date(datetime.fromtimestamp(FIXED_MTIME, tz=timezone.utc))

        response = serve_file(make_request("/index.html", if_modified_since=since), path)

        assert response.status == HTTPStatus.NOT_MODIFIED
        assert response.body == b""

    def test_modified_since_older_date(self, static_dir: Path):
        path = static_dir / "index.html"
        os.utime(path, (FIXED_MTIME, FIXED_MTIME))

        response = serve_file(
            make_request("/index.html", if_modified_since="Mon, 01 Jan 2001 00:00:00 GMT"),
            path,
        )

        assert response.status == HTTPStatus.OK

    def test_garbage_if_modified_since_ignored(self, static_dir: Path):
        response = serve_file(
            make_request("/index.html", if_modified_since="yesterday"),
            static_dir / "index.html",
        )
        assert response.status == HTTPStatus.OK

    def test_range(self, static_dir: Path):
        response = serve_file(make_request("/data.bin", range="bytes=10-19"), static_dir / "data.bin")

        assert response.status == HTTPStatus.PARTIAL_CONTENT
        assert response.body == bytes(range(10, 20))
        assert response.headers["Content-Range"] == "bytes 10-19/256"

    def test_suffix_range(self, static_dir: Path):
        response = serve_file(make_request("/data.bin", range="bytes=-6"), static_dir / "data.bin")

        assert response.status == HTTPStatus.PARTIAL_CONTENT
        assert response.body == bytes(range(250, 256))
        assert response.headers["Content-Range"] == "bytes 250-255/256"

    def test_unsatisfiable_range(self, static_dir: Path):
        response = serve_file(make_request("/data.bin", range="bytes=1000-"), static_dir / "data.bin")

        assert response.status == HTTPStatus.RANGE_NOT_SATISFIABLE
        assert response.headers["Content-Range"] == "bytes */256"
        assert response.body == b""

    def test_range_on_empty_file(self, tmp_path: Path):
        empty = tmp_path / "empty.txt"
        empty.write_bytes(b"")

        response = serve_file(make_request("/empty.txt", range="bytes=0-"), empty)

        assert response.status == HTTPStatus.RANGE_NOT_SATISFIABLE
        assert response.headers["Content-Range"] == "bytes */0"

    def test_multi_range_ignored(self, static_dir: Path):
        response = serve_file(make_request("/data.bin", range="bytes=0-1,5-6"), static_dir / "data.bin")

        assert response.status == HTTPStatus.OK
        assert len(response.body) == 256


class TestParseRange:
    """Tests for Range header parsing."""

    @pytest.mark.parametrize("header, expected", [
        ("bytes=0-99", (0, 99)),
        ("bytes=100-", (100, 999)),
        ("bytes=-100", (900, 999)),
        ("bytes=-5000", (0, 999)),
        ("bytes=990-5000", (990, 999)),
        ("bytes=1000-", UNSATISFIABLE),
        ("bytes=2000-1500", UNSATISFIABLE),
        ("bytes=-0", UNSATISFIABLE),
        ("bytes=5-1", None),
        ("bytes=a-b", None),
        ("items=0-1", None),
        ("bytes=0-1,3-4", None),
        ("bytes 0-1", None),
    ])
    def test_parse_range(self, header: str, expected):
        assert parse_range(header, 1000) == expected

    def test_empty_file(self):
        assert parse_range("bytes=0-", 0) == UNSATISFIABLE
        assert parse_range("bytes=3-", 0) == UNSATISFIABLE
        assert parse_range("bytes=0-10", 0) == UNSATISFIABLE
