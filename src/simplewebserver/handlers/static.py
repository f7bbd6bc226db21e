"""
=============================================================================
STATIC FILE FALLBACK
=============================================================================

When no route matches, the server tries to answer from a static
directory before giving up with "not found".

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    STATIC FALLBACK CHAIN                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   GET /img/logo.png        static_dir = /srv/static                 │
    │        │                                                             │
    │        ▼                                                             │
    │   StaticFileResolver.resolve("/img/logo.png")                       │
    │        │   /srv/static + img/logo.png → /srv/static/img/logo.png    │
    │        │                                                             │
    │        ├── exists, not a directory, inside root ──► serve_file()    │
    │        │                                             200 + bytes     │
    │        │                                                             │
    │        └── anything else ──────────────────────► not-found handler  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

"Not servable" is a plain None, not an exception. A missing file, a
directory, a permission error and a path escaping the root all look the
same to the caller.

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

    GET /../../etc/passwd

    naive join:     /srv/static/../../etc/passwd → /etc/passwd   (BAD)

The joined path is resolved (``..`` collapsed, symlinks followed) and
must still be inside the resolved root:

    full_path = (root / request_path.lstrip("/")).resolve()
    full_path.relative_to(root)       # ValueError → not servable

Requests that stay inside the root resolve to the same file a naive join
would give. The transport already redirects un-clean paths, so this only
triggers for requests built by hand or for symlinks pointing outside.

=============================================================================
CONDITIONAL AND PARTIAL REQUESTS
=============================================================================

    If-Modified-Since >= mtime   → 304 Not Modified, no body
    Range: bytes=0-99            → 206 Partial Content, first 100 bytes
    Range: bytes=500-            → 206, from byte 500 to the end
    Range: bytes=-100            → 206, the last 100 bytes
    Range: bytes=9999- (too far) → 416, Content-Range: bytes */<size>
    Range: bytes=0-1,5-6         → ignored, full 200 (single ranges only)
=============================================================================
"""

import os
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple, Union

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, format_http_date, parse_http_date
from ..http.status_codes import HTTPStatus
from ..http.mime_types import get_content_type


logger = logging.getLogger(__name__)


class StaticFileResolver:
    """
    Maps request paths onto files below a root directory.

    The root does not have to exist; if it doesn't, nothing is servable.

    Usage:
        resolver = StaticFileResolver("/srv/static")
        path = resolver.resolve("/img/logo.png")
        if path is not None:
            response = serve_file(request, path)
    """

    def __init__(self, static_dir: Union[str, Path]):
        # Resolve once so later checks don't depend on the working directory
        self.root_dir = Path(static_dir).resolve()

    def resolve(self, request_path: str) -> Optional[Path]:
        """
        Absolute path of the file serving ``request_path``, or None.

        Only an existing non-directory inside the root is servable. Any
        filesystem error counts as not servable.
        """
        relative = request_path.lstrip("/")

        try:
            full_path = (self.root_dir / relative).resolve()
        except (OSError, RuntimeError, ValueError):
            # RuntimeError: symlink loop on older Pythons. ValueError: NUL byte
            return None

        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Path traversal attempt: {request_path!r}")
            return None

        try:
            if full_path.is_dir() or not full_path.exists():
                return None
        except (OSError, ValueError):
            return None

        return full_path


def resolve_static_file(static_dir: Union[str, Path], request_path: str) -> Optional[Path]:
    """One-shot form of ``StaticFileResolver(static_dir).resolve(request_path)``."""
    return StaticFileResolver(static_dir).resolve(request_path)


def serve_file(request: HTTPRequest, path: Path) -> HTTPResponse:
    """
    Build the response carrying the file at ``path``.

    Content-Type comes from the file extension. Cache-Control is left to
    the caller.

    Raises:
        OSError: The file could not be read (vanished since it was
                 resolved, permission denied, ...).
    """
    stat = path.stat()
    size = stat.st_size
    mtime = datetime.fromtimestamp(int(stat.st_mtime), tz=timezone.utc)

    # ─────────────────────────────────────────────────────────────────────
    # CONDITIONAL REQUEST
    # ─────────────────────────────────────────────────────────────────────
    if_modified_since = request.get_header("if-modified-since")
    if if_modified_since and request.method in ("GET", "HEAD"):
        since = parse_http_date(if_modified_since)
        if since is not None and mtime <= since:
            return (ResponseBuilder()
                .status(HTTPStatus.NOT_MODIFIED)
                .header("Last-Modified", format_http_date(mtime))
                .build())

    builder = (ResponseBuilder()
        .content_type(get_content_type(str(path)))
        .header("Last-Modified", format_http_date(mtime))
        .header("Accept-Ranges", "bytes"))

    # ─────────────────────────────────────────────────────────────────────
    # RANGE REQUEST
    # ─────────────────────────────────────────────────────────────────────
    range_header = request.get_header("range")
    if range_header:
        byte_range = parse_range(range_header, size)
        if byte_range == UNSATISFIABLE:
            return (builder
                .status(HTTPStatus.RANGE_NOT_SATISFIABLE)
                .header("Content-Range", f"bytes */{size}")
                .build())
        if byte_range is not None:
            start, end = byte_range
            with open(path, "rb") as f:
                f.seek(start)
                content = f.read(end - start + 1)
            return (builder
                .status(HTTPStatus.PARTIAL_CONTENT)
                .header("Content-Range", f"bytes {start}-{end}/{size}")
                .body(content)
                .build())

    return builder.body(path.read_bytes()).build()


UNSATISFIABLE = (-1, -1)


def parse_range(header: str, size: int) -> Optional[Tuple[int, int]]:
    """
    Parse a single-range ``Range`` header against a file of ``size`` bytes.

    Returns:
        (first, last) inclusive byte positions, UNSATISFIABLE when the
        range lies outside the file, or None when the header is malformed
        or asks for several ranges (the caller then sends the full file).

    Examples:
        >>> parse_range("bytes=0-99", 1000)
        (0, 99)
        >>> parse_range("bytes=-100", 1000)
        (900, 999)
        >>> parse_range("bytes=0-1,5-6", 1000) is None
        True
    """
    unit, sep, spec = header.strip().partition("=")
    if not sep or unit.strip().lower() != "bytes" or "," in spec:
        return None

    first, dash, last = spec.strip().partition("-")
    if not dash:
        return None

    try:
        if not first:
            # Suffix range: the last N bytes
            length = int(last)
            if length < 0:
                return None
            if length == 0 or size == 0:
                return UNSATISFIABLE
            return (max(size - length, 0), size - 1)

        start = int(first)
        if start < 0:
            return None
        # A start past the end is unsatisfiable whatever the last position
        if start >= size:
            return UNSATISFIABLE
        end = int(last) if last else size - 1
    except ValueError:
        return None

    if end < start:
        return None
    return (start, min(end, size - 1))


def default_static_dir() -> str:
    """``<current working directory>/static``"""
    return os.path.join(os.getcwd(), "static")
