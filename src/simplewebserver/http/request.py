"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into structured HTTPRequest objects
(RFC 7230), and provides the small helpers route handlers use on them.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    POST /search?q=cats HTTP/1.1\r\n          ← request line          │
    │    ─┬── ─────┬─┬───── ────┬───                                       │
    │   Method   Path Query   Version                                      │
    │                                                                      │
    │    Host: localhost:8080\r\n                  ← headers               │
    │    Content-Type: application/x-www-form-urlencoded\r\n               │
    │    Content-Length: 14\r\n                                            │
    │    \r\n                                      ← separator             │
    │    page=2&sort=up                            ← body                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Routes are matched against the PATH only: never the query string, never
the Host header.

=============================================================================
PATH CLEANING
=============================================================================

The transport redirects non-canonical paths before they reach the router:

    /a//b        →  301 to /a/b
    /a/./b       →  301 to /a/b
    /a/../b      →  301 to /b
    /static/x/   →  unchanged (trailing slash is kept)

clean_path() computes the canonical form.

=============================================================================
FORM PARAMETERS
=============================================================================

parse_params() flattens URL-encoded parameters into a plain dict, keeping
only the FIRST value of each name:

    body:  a=1&a=2        query: b=3&a=9
    ─────────────────────────────────────
    {"a": "1", "b": "3"}

Body (form) values come before query values, so a form field shadows a
query parameter of the same name.
=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, List
from urllib.parse import parse_qs, urlparse, unquote
import logging
import posixpath
import re


logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the status code the transport should answer with:

        400 Bad Request                 - Malformed request syntax
        405 Method Not Allowed          - Unknown method
        413 Payload Too Large           - Request exceeds size limit
        505 HTTP Version Not Supported  - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:        GET, POST, HEAD, ...
        path:          URL-decoded path WITHOUT the query string.
                       This is the string route patterns are searched in.
        version:       "HTTP/1.1" or "HTTP/1.0".
        headers:       Header names are lowercased at parse time.
        query_params:  "?a=1&a=2&b=3" → {"a": ["1", "2"], "b": ["3"]}
        query_string:  The raw query string, kept for redirects.
        body:          Raw body bytes (exactly Content-Length of them).
        client_address: (ip, port) of the peer.
        raw:           The original request bytes.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    query_string: str = ""
    body: bytes = b""

    client_address: tuple = ("", 0)
    raw: bytes = field(default=b"", repr=False)

    _form: Optional[Dict[str, List[str]]] = field(default=None, repr=False)

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters, lowercased (or None)."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the connection should stay open after the response.

        HTTP/1.1 keeps alive unless ``Connection: close``.
        HTTP/1.0 closes unless ``Connection: keep-alive``.
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    @property
    def form(self) -> Dict[str, List[str]]:
        """
        URL-encoded body parameters.

        Only parsed for ``application/x-www-form-urlencoded`` bodies;
        any other body yields an empty mapping. Parsed once and cached.
        """
        if self._form is None:
            if self.body and self.content_type == FORM_CONTENT_TYPE:
                self._form = parse_qs(
                    self.body.decode("utf-8", errors="replace"),
                    keep_blank_values=True,
                )
            else:
                self._form = {}
        return self._form

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter, or ``default``."""
        values = self.query_params.get(name, [])
        return values[0] if values else default


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        Raw bytes
            │
            ├── 1. size check              → 413
            ├── 2. split at \\r\\n\\r\\n
            ├── 3. request line            → 400 / 405 / 505
            ├── 4. headers (lowercased, duplicates folded with ", ")
            ├── 5. body (exactly Content-Length bytes)
            ▼
        HTTPRequest
    """

    VALID_METHODS = {
        "GET", "POST", "PUT", "DELETE", "PATCH",
        "HEAD", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: tuple = ("", 0)) -> HTTPRequest:
        """
        Parse one complete request.

        Args:
            data: Raw request bytes as read by Connection.read_request().
            client_address: Peer (ip, port), kept for logging.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_string, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=parse_qs(query_string, keep_blank_values=True),
            query_string=query_string,
            body=body[:content_length],
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(self, line: str) -> tuple:
        """
        Split ``METHOD SP REQUEST-URI SP HTTP-VERSION``.

        Returns:
            (method, decoded path, raw query string, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        if uri.startswith("/"):
            # Origin-form. Not urlparse(): "//x" would become a netloc.
            raw_path, _, query = uri.partition("?")
            raw_path = raw_path.split("#", 1)[0]
        else:
            # Absolute-form URIs (proxies) carry scheme and host; only the
            # path takes part in routing.
            parsed = urlparse(uri)
            raw_path, query = parsed.path, parsed.query

        path = unquote(raw_path) or "/"
        return method, path, query, version

    def _parse_headers(self, lines: List[str]) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            # Obsolete line folding: continuation of the previous header
            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple = ("", 0),
    max_size: int = 10 * 1024 * 1024,
) -> HTTPRequest:
    """Parse a request with a one-off RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)


def clean_path(path: str) -> str:
    """
    Canonical form of a request path.

    Collapses repeated slashes and resolves ``.`` and ``..`` segments
    (never above the root). A trailing slash on the input is kept.

    Examples:
        >>> clean_path("/a//b/./c/..")
        '/a/b'
        >>> clean_path("/../../etc/passwd")
        '/etc/passwd'
        >>> clean_path("/docs/")
        '/docs/'
    """
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path

    cleaned = posixpath.normpath(path)
    # POSIX keeps exactly two leading slashes; HTTP paths don't.
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")

    if path.endswith("/") and cleaned != "/":
        cleaned += "/"
    return cleaned


def parse_params(request: HTTPRequest) -> Dict[str, str]:
    """
    Flatten a request's form and query parameters to name → first value.

    Multi-valued parameters collapse silently to their first occurrence.
    A name that somehow carries no values is skipped with a warning; it
    does not fail the call.

    Example:
        # GET /?a=1&a=2&b=3
        parse_params(request)  # {"a": "1", "b": "3"}
    """
    merged: Dict[str, List[str]] = {}
    for source in (request.form, request.query_params):
        for name, values in source.items():
            merged.setdefault(name, []).extend(values)

    params: Dict[str, str] = {}
    for name, values in merged.items():
        if values:
            params[name] = values[0]
        else:
            logger.warning(f"No parameter value found for key {name!r}")
    return params
