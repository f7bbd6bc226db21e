"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses (RFC 7230) and provides the default plaintext
responders the server falls back to.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 200 OK\r\n                   ← status line               │
    │    Content-Type: image/png\r\n           ← headers                   │
    │    Cache-Control: max-age=604800\r\n                                 │
    │    Content-Length: 5120\r\n              ← auto-added                │
    │    Date: Sat, 17 Oct 2026 12:00:00 GMT\r\n  ← auto-added             │
    │    Server: SimpleWebServer/1.0\r\n       ← auto-added                │
    │    \r\n                                  ← separator                 │
    │    <5120 bytes of PNG>                   ← body                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BUILDER PATTERN
=============================================================================

Handlers return an HTTPResponse value; ResponseBuilder is the fluent way
to make one:

    ResponseBuilder()
        .status(HTTPStatus.OK)
        .header("Cache-Control", "max-age=86400")
        .text("hello")
        .build()

Every builder method returns ``self`` except build().

=============================================================================
DEFAULT RESPONDERS
=============================================================================

    default_not_found(request)
        404, Content-Type: text/plain, body "404 Not Found"

    default_internal_error(request, error)
        500, Content-Type: text/plain,
        body "500 Internal Server Error\\n" + str(error)

These are what a fresh SimpleWebServer uses for its not_found_handler and
internal_error_handler; both can be replaced.
=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Dict, Any, Union
import json

from .request import HTTPRequest
from .status_codes import HTTPStatus, status_phrase


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized onto a socket.

        Handler returns          to_bytes()              Connection sends
        HTTPResponse    ─────►   serializes    ─────►    raw bytes
    """

    status: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """``HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE``"""
        return f"{self.version} {int(self.status)} {status_phrase(self.status)}"

    def has_header(self, name: str) -> bool:
        """Case-insensitive check for a header the handler set."""
        lowered = name.lower()
        return any(key.lower() == lowered for key in self.headers)

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header, replacing any existing one whatever its case."""
        lowered = name.lower()
        for key in [key for key in self.headers if key.lower() == lowered]:
            del self.headers[key]
        self.headers[name] = value
        return self

    def set_default_header(self, name: str, value: str) -> "HTTPResponse":
        if not self.has_header(name):
            self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def to_bytes(self, server_name: str = "SimpleWebServer/1.0", include_body: bool = True) -> bytes:
        """
        Serialize the response.

        Content-Length, Date and Server are added when the handler did not
        set them. ``include_body=False`` is used for HEAD requests: the
        headers (Content-Length included) are identical to the GET
        response, only the body bytes are left off.
        """
        response_headers = dict(self.headers)
        present = {name.lower() for name in response_headers}

        if "content-length" not in present:
            response_headers["Content-Length"] = str(len(self.body))
        if "date" not in present:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if "server" not in present:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        if not include_body:
            return header_bytes
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

    Usage:
        response = (ResponseBuilder()
            .status(HTTPStatus.NOT_FOUND)
            .text("404 Not Found", content_type="text/plain")
            .build())
    """

    def __init__(self):
        self._status: int = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: int) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set the raw body; strings are UTF-8 encoded."""
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        return self.content_type(content_type).body(text)

    def html(self, html: str) -> "ResponseBuilder":
        return self.text(html, content_type="text/html; charset=utf-8")

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        payload = json.dumps(data, indent=2 if pretty else None, ensure_ascii=False)
        return self.text(payload, content_type="application/json; charset=utf-8")

    def cache_control(self, directive: str) -> "ResponseBuilder":
        """Set Cache-Control to ``directive`` verbatim (e.g. ``max-age=604800``)."""
        return self.header("Cache-Control", directive)

    def redirect(self, location: str, permanent: bool = False) -> "ResponseBuilder":
        """
        Redirect to ``location``.

        301 for permanent moves (clients may cache it), 302 otherwise.
        """
        status = HTTPStatus.MOVED_PERMANENTLY if permanent else HTTPStatus.FOUND
        return (self.status(status)
            .header("Location", location)
            .text(f'<a href="{location}">{status_phrase(status)}</a>.\n',
                  content_type="text/html; charset=utf-8"))

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


# =============================================================================
# HTTP DATES
# =============================================================================

_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an RFC 7231 IMF-fixdate.

    Example:
        Sat, 17 Oct 2026 09:30:00 GMT
    """
    dt = dt.astimezone(timezone.utc)
    return (
        f"{_DAYS[dt.weekday()]}, "
        f"{dt.day:02d} {_MONTHS[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def parse_http_date(value: str) -> Optional[datetime]:
    """
    Parse an HTTP date header value.

    Returns None for anything unparseable, so a garbage If-Modified-Since
    simply counts as absent.
    """
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def ok(body: Union[str, bytes, dict, list] = "", content_type: Optional[str] = None) -> HTTPResponse:
    """
    200 OK. Dicts and lists become JSON, strings plain text.

    Example:
        server.handle_func(r"^/ping$", lambda request: ok("pong"))
    """
    builder = ResponseBuilder()
    if isinstance(body, (dict, list)):
        builder.json(body)
    elif isinstance(body, str):
        builder.text(body, content_type or "text/plain; charset=utf-8")
    else:
        builder.body(body).content_type(content_type or "application/octet-stream")
    return builder.build()


def redirect(location: str, permanent: bool = False) -> HTTPResponse:
    return ResponseBuilder().redirect(location, permanent).build()


def error_response(status: int, message: Optional[str] = None) -> HTTPResponse:
    """
    Plaintext error used by the transport itself (parse errors, overload,
    escaped handler exceptions). Not the server's configurable handlers.
    """
    text = message or f"{int(status)} {status_phrase(status)}"
    return ResponseBuilder().status(status).text(text).build()


def default_not_found(request: HTTPRequest) -> HTTPResponse:
    """Plaintext ``404 Not Found``."""
    return (ResponseBuilder()
        .status(HTTPStatus.NOT_FOUND)
        .content_type("text/plain")
        .body("404 Not Found")
        .build())


def default_internal_error(request: HTTPRequest, error: BaseException) -> HTTPResponse:
    """Plaintext ``500 Internal Server Error`` followed by the error message."""
    return (ResponseBuilder()
        .status(HTTPStatus.INTERNAL_SERVER_ERROR)
        .content_type("text/plain")
        .body("500 Internal Server Error\n" + str(error))
        .build())
