"""
=============================================================================
HTTP STATUS CODES (RFC 7231)
=============================================================================

The status codes this server produces, with their reason phrases.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ 200 OK, 206 Partial Content                               │
    │  3xx   │ 301 Moved Permanently, 302 Found, 304 Not Modified        │
    │  4xx   │ 400, 403, 404, 405, 408, 413, 416                         │
    │  5xx   │ 500, 501, 503, 505                                        │
    └────────┴───────────────────────────────────────────────────────────┘

Handlers may still construct any other integer status; unknown codes are
written with the phrase "Unknown".
=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes as an IntEnum.

    Compares equal to the plain integer, so ``response.status == 404``
    works as well as ``response.status == HTTPStatus.NOT_FOUND``.
    """

    # 2xx SUCCESS
    OK = 200
    CREATED = 201
    NO_CONTENT = 204
    PARTIAL_CONTENT = 206           # Range request fulfilled

    # 3xx REDIRECTION
    MOVED_PERMANENTLY = 301         # Used for non-canonical request paths
    FOUND = 302
    NOT_MODIFIED = 304              # Cached copy is still valid

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413
    RANGE_NOT_SATISFIABLE = 416

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line (``HTTP/1.1 404 Not Found``)."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_error(self) -> bool:
        """True for 4xx and 5xx codes."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.PARTIAL_CONTENT: "Partial Content",
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.RANGE_NOT_SATISFIABLE: "Range Not Satisfiable",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}


def status_phrase(status: int) -> str:
    """Reason phrase for any integer status, enum member or not."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"
