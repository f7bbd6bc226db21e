"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Protocol value types and the pattern router:

    ┌──────────────────┬──────────────────────────────────────────────────┐
    │ request.py       │ HTTPRequest, RequestParser, parse_params         │
    │ response.py      │ HTTPResponse, ResponseBuilder, default responders│
    │ router.py        │ PatternRouter, PatternRoute, RequestHandler      │
    │ status_codes.py  │ HTTPStatus                                       │
    │ mime_types.py    │ Content-Type from file extension                 │
    └──────────────────┴──────────────────────────────────────────────────┘

Nothing here touches a socket; core/ does that.
=============================================================================
"""

from .request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
    parse_params,
    clean_path,
)
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,
    redirect,
    error_response,
    default_not_found,
    default_internal_error,
    format_http_date,
    parse_http_date,
)
from .router import (
    PatternRouter,
    PatternRoute,
    PatternCompileError,
    RequestHandler,
    HandlerFunc,
    FallbackProvider,
)
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, get_content_type

__all__ = [
    # Requests
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",
    "parse_params",
    "clean_path",

    # Responses
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "redirect",
    "error_response",
    "default_not_found",
    "default_internal_error",
    "format_http_date",
    "parse_http_date",

    # Routing
    "PatternRouter",
    "PatternRoute",
    "PatternCompileError",
    "RequestHandler",
    "HandlerFunc",
    "FallbackProvider",

    "HTTPStatus",
    "get_mime_type",
    "get_content_type",
]
