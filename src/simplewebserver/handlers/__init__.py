"""
=============================================================================
HANDLERS MODULE
=============================================================================

Built-in request handling that sits behind the router.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ StaticFileResolver   request path → file under the static root    │
    │ resolve_static_file  one-shot resolve                             │
    │ serve_file           file → 200 / 206 / 304 / 416 response        │
    └─────────────────────────────────────────────────────────────────────┘

Route handlers themselves are user code: any RequestHandler, or a plain
function registered with handle_func().
=============================================================================
"""

from .static import (
    StaticFileResolver,
    resolve_static_file,
    serve_file,
    parse_range,
    default_static_dir,
)

__all__ = [
    "StaticFileResolver",
    "resolve_static_file",
    "serve_file",
    "parse_range",
    "default_static_dir",
]
