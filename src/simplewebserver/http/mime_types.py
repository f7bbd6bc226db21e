"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

Static files are served with a Content-Type derived from the file
extension. Browsers refuse to run a script served as text/plain or to
render an image served as text/html, so this table matters even for a
small static server.

    style.css   →  text/css; charset=utf-8
    app.js      →  text/javascript; charset=utf-8
    logo.png    →  image/png
    archive.xyz →  application/octet-stream   (unknown: download it)

Text types get a ``charset`` parameter, binary types do not.
=============================================================================
"""

from pathlib import Path
from typing import Optional, Union


MIME_TYPES = {
    # Text
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",

    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".bmp": "image/bmp",

    # Fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",

    # Audio / video
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".mp4": "video/mp4",
    ".webm": "video/webm",

    # Documents and archives
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".tar": "application/x-tar",

    # Other
    ".wasm": "application/wasm",
    ".map": "application/json",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

_TEXT_APPLICATION_TYPES = {
    "application/json",
    "application/xml",
    "application/javascript",
    "image/svg+xml",
}


def get_mime_type(path: Union[str, Path], default: Optional[str] = None) -> str:
    """
    Look up the MIME type for a file by its (case-insensitive) extension.

    Examples:
        >>> get_mime_type("/srv/static/img/logo.PNG")
        'image/png'
        >>> get_mime_type("notes.xyz")
        'application/octet-stream'
    """
    extension = Path(path).suffix.lower()
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)


def is_text_type(mime_type: str) -> bool:
    """True for text/* and the handful of textual application/* types."""
    return mime_type.startswith("text/") or mime_type in _TEXT_APPLICATION_TYPES


def get_content_type(path: Union[str, Path], charset: str = "utf-8") -> str:
    """
    Full Content-Type header value for a file.

    Examples:
        >>> get_content_type("index.html")
        'text/html; charset=utf-8'
        >>> get_content_type("logo.png")
        'image/png'
    """
    mime_type = get_mime_type(path)
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
