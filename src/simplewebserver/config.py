"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for SimpleWebServer.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m simplewebserver --port 3000                      │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTP_PORT=3000 python -m simplewebserver                   │
    │                                                                      │
    │   3. Defaults in ServerConfig                                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The static-file settings here are only the initial values: a running
server keeps its own ``static_dir`` and ``static_file_cache_param``
attributes, which callers may change at any time.
=============================================================================
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import logging
import os


DEFAULT_STATIC_CACHE_CONTROL = "max-age=604800"  # one week

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK         host, port, backlog, buffer_size, timeout
    HTTP            keep_alive, keep_alive_timeout, max_request_size
    THREADING       min_workers, max_workers, queue_size
    STATIC FILES    static_dir, static_cache_control
    LOGGING         log_level
    IDENTITY        server_name

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. "0.0.0.0" listens on all interfaces."""

    port: int = 8080
    """Port to listen on. 0 lets the OS pick a free port."""

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    buffer_size: int = 8192
    """Bytes read from a client socket per recv() call."""

    timeout: Optional[float] = 30.0
    """Socket timeout for the first request on a connection, in seconds."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024  # 10 MB

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100
    """Connections waiting for a worker. When full, clients get a 503."""

    # ─────────────────────────────────────────────────────────────────────
    # STATIC FILES
    # ─────────────────────────────────────────────────────────────────────

    static_dir: Optional[str] = None
    """
    Root directory for fallback static files.
    None means "<current working directory>/static", resolved once when
    the server is constructed.
    """

    static_cache_control: str = DEFAULT_STATIC_CACHE_CONTROL
    """Cache-Control value sent with every static file."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    server_name: str = "SimpleWebServer/1.0"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST            Server host (default: 127.0.0.1)
        HTTP_PORT            Server port (default: 8080)
        HTTP_WORKERS         Max worker threads (default: 16)
        HTTP_TIMEOUT         Request timeout in seconds (default: 30)
        HTTP_STATIC_DIR      Static files directory (default: ./static)
        HTTP_STATIC_MAX_AGE  Static Cache-Control max-age in seconds
                             (default: 604800)
        HTTP_LOG_LEVEL       Logging level (default: INFO)

        =====================================================================
        """
        max_age = os.getenv("HTTP_STATIC_MAX_AGE")
        return cls(
            host=os.getenv("HTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            max_workers=int(os.getenv("HTTP_WORKERS", "16")),
            timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
            static_dir=os.getenv("HTTP_STATIC_DIR"),
            static_cache_control=(
                max_age_directive(int(max_age)) if max_age is not None
                else DEFAULT_STATIC_CACHE_CONTROL
            ),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values (fail fast, at startup).

        Raises:
            ValueError: On the first invalid value found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level.upper(), logging.INFO)


def max_age_directive(age: int) -> str:
    """
    Cache-Control directive for a max age in seconds.

    No validation: a negative age gives a well-formed but meaningless
    ``max-age=-1``.
    """
    return f"max-age={age}"


def parse_address(address: str) -> Tuple[str, int]:
    """
    Split a ``host:port`` bind address.

    Examples:
        >>> parse_address("127.0.0.1:8080")
        ('127.0.0.1', 8080)
        >>> parse_address(":8080")        # all interfaces
        ('0.0.0.0', 8080)
        >>> parse_address("[::1]:9000")
        ('::1', 9000)

    Raises:
        ValueError: No port, or the port is not a number in 0-65535.
    """
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"Address must be host:port, got {address!r}")
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"Invalid port in address {address!r}") from None
    if not 0 <= port_number < 65536:
        raise ValueError(f"Port out of range in address {address!r}. Must be 0-65535.")

    host = host.strip("[]")
    return (host or "0.0.0.0", port_number)
