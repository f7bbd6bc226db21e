"""
=============================================================================
SIMPLEWEBSERVER CLI ENTRY POINT
=============================================================================

Serves a static directory through the fallback chain. No routes are
registered, so every request is a static file or a 404.

    # ./static on localhost:8080
    python -m simplewebserver

    # Another directory, one-day cache, all interfaces
    python -m simplewebserver --static ./public --max-age 86400 --host 0.0.0.0

Unset options fall back to the HTTP_* environment variables read by
ServerConfig.from_env(), then to the defaults.
=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import ServerConfig, max_age_directive
from .core import BindError
from .server import SimpleWebServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="simplewebserver",
        description="Regex-routed HTTP server serving a static directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m simplewebserver                          # ./static on 127.0.0.1:8080
  python -m simplewebserver --port 3000              # Custom port
  python -m simplewebserver --static ./public        # Another directory
  python -m simplewebserver --max-age 0              # Disable browser caching
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for containers)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080)"
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Minimum worker threads (max will be 2x this)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # STATIC FILES
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--static", "-s",
        default=None,
        help="Static files directory (default: ./static)"
    )

    parser.add_argument(
        "--max-age",
        type=int,
        default=None,
        help="Cache-Control max-age for static files, in seconds (default: 604800)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"SimpleWebServer {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment-based config with the given CLI options applied on top."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.min_workers = args.workers
        config.max_workers = max(args.workers * 2, config.max_workers)
    if args.static is not None:
        config.static_dir = args.static
    if args.max_age is not None:
        config.static_cache_control = max_age_directive(args.max_age)
    if args.log_level is not None:
        config.log_level = args.log_level

    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        server = SimpleWebServer(config_from_args(args))
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    try:
        server.run()
    except BindError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
