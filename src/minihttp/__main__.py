"""
=============================================================================
MINIHTTP CLI ENTRY POINT
=============================================================================

    # Run with defaults (127.0.0.1:9999, serving ./public)
    python -m minihttp

    # Custom port and static root
    python -m minihttp --port 8080 --root ./site

    # Listen on all interfaces with fewer workers
    python -m minihttp --host 0.0.0.0 --workers 16

Type \\exit (any case) and press Enter to stop the server gracefully.
Ctrl+C and SIGTERM do the same.

Defaults come from the environment when set (HTTP_PORT, HTTP_STATIC_ROOT,
... see ServerConfig.from_env), and command-line flags override them.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import ServerConfig
from .control import ControlChannel
from .http.response import send_text
from .server import HTTPServer


def register_demo_handlers(server: HTTPServer) -> None:
    """The /messages endpoints, one per method."""

    @server.get("/messages")
    def get_messages(request, out):
        send_text(out, "200 OK", "Messages handler called with GET method")

    @server.post("/messages")
    def post_messages(request, out):
        send_text(out, "200 OK", "Messages handler called with POST method")


def build_parser(defaults: ServerConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="minihttp",
        description="Minimal HTTP/1.1 server: static files plus registered handlers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m minihttp                        # 127.0.0.1:9999, serving ./public
  python -m minihttp --port 8080            # Custom port
  python -m minihttp --root ./site          # Different static root
  python -m minihttp --host 0.0.0.0         # Listen on all interfaces
  python -m minihttp --no-control           # Don't read commands from stdin
        """,
    )

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Host to bind to (default: {defaults.host})",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})",
    )
    parser.add_argument(
        "--root", "-r",
        default=defaults.static_root,
        help=f"Static files directory (default: {defaults.static_root})",
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=defaults.max_workers,
        help=f"Worker threads (default: {defaults.max_workers})",
    )
    parser.add_argument(
        "--grace-period",
        type=float,
        default=defaults.grace_period,
        help=f"Seconds to let in-flight requests finish on shutdown (default: {defaults.grace_period})",
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level.upper()})",
    )
    parser.add_argument(
        "--no-control",
        action="store_true",
        help="Don't read the shutdown command from stdin",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"minihttp {__version__}",
    )
    return parser


def main(argv=None) -> int:
    try:
        defaults = ServerConfig.from_env()
    except ValueError as e:
        print(f"Error: invalid environment setting: {e}", file=sys.stderr)
        return 2

    args = build_parser(defaults).parse_args(argv)

    try:
        config = ServerConfig(
            host=args.host,
            port=args.port,
            static_root=args.root,
            max_workers=args.workers,
            grace_period=args.grace_period,
            log_level=args.log_level,
        )
        server = HTTPServer(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    register_demo_handlers(server)

    if not args.no_control:
        ControlChannel(sys.stdin, on_command=server.stop, command=config.shutdown_command).start()
        print(f"Type {config.shutdown_command} to stop the server.")

    try:
        server.start()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
