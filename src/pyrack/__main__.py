"""
=============================================================================
COMMAND LINE
=============================================================================

    python -m pyrack                          # demo chain on 127.0.0.1:8080
    python -m pyrack chain.json               # chain from a file
    python -m pyrack chain.json --describe    # print the wiring and exit

Settings start from the PYRACK_* environment variables
(ServerConfig.from_env) and command line flags override them.

=============================================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .builder import Builder
from .config import ChainConfig, ServerConfig
from .errors import ConfigurationError
from .handlers import HealthHandler, HelloWorld
from .middleware import CommonLogger, ContentLength, Honeypot, Runtime, ShowExceptions, describe_chain
from .server import Server


logger = logging.getLogger("pyrack")


def demo_builder(log_format: str = "text") -> Builder:
    """The chain served when no chain file is given."""
    return (Builder()
        .use(CommonLogger, log_format=log_format, skip_paths=["/health/live"])
        .use(ShowExceptions)
        .use(Runtime)
        .use(ContentLength)
        .use(Honeypot)
        .map("/health", HealthHandler(include_system_info=True))
        .run(HelloWorld()))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pyrack",
        description="Serve a pyrack middleware chain over HTTP/1.1",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m pyrack                          # Demo chain
  python -m pyrack chain.json --port 3000   # Chain file, custom port
  python -m pyrack --host 0.0.0.0           # Listen on all interfaces
  python -m pyrack chain.json --describe    # Show the wiring only
        """,
    )

    parser.add_argument(
        "chain",
        nargs="?",
        help="JSON chain file (default: built-in demo chain)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on (default: 8080)")

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Minimum worker threads; the pool may grow to twice this",
    )
    parser.add_argument(
        "--timeout", "-t",
        type=float,
        help="Handler deadline in seconds; slower requests get 504",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        help="Access log format for the demo chain (default: text)",
    )

    parser.add_argument(
        "--describe",
        action="store_true",
        help="Print the wired chain, outermost first, and exit",
    )
    parser.add_argument("--version", "-v", action="version", version=f"pyrack {__version__}")

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment defaults, overridden by whatever flags were given."""
    config = ServerConfig.from_env()
    if args.host:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.min_workers = args.workers
        config.max_workers = max(config.max_workers, args.workers * 2)
    if args.timeout is not None:
        config.handler_timeout = args.timeout
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format
    config.validate()
    return config


def load_builder(args: argparse.Namespace, config: ServerConfig) -> Builder:
    if args.chain:
        return Builder.from_config(ChainConfig.from_file(args.chain))
    return demo_builder(config.log_format)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        app = load_builder(args, config).build()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.describe:
        for depth, name in enumerate(describe_chain(app)):
            print(f"{'  ' * depth}{name}")
        return 0

    print(f"pyrack {__version__} serving on http://{config.host}:{config.port} (Ctrl+C to stop)")
    try:
        Server(app, config).run()
    except OSError as e:
        logger.error(f"Server error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
