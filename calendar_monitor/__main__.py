"""Command-line entry for calendar_monitor."""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn, Optional

from .config_manager import ConfigManager
from .exceptions import ConfigError
from .logging_config import init_logging


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the calendar_monitor CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="calendar_monitor",
        description="Calendar monitor - current and next meeting from ICS feeds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m calendar_monitor                    # Serve on 127.0.0.1:3000
  python -m calendar_monitor --port 8080        # Serve on port 8080
  python -m calendar_monitor --once             # Print one payload and exit
        """,
    )

    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port for the web server (default: 3000, or CALENDAR_MONITOR_PORT)",
    )
    parser.add_argument(
        "--host",
        metavar="HOST",
        help="Address to bind (default: 127.0.0.1, or CALENDAR_MONITOR_HOST)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Print the current meeting payload as JSON and exit",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the calendar_monitor CLI."""
    args = _create_parser().parse_args(argv)
    init_logging()

    try:
        config = ConfigManager().load_full_config()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    init_logging(config.log_level)

    if args.port is not None:
        config.server_port = args.port
    if args.host:
        config.server_bind = args.host

    # Imported here so `--help` does not pull in aiohttp
    from .server import render_once, start_server

    if args.once:
        print(render_once(config))
    else:
        start_server(config)
    sys.exit(0)


if __name__ == "__main__":
    main()
