"""Shared CLI infrastructure for bercon-cmd/bercon-monitor."""

import argparse
import logging
import signal
from datetime import datetime
from typing import Any, Optional

import bercon
from bercon.rcon import RconConnection

# Exit codes
EXIT_OK = 0
EXIT_COMMAND_ERROR = 1
EXIT_USAGE_ERROR = 2
EXIT_INTERRUPTED = 130

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def base_parser(description: str) -> argparse.ArgumentParser:
    """Create ArgumentParser with common flags shared by all CLI tools."""
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("-H", "--host", default=None, help="server host (default: BERCON_HOST)")
    parser.add_argument("-P", "--port", type=int, default=None, help="RCon port (default: BERCON_PORT or 2302)")
    parser.add_argument("-p", "--password", default=None, help="RCon password (default: BERCON_PASSWORD)")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="seconds without a reply before the server counts as lost; bercon-cmd also waits this long "
        "for each response (default: 5.0, and 10.0 per response)",
    )
    parser.add_argument("--no-reconnect", action="store_true", help="do not reconnect after a lost connection")
    parser.add_argument("-t", "--terse", action="store_true", help="terse output (bare text)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging to stderr")
    return parser


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)


def make_connection(args) -> RconConnection:
    """Create an RconConnection (not yet connected) from parsed args."""
    kwargs: dict[str, Any] = {}
    if args.timeout is not None:
        kwargs["timeout"] = args.timeout
        kwargs["login_timeout"] = args.timeout
    if args.no_reconnect:
        kwargs["auto_reconnect"] = False
    return bercon.connection(args.host, args.port, args.password, **kwargs)


def format_message(text: str, *, terse: bool, when: Optional[datetime] = None) -> str:
    """Format a server message for output, timestamped unless terse."""
    if terse:
        return text
    when = when or datetime.now()
    return f"{when:%Y-%m-%d %H:%M:%S}  {text}"


def install_sigterm_handler() -> None:
    """Make SIGTERM trigger the same clean shutdown as Ctrl+C."""

    def _sigterm_handler(signum, frame):
        raise KeyboardInterrupt

    signal.signal(signal.SIGTERM, _sigterm_handler)
