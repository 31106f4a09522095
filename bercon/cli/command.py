"""bercon-cmd -- Run RCon commands and print the responses."""

import concurrent.futures
import sys

from bercon.cli._common import (
    EXIT_COMMAND_ERROR,
    EXIT_INTERRUPTED,
    EXIT_OK,
    EXIT_USAGE_ERROR,
    base_parser,
    install_sigterm_handler,
    make_connection,
    setup_logging,
)
from bercon.rcon import BattlEyeCommand, RconError
from bercon.rcon.connection import DEFAULT_EXECUTE_TIMEOUT


def _print_catalog() -> None:
    width = max(len(cmd.usage) for cmd in BattlEyeCommand)
    for cmd in BattlEyeCommand:
        print(f"{cmd.usage:<{width}s}  {cmd.description}")


def main() -> int:
    parser = base_parser("Run BattlEye RCon commands and print the responses")
    parser.add_argument(
        "commands", nargs="*", metavar="COMMAND", help="command line(s); read one per line from stdin when omitted"
    )
    parser.add_argument("--list", action="store_true", help="list known commands and exit")
    args = parser.parse_args()
    setup_logging(args.verbose)

    if args.list:
        _print_catalog()
        return EXIT_OK

    commands = args.commands or [line.strip() for line in sys.stdin if line.strip()]
    if not commands:
        print("No commands given", file=sys.stderr)
        return EXIT_USAGE_ERROR

    try:
        conn = make_connection(args)
        if not conn.connect():
            print(f"Login to {conn.host}:{conn.port} failed", file=sys.stderr)
            return EXIT_USAGE_ERROR
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    except (ValueError, RconError) as e:
        print(f"Connection error: {e}", file=sys.stderr)
        return EXIT_USAGE_ERROR

    install_sigterm_handler()
    wait = args.timeout if args.timeout is not None else DEFAULT_EXECUTE_TIMEOUT
    has_error = False

    try:
        for text in commands:
            try:
                response = conn.execute(text, timeout=wait)
            except concurrent.futures.TimeoutError:
                print(f"{text}: no response within {wait}s", file=sys.stderr)
                has_error = True
                continue
            if len(commands) > 1 and not args.terse:
                print(f"> {text}")
            print(response, flush=True)
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    except RconError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_COMMAND_ERROR
    finally:
        conn.disconnect()

    return EXIT_COMMAND_ERROR if has_error else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
