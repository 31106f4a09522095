"""bercon-monitor -- Print server messages as they arrive."""

import queue
import sys
import time

from bercon.cli._common import (
    EXIT_COMMAND_ERROR,
    EXIT_INTERRUPTED,
    EXIT_OK,
    EXIT_USAGE_ERROR,
    base_parser,
    format_message,
    install_sigterm_handler,
    make_connection,
    setup_logging,
)
from bercon.rcon import ConnectionHandler, ConnectionState, DisconnectReason, RconError


class _StatusPrinter(ConnectionHandler):
    """Report connection changes on stderr."""

    def on_connected(self):
        print("--- connected ---", file=sys.stderr, flush=True)

    def on_connection_failed(self):
        print("--- login failed ---", file=sys.stderr, flush=True)

    def on_disconnected(self, reason: DisconnectReason):
        if reason is DisconnectReason.CONNECTION_LOST:
            print("--- connection lost ---", file=sys.stderr, flush=True)
        elif reason is DisconnectReason.CONNECTION_FAILED:
            print("--- reconnect rejected, giving up ---", file=sys.stderr, flush=True)


def main() -> int:
    parser = base_parser("Monitor BattlEye server messages (streaming)")
    parser.add_argument("-n", "--count", type=int, default=None, help="exit after this many messages")
    args = parser.parse_args()
    setup_logging(args.verbose)

    if args.count is not None and args.count < 1:
        print(f"Invalid count: {args.count}", file=sys.stderr)
        return EXIT_USAGE_ERROR

    messages: queue.Queue = queue.Queue()

    try:
        conn = make_connection(args)
    except ValueError as e:
        print(f"Connection error: {e}", file=sys.stderr)
        return EXIT_USAGE_ERROR

    conn.add_message_handler(messages.put)
    conn.add_connection_handler(_StatusPrinter())

    try:
        if not conn.connect():
            return EXIT_USAGE_ERROR
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    except RconError as e:
        print(f"Connection error: {e}", file=sys.stderr)
        return EXIT_USAGE_ERROR

    # SIGTERM should trigger clean shutdown just like Ctrl+C
    install_sigterm_handler()

    total = 0
    has_error = False
    t0 = time.monotonic()

    try:
        while args.count is None or total < args.count:
            try:
                text = messages.get(timeout=0.5)
            except queue.Empty:
                # LOST keeps waiting for the reconnect; DISCONNECTED is final
                if conn.state is ConnectionState.DISCONNECTED:
                    has_error = True
                    break
                continue
            print(format_message(text, terse=args.terse), flush=True)
            total += 1
    except KeyboardInterrupt:
        pass
    finally:
        conn.disconnect()

    elapsed = time.monotonic() - t0
    print(f"--- {total} messages in {elapsed:.1f}s ---", file=sys.stderr)

    return EXIT_COMMAND_ERROR if has_error else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
