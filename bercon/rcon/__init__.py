"""
bercon.rcon - BattlEye RCon protocol layer.

This module provides a Python implementation of the BattlEye RCon protocol
used to administer ArmA and DayZ game servers over UDP.

Example (callbacks):
    from bercon.rcon import BattlEyeCommand, RconConnection

    conn = RconConnection("127.0.0.1", 2302)
    conn.add_message_handler(lambda text: print(f"server: {text}"))
    conn.add_command_response_handler(lambda text, seq: print(f"#{seq}: {text}"))

    if conn.connect("secret"):
        conn.send_command(BattlEyeCommand.SAY, -1, "Restart in 5 minutes")

Example (blocking):
    from bercon.rcon import RconConnection

    with RconConnection("127.0.0.1", 2302, password="secret") as conn:
        print(conn.execute("players"))
"""

from .command_queue import CommandQueue, PendingCommand
from .commands import BattlEyeCommand, build_command, lookup
from .connection import ConnectionState, RconConnection
from .constants import (
    DEFAULT_KEEPALIVE_INTERVAL,
    DEFAULT_PORT,
    DEFAULT_QUEUE_CAPACITY,
    DEFAULT_RECONNECT_DELAY,
    DEFAULT_TIMEOUT,
)
from .errors import (
    AlreadyConnectedError,
    ChecksumMismatchError,
    ConnectionLostError,
    LoginFailedError,
    MalformedFrameError,
    NoStoredCredentialsError,
    NotConnectedError,
    QueueFullError,
    RconError,
)
from .handlers import (
    CommandResponseHandler,
    ConnectionHandler,
    DisconnectReason,
    HandlerList,
    MessageHandler,
)
from .packet import (
    PacketKind,
    RconPacket,
    acknowledge_packet,
    checksum,
    command_packet,
    decode,
    encode,
    login_packet,
)
from .reassembly import ReassemblyBuffer, ReassemblyState
from .sequence import SequenceAllocator

__all__ = [
    # Connection
    "RconConnection",
    "ConnectionState",
    "DisconnectReason",
    # Handlers
    "ConnectionHandler",
    "CommandResponseHandler",
    "MessageHandler",
    "HandlerList",
    # Commands
    "BattlEyeCommand",
    "build_command",
    "lookup",
    # Packets
    "PacketKind",
    "RconPacket",
    "encode",
    "decode",
    "checksum",
    "login_packet",
    "command_packet",
    "acknowledge_packet",
    # Protocol state
    "SequenceAllocator",
    "ReassemblyBuffer",
    "ReassemblyState",
    "CommandQueue",
    "PendingCommand",
    # Errors
    "RconError",
    "MalformedFrameError",
    "ChecksumMismatchError",
    "AlreadyConnectedError",
    "NoStoredCredentialsError",
    "NotConnectedError",
    "QueueFullError",
    "LoginFailedError",
    "ConnectionLostError",
    # Constants
    "DEFAULT_PORT",
    "DEFAULT_TIMEOUT",
    "DEFAULT_KEEPALIVE_INTERVAL",
    "DEFAULT_RECONNECT_DELAY",
    "DEFAULT_QUEUE_CAPACITY",
]
