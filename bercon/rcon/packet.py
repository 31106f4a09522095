"""
BattlEye RCon packet encoding and decoding.

Every RCon datagram has a 7-byte header followed by the packet kind and a
kind-specific body:

Offset  Size  Byte Order     Field        Description
------  ----  ----------     -----        -----------
0       2     -              magic        'B' 'E'
2       4     Little-endian  checksum     CRC32 of bytes 6..end
6       1     -              separator    0xFF
7       1     -              kind         0x00 login, 0x01 command, 0x02 message/ack
8       1     -              sequence     Command/message sequence (absent for login)
8/9+    var   -              payload      ASCII text, no terminator
"""

import struct
import zlib
from enum import IntEnum
from typing import Optional, Union

from .constants import (
    BODY_OFFSET,
    CHECKSUM_OFFSET,
    KIND_COMMAND,
    KIND_LOGIN,
    KIND_OFFSET,
    KIND_SERVER_MESSAGE,
    MAGIC,
    MAX_SEQUENCE,
    MIN_FRAME_SIZE,
    SEPARATOR,
    SEQUENCE_OFFSET,
)
from .errors import ChecksumMismatchError, MalformedFrameError

_CHECKSUM = struct.Struct("<I")


class PacketKind(IntEnum):
    """RCon packet kind byte."""

    LOGIN = KIND_LOGIN
    COMMAND = KIND_COMMAND
    SERVER_MESSAGE = KIND_SERVER_MESSAGE
    ACKNOWLEDGE = KIND_SERVER_MESSAGE  # alias of SERVER_MESSAGE


class RconPacket:
    """A decoded RCon packet."""

    def __init__(self, kind: int, sequence: Optional[int], payload: bytes):
        self.kind = kind
        self.sequence = sequence
        self.payload = payload

    @property
    def text(self) -> str:
        """Payload decoded as text."""
        return self.payload.decode("utf-8", errors="replace")

    def is_login(self) -> bool:
        return self.kind == PacketKind.LOGIN

    def is_command(self) -> bool:
        return self.kind == PacketKind.COMMAND

    def is_message(self) -> bool:
        return self.kind == PacketKind.SERVER_MESSAGE

    def __eq__(self, other):
        if isinstance(other, RconPacket):
            return (self.kind, self.sequence, self.payload) == (other.kind, other.sequence, other.payload)
        return NotImplemented

    def __repr__(self):
        return f"RconPacket(kind={self.kind:#04x}, sequence={self.sequence}, payload={self.payload!r})"


def checksum(body: bytes) -> int:
    """CRC32 of the checksummed part of a frame (separator onwards)."""
    return zlib.crc32(body) & 0xFFFFFFFF


def encode(kind: int, sequence: Optional[int] = None, payload: Union[bytes, str, None] = b"") -> bytes:
    """
    Build a complete RCon datagram.

    Args:
        kind: Packet kind byte (see PacketKind)
        sequence: Sequence number 0-255, omitted when None and always for login
        payload: Packet text; str is encoded as UTF-8

    Returns:
        New bytes object ready to send
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    elif payload is None:
        payload = b""

    body = bytearray((SEPARATOR, kind))
    if kind != PacketKind.LOGIN and sequence is not None:
        if not 0 <= sequence <= MAX_SEQUENCE:
            raise ValueError(f"Sequence number out of range: {sequence}")
        body.append(sequence)
    body += payload

    return MAGIC + _CHECKSUM.pack(checksum(body)) + bytes(body)


def decode(data: bytes) -> RconPacket:
    """
    Parse a received datagram.

    Raises:
        MalformedFrameError: Too short, bad magic, missing separator or
            missing sequence byte
        ChecksumMismatchError: CRC32 does not match the frame contents
    """
    if len(data) < MIN_FRAME_SIZE:
        raise MalformedFrameError(f"too short: {len(data)} < {MIN_FRAME_SIZE}", data)
    if data[0:2] != MAGIC:
        raise MalformedFrameError(f"bad magic {bytes(data[0:2])!r}", data)
    if data[BODY_OFFSET] != SEPARATOR:
        raise MalformedFrameError(f"missing separator (got {data[BODY_OFFSET]:#04x})", data)

    expected = _CHECKSUM.unpack_from(data, CHECKSUM_OFFSET)[0]
    actual = checksum(data[BODY_OFFSET:])
    if expected != actual:
        raise ChecksumMismatchError(expected, actual, data)

    if len(data) <= KIND_OFFSET:
        raise MalformedFrameError("missing packet kind", data)
    kind = data[KIND_OFFSET]

    if kind in (PacketKind.COMMAND, PacketKind.SERVER_MESSAGE):
        if len(data) <= SEQUENCE_OFFSET:
            raise MalformedFrameError("missing sequence number", data)
        return RconPacket(kind, data[SEQUENCE_OFFSET], bytes(data[SEQUENCE_OFFSET + 1 :]))

    # Login responses and unknown kinds carry no sequence number
    return RconPacket(kind, None, bytes(data[SEQUENCE_OFFSET:]))


def login_packet(password: str) -> bytes:
    """Login request carrying the RCon password."""
    return encode(PacketKind.LOGIN, None, password)


def command_packet(sequence: int, command: str = "") -> bytes:
    """Command request; an empty command doubles as keep-alive."""
    return encode(PacketKind.COMMAND, sequence, command)


def acknowledge_packet(sequence: int) -> bytes:
    """Acknowledge a server message."""
    return encode(PacketKind.ACKNOWLEDGE, sequence)
