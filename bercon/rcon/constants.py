"""
BattlEye RCon protocol constants.

These constants define the wire layout of RCon datagrams and the default
timing parameters used by the client connection.
"""

# Network ports
DEFAULT_PORT = 2302  # Default ArmA / DayZ game port; RCon usually shares it

# Packet structure
MAGIC = b"BE"  # Bytes 0-1 of every packet
SEPARATOR = 0xFF  # Byte 6, first byte covered by the checksum
CHECKSUM_OFFSET = 2  # uint32 little-endian CRC32 at bytes 2-5
BODY_OFFSET = 6  # Checksummed part starts here
MIN_FRAME_SIZE = 7  # magic(2) + checksum(4) + separator(1)
KIND_OFFSET = 7  # Packet kind byte
SEQUENCE_OFFSET = 8  # Sequence byte (not present for login)
MAX_SEQUENCE = 255

# Packet kinds (byte 7)
KIND_LOGIN = 0x00
KIND_COMMAND = 0x01
KIND_SERVER_MESSAGE = 0x02  # Acknowledges reuse the same kind byte

# Login response payload
LOGIN_SUCCESS = 0x01
LOGIN_FAILURE = 0x00

# Multi-part command response header: 0x00 | total | index
MULTIPART_MARKER = 0x00

# Timeouts (seconds)
DEFAULT_TIMEOUT = 5.0  # No reply to a polling packet within this -> lost
DEFAULT_KEEPALIVE_INTERVAL = 25.0  # Server drops clients silent for ~45s
KEEPALIVE_TIMEOUT_FACTOR = 5  # Derived keep-alive interval when only a timeout is configured
DEFAULT_RECONNECT_DELAY = 2.0  # Delay before an automatic reconnect attempt
DEFAULT_LOGIN_TIMEOUT = 5.0  # Handshake read timeout
MONITOR_INTERVAL = 1.0  # Liveness monitor tick
RECEIVE_POLL_INTERVAL = 0.5  # Receive loop socket timeout

# Buffer sizes
DEFAULT_QUEUE_CAPACITY = 64  # Commands waiting for a response
RECV_BUFFER_SIZE = 65536  # Largest UDP datagram
