"""
BattlEye RCon exceptions.

Decode-time errors (MalformedFrameError, ChecksumMismatchError) are raised by
the packet codec and handled inside the receive loop. The remaining classes
are raised synchronously to the caller of connect(), send_command() and
friends, or set on the futures of commands that never got a response.
"""

from typing import Optional


class RconError(Exception):
    """Base class for BattlEye RCon errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class MalformedFrameError(RconError):
    """Datagram is not a valid RCon frame (short, bad magic, missing separator)."""

    def __init__(self, reason: str, data: Optional[bytes] = None):
        self.reason = reason
        self.data = data
        super().__init__(f"malformed frame: {reason}")


class ChecksumMismatchError(MalformedFrameError):
    """CRC32 carried by the frame does not match its contents."""

    def __init__(self, expected: int, actual: int, data: Optional[bytes] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(f"checksum mismatch (frame={expected:#010x}, computed={actual:#010x})", data)


class AlreadyConnectedError(RconError):
    """connect() called while a session is active or being established."""

    def __init__(self, state: str):
        self.state = state
        super().__init__(f"already connected (state={state})")


class NoStoredCredentialsError(RconError):
    """reconnect() called before any password was supplied."""

    def __init__(self):
        super().__init__("no stored password; call connect(password) first")


class NotConnectedError(RconError):
    """Operation requires an established session."""

    def __init__(self, message: str = "not connected"):
        super().__init__(message)


class QueueFullError(RconError):
    """Command queue is at capacity."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        super().__init__(f"command queue full ({capacity} pending)")


class LoginFailedError(RconError):
    """Login handshake was rejected or did not complete."""

    def __init__(self, message: str = "login failed", *, rejected: bool = False):
        self.rejected = rejected
        super().__init__(message)


class ConnectionLostError(RconError):
    """Session timed out or its socket failed while commands were pending."""

    def __init__(self, message: str = "connection lost"):
        super().__init__(message)
