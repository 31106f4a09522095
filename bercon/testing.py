"""
Testing utilities - FakeRconServer for tests without a game server.

FakeRconServer is a loopback UDP server that speaks the server side of the
BattlEye RCon protocol, so RconConnection can be exercised end to end.
"""

import logging
import socket
import threading
import time
from typing import Callable, Optional, Sequence

from bercon.rcon.constants import LOGIN_FAILURE, LOGIN_SUCCESS, MAX_SEQUENCE, MULTIPART_MARKER, RECV_BUFFER_SIZE
from bercon.rcon.errors import MalformedFrameError
from bercon.rcon.packet import PacketKind, RconPacket, decode, encode

logger = logging.getLogger(__name__)


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll predicate until it is true or timeout expires. Returns its last value."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class _Response:
    def __init__(self, text: str, parts: int, order: Optional[Sequence[int]]):
        if parts < 1:
            raise ValueError(f"parts must be positive, got {parts}")
        if order is not None and sorted(order) != list(range(parts)):
            raise ValueError(f"order must be a permutation of range({parts}), got {order!r}")
        self.text = text
        self.parts = parts
        self.order = list(order) if order is not None else list(range(parts))

    def fragments(self) -> list[bytes]:
        data = self.text.encode("utf-8")
        size = -(-len(data) // self.parts) if data else 0
        return [data[i * size : (i + 1) * size] for i in range(self.parts)]


class FakeRconServer:
    """In-process BattlEye RCon server on the loopback interface.

    Checks the login password, answers commands with canned responses
    (optionally split into fragments sent in any order), pushes server
    messages and records everything the client sends.

    Example:
        with FakeRconServer(password="secret") as server:
            server.set_response("players", "Players on server: 0")

            conn = RconConnection(*server.address, password="secret")
            conn.connect()
            assert conn.execute("players") == "Players on server: 0"

            server.push_message("RCon admin #0 logged in")
            assert wait_until(lambda: server.acks == [0])

    Setting ``silent`` makes the server record but never answer packets,
    which looks like a lost connection to the client.
    """

    def __init__(self, password: str = "secret", host: str = "127.0.0.1", port: int = 0):
        self.password = password
        self.silent = False
        self.default_response = ""

        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.bind((host, port))
        self._sock.settimeout(0.05)

        self._responses: dict[str, _Response] = {}
        self._received: list[RconPacket] = []
        self._client: Optional[tuple[str, int]] = None
        self._message_sequence = 0
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    @property
    def address(self) -> tuple[str, int]:
        """(host, port) the server listens on."""
        return self._sock.getsockname()[:2]

    def start(self) -> "FakeRconServer":
        if self._thread is None:
            self._thread = threading.Thread(target=self._serve, name="FakeRconServer", daemon=True)
            self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        self._sock.close()

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False

    # ─────────────────────────────────────────────────────────────────────
    # Configuration Methods (call these in test setup)
    # ─────────────────────────────────────────────────────────────────────

    def set_response(self, command: str, text: str, parts: int = 1, order: Optional[Sequence[int]] = None) -> None:
        """Answer ``command`` with ``text``.

        Args:
            command: Exact command string as sent by the client
            text: Response text
            parts: Number of fragments; more than one uses the multi-part format
            order: Transmission order of fragment indices (default ascending)
        """
        with self._lock:
            self._responses[command] = _Response(text, parts, order)

    def push_message(self, text: str) -> int:
        """Send a server message to the logged-in client. Returns its sequence."""
        with self._lock:
            sequence = self._message_sequence
            self._message_sequence = (sequence + 1) % (MAX_SEQUENCE + 1)
        self.send_raw(encode(PacketKind.SERVER_MESSAGE, sequence, text))
        return sequence

    def send_raw(self, data: bytes) -> None:
        """Send arbitrary bytes to the last client that logged in."""
        with self._lock:
            client = self._client
        if client is None:
            raise RuntimeError("No client has logged in yet")
        self._sock.sendto(data, client)

    # ─────────────────────────────────────────────────────────────────────
    # Inspection Methods (call these in test assertions)
    # ─────────────────────────────────────────────────────────────────────

    @property
    def received(self) -> list[RconPacket]:
        """Every valid packet received, in order."""
        with self._lock:
            return list(self._received)

    @property
    def logins(self) -> list[str]:
        """Passwords of all login attempts, in order."""
        return [p.text for p in self.received if p.is_login()]

    @property
    def commands(self) -> list[tuple[int, str]]:
        """(sequence, text) of all command packets, keep-alives included."""
        return [(p.sequence, p.text) for p in self.received if p.is_command()]

    @property
    def acks(self) -> list[int]:
        """Sequence numbers of all acknowledged server messages."""
        return [p.sequence for p in self.received if p.is_message()]

    def reset(self) -> None:
        """Forget recorded packets (responses stay configured)."""
        with self._lock:
            self._received.clear()

    # ─────────────────────────────────────────────────────────────────────
    # Server loop
    # ─────────────────────────────────────────────────────────────────────

    def _serve(self):
        while not self._stop.is_set():
            try:
                data, addr = self._sock.recvfrom(RECV_BUFFER_SIZE)
            except socket.timeout:
                continue
            except OSError:
                if self._stop.is_set():
                    break
                raise

            try:
                packet = decode(data)
            except MalformedFrameError as e:
                logger.debug(f"FakeRconServer dropping packet: {e}")
                continue

            with self._lock:
                self._received.append(packet)
                silent = self.silent

            if silent:
                continue
            if packet.is_login():
                self._handle_login(packet, addr)
            elif packet.is_command():
                self._handle_command(packet, addr)

    def _handle_login(self, packet: RconPacket, addr):
        accepted = packet.text == self.password
        if accepted:
            with self._lock:
                self._client = addr
                self._message_sequence = 0
        result = LOGIN_SUCCESS if accepted else LOGIN_FAILURE
        self._sock.sendto(encode(PacketKind.LOGIN, None, bytes((result,))), addr)

    def _handle_command(self, packet: RconPacket, addr):
        text = packet.text
        with self._lock:
            response = self._responses.get(text)
        if not text or response is None:
            payload = b"" if not text else self.default_response.encode("utf-8")
            self._sock.sendto(encode(PacketKind.COMMAND, packet.sequence, payload), addr)
            return

        if response.parts == 1:
            self._sock.sendto(encode(PacketKind.COMMAND, packet.sequence, response.text), addr)
            return

        fragments = response.fragments()
        for index in response.order:
            header = bytes((MULTIPART_MARKER, response.parts, index))
            self._sock.sendto(encode(PacketKind.COMMAND, packet.sequence, header + fragments[index]), addr)


# ─────────────────────────────────────────────────────────────────────────────
# Optional pytest integration
# ─────────────────────────────────────────────────────────────────────────────

try:
    import pytest

    @pytest.fixture
    def fake_rcon_server():
        """Pytest fixture providing a running FakeRconServer (password "secret").

        Usage:
            def test_something(fake_rcon_server):
                fake_rcon_server.set_response("players", "Players on server: 0")
        """
        with FakeRconServer() as server:
            yield server

except ImportError:
    # pytest not installed, fixtures not available
    pass
