"""
Shared pytest fixtures for bercon unit tests.

This module provides a scripted UDP socket double and fixtures used across
multiple test files.
"""

import socket
import threading
import time
from collections import deque

import pytest

from bercon.rcon.constants import LOGIN_FAILURE, LOGIN_SUCCESS
from bercon.rcon.packet import PacketKind, encode
from bercon.testing import FakeRconServer


def _login_reply(accepted: bool = True) -> bytes:
    """Encoded login response datagram."""
    return encode(PacketKind.LOGIN, None, bytes((LOGIN_SUCCESS if accepted else LOGIN_FAILURE,)))


class MockUdpSocket:
    """Mock connected UDP socket returning predetermined datagrams.

    Each recv() pops the next scripted item: bytes are returned, exceptions
    are raised. With nothing scripted recv() behaves like a socket timeout.

    Example:
        sock = make_socket([login_reply()])

        with mock.patch("socket.socket", return_value=sock):
            conn.connect("secret")
        assert sock.sent[0] == login_packet("secret")
    """

    def __init__(self, replies=()):
        self.replies = deque(replies)
        self.sent: list[bytes] = []
        self.address = None
        self.timeout = None
        self.closed = False
        self._lock = threading.Lock()

    def bind(self, addr):
        pass

    def connect(self, addr):
        self.address = addr

    def settimeout(self, timeout):
        self.timeout = timeout

    def getsockname(self):
        return ("127.0.0.1", 50000)

    def send(self, data):
        if self.closed:
            raise OSError("socket closed")
        with self._lock:
            self.sent.append(bytes(data))
        return len(data)

    def recv(self, bufsize):
        if self.closed:
            raise OSError("socket closed")
        with self._lock:
            item = self.replies.popleft() if self.replies else None
        if item is None:
            time.sleep(0.01)
            raise socket.timeout("timed out")
        if isinstance(item, BaseException):
            raise item
        return item

    def shutdown(self, how):
        pass

    def close(self):
        self.closed = True


@pytest.fixture
def fake_server():
    """Running FakeRconServer with password "secret"."""
    with FakeRconServer(password="secret") as server:
        yield server


@pytest.fixture
def make_socket():
    """Factory for MockUdpSocket instances."""
    return MockUdpSocket


@pytest.fixture
def login_reply():
    """Builder for encoded login responses: login_reply(accepted=True)."""
    return _login_reply
