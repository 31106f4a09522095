"""
Tests for bercon.testing module (FakeRconServer).

Tests cover:
- Login acceptance and rejection
- Canned responses, fragmentation and fragment order
- Pushed messages and acknowledge tracking
- The silent switch and raw injection
"""

import socket

import pytest

from bercon.rcon.packet import PacketKind, acknowledge_packet, command_packet, decode, encode, login_packet
from bercon.testing import FakeRconServer, wait_until


@pytest.fixture
def client(fake_server):
    """Plain UDP socket connected to the fake server."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.settimeout(2.0)
    sock.connect(fake_server.address)
    yield sock
    sock.close()


def _login(client, password="secret"):
    client.send(login_packet(password))
    return decode(client.recv(4096))


class TestLogin:
    """The fake server checks the password."""

    def test_accepts_password(self, fake_server, client):
        reply = _login(client)
        assert reply.is_login()
        assert reply.payload == b"\x01"
        assert fake_server.logins == ["secret"]

    def test_rejects_wrong_password(self, fake_server, client):
        reply = _login(client, "nope")
        assert reply.payload == b"\x00"


class TestResponses:
    """Commands are answered from the configured table."""

    def test_single_part(self, fake_server, client):
        fake_server.set_response("players", "Players on server:")
        _login(client)
        client.send(command_packet(0, "players"))
        reply = decode(client.recv(4096))
        assert reply.is_command()
        assert reply.sequence == 0
        assert reply.text == "Players on server:"
        assert fake_server.commands == [(0, "players")]

    def test_unknown_command_uses_default(self, fake_server, client):
        fake_server.default_response = "Unknown command"
        _login(client)
        client.send(command_packet(4, "teleport"))
        assert decode(client.recv(4096)).text == "Unknown command"

    def test_keepalive_gets_empty_reply(self, fake_server, client):
        _login(client)
        client.send(command_packet(9))
        reply = decode(client.recv(4096))
        assert reply.sequence == 9
        assert reply.payload == b""

    def test_fragments_in_requested_order(self, fake_server, client):
        fake_server.set_response("bans", "hello, world", parts=3, order=[2, 0, 1])
        _login(client)
        client.send(command_packet(1, "bans"))

        headers = []
        chunks = {}
        for _ in range(3):
            payload = decode(client.recv(4096)).payload
            assert payload[0] == 0
            headers.append((payload[1], payload[2]))
            chunks[payload[2]] = payload[3:]

        assert headers == [(3, 2), (3, 0), (3, 1)]
        assert b"".join(chunks[i] for i in range(3)) == b"hello, world"

    def test_invalid_order(self, fake_server):
        with pytest.raises(ValueError):
            fake_server.set_response("bans", "x", parts=2, order=[0, 0])
        with pytest.raises(ValueError):
            fake_server.set_response("bans", "x", parts=0)


class TestMessages:
    """Pushed messages carry their own sequence numbers; acks are recorded."""

    def test_push_requires_login(self, fake_server):
        with pytest.raises(RuntimeError):
            fake_server.push_message("hello")

    def test_push_and_ack(self, fake_server, client):
        _login(client)
        assert fake_server.push_message("first") == 0
        assert fake_server.push_message("second") == 1

        first = decode(client.recv(4096))
        assert first.is_message()
        assert (first.sequence, first.text) == (0, "first")
        client.send(acknowledge_packet(first.sequence))

        assert wait_until(lambda: fake_server.acks == [0])


class TestSilentAndRaw:
    def test_silent_records_but_does_not_answer(self, fake_server, client):
        fake_server.silent = True
        client.settimeout(0.2)
        client.send(login_packet("secret"))
        with pytest.raises(socket.timeout):
            client.recv(4096)
        assert wait_until(lambda: fake_server.logins == ["secret"])

    def test_send_raw(self, fake_server, client):
        _login(client)
        fake_server.send_raw(b"junk")
        assert client.recv(4096) == b"junk"

    def test_reset_clears_history(self, fake_server, client):
        _login(client)
        fake_server.reset()
        assert fake_server.received == []


class TestWaitUntil:
    def test_true(self):
        assert wait_until(lambda: True, timeout=0.1)

    def test_times_out(self):
        assert wait_until(lambda: False, timeout=0.05) is False


def test_context_manager_stops_server():
    with FakeRconServer() as server:
        host, port = server.address
        assert host == "127.0.0.1"
        assert port > 0
    assert server._thread is None


def test_message_encoding_helper():
    """Server messages use the same kind byte as acknowledges."""
    assert encode(PacketKind.SERVER_MESSAGE, 1, "") == acknowledge_packet(1)
