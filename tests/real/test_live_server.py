"""
Integration tests against a live BattlEye RCon server.

Covers login, read-only commands and the keepalive path. Nothing here kicks,
bans or changes server state.

Run with: pytest tests/real/test_live_server.py -v -s
"""

import time

from bercon.rcon import BattlEyeCommand, ConnectionState, RconConnection

from .devices import TEST_HOST, TEST_PORT, TIMEOUT_COMMAND, requires_rcon


@requires_rcon
class TestLogin:
    def test_wrong_password(self):
        conn = RconConnection(TEST_HOST, TEST_PORT, auto_reconnect=False)
        try:
            assert conn.connect("definitely-not-the-password") is False
            assert conn.state is ConnectionState.DISCONNECTED
        finally:
            conn.disconnect()

    def test_connect(self, rcon):
        assert rcon.connected
        print(f"\n  {rcon!r}")


@requires_rcon
class TestCommands:
    """Read-only commands return text."""

    def test_players(self, rcon):
        text = rcon.execute(BattlEyeCommand.PLAYERS, timeout=TIMEOUT_COMMAND)
        assert "Players on server" in text
        print(f"\n  players -> {text.splitlines()[-1]!r}")

    def test_bans_may_be_multipart(self, rcon):
        text = rcon.execute(BattlEyeCommand.BANS, timeout=TIMEOUT_COMMAND)
        assert isinstance(text, str)
        print(f"\n  bans -> {len(text)} chars")

    def test_sequential(self, rcon):
        results = [rcon.execute(BattlEyeCommand.MISSIONS, timeout=TIMEOUT_COMMAND) for _ in range(3)]
        assert len(results) == 3


@requires_rcon
class TestKeepalive:
    def test_idle_session_survives(self):
        from .devices import TEST_PASSWORD

        conn = RconConnection(TEST_HOST, TEST_PORT, timeout=2.0, keepalive_interval=3.0, auto_reconnect=False)
        try:
            assert conn.connect(TEST_PASSWORD)
            time.sleep(8.0)
            assert conn.connected
            assert conn.execute(BattlEyeCommand.PLAYERS, timeout=TIMEOUT_COMMAND)
        finally:
            conn.disconnect()
