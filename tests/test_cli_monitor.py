"""Tests for bercon.cli.monitor -- bercon-monitor CLI tool."""

import contextlib
import io
from unittest import mock

from bercon.rcon import ConnectionState
from bercon.testing import wait_until


def _make_conn(messages, state=ConnectionState.CONNECTED, connect=True):
    """Mock connection that delivers messages to the registered handler on connect()."""
    conn = mock.MagicMock()
    conn.state = state

    def fake_connect():
        handler = conn.add_message_handler.call_args[0][0]
        for text in messages:
            handler(text)
        return connect

    conn.connect.side_effect = fake_connect
    return conn


def _run(argv):
    from bercon.cli.monitor import main

    buf = io.StringIO()
    err = io.StringIO()
    with mock.patch("sys.argv", ["bercon-monitor", *argv]):
        with mock.patch("bercon.cli.monitor.install_sigterm_handler"):
            with contextlib.redirect_stdout(buf), contextlib.redirect_stderr(err):
                rc = main()
    return rc, buf.getvalue(), err.getvalue()


class TestBasicMonitoring:
    """Messages appear in order, timestamped."""

    @mock.patch("bercon.cli.monitor.make_connection")
    def test_messages_printed(self, mock_mc):
        mock_mc.return_value = _make_conn(["Player #0 connected", "Player #0 disconnected"])

        rc, out, err = _run(["-n", "2"])

        assert rc == 0
        lines = out.splitlines()
        assert len(lines) == 2
        assert lines[0].endswith("  Player #0 connected")
        assert lines[1].endswith("  Player #0 disconnected")
        assert "2 messages" in err


class TestTerseOutput:
    @mock.patch("bercon.cli.monitor.make_connection")
    def test_bare_text(self, mock_mc):
        mock_mc.return_value = _make_conn(["(Global) Admin: hello"])
        rc, out, _ = _run(["-t", "-n", "1"])
        assert rc == 0
        assert out == "(Global) Admin: hello\n"


class TestCountLimitsOutput:
    @mock.patch("bercon.cli.monitor.make_connection")
    def test_stops_after_count(self, mock_mc):
        conn = _make_conn([f"message {i}" for i in range(10)])
        mock_mc.return_value = conn
        rc, out, _ = _run(["-t", "-n", "3"])
        assert rc == 0
        assert out.splitlines() == ["message 0", "message 1", "message 2"]
        conn.disconnect.assert_called_once()

    def test_invalid_count(self):
        rc, _, err = _run(["-n", "0"])
        assert rc == 2
        assert "Invalid count" in err


class TestConnectionEnds:
    @mock.patch("bercon.cli.monitor.make_connection")
    def test_final_disconnect_exits_with_error(self, mock_mc):
        mock_mc.return_value = _make_conn([], state=ConnectionState.DISCONNECTED)
        rc, _, _ = _run([])
        assert rc == 1

    @mock.patch("bercon.cli.monitor.make_connection")
    def test_login_failed(self, mock_mc):
        mock_mc.return_value = _make_conn([], connect=False)
        rc, _, _ = _run([])
        assert rc == 2


class TestStatusPrinter:
    def test_reports_loss(self):
        from bercon.cli.monitor import _StatusPrinter
        from bercon.rcon import DisconnectReason

        err = io.StringIO()
        with contextlib.redirect_stderr(err):
            printer = _StatusPrinter()
            printer.on_disconnected(DisconnectReason.CONNECTION_LOST)
            printer.on_connected()
        assert err.getvalue().splitlines() == ["--- connection lost ---", "--- connected ---"]


class TestAgainstFakeServer:
    """bercon-monitor end to end over loopback."""

    def test_prints_pushed_messages(self, fake_server):
        import threading
        import time

        host, port = fake_server.address

        def push():
            wait_until(lambda: fake_server.logins, timeout=5.0)
            time.sleep(0.1)
            fake_server.push_message("RCon admin #0 (127.0.0.1:50000) logged in")

        pusher = threading.Thread(target=push)
        pusher.start()
        rc, out, _ = _run(["-H", host, "-P", str(port), "-p", "secret", "-t", "-n", "1"])
        pusher.join()

        assert rc == 0
        assert out == "RCon admin #0 (127.0.0.1:50000) logged in\n"
        assert wait_until(lambda: fake_server.acks == [0])
