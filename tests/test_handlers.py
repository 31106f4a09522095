"""Tests for bercon.rcon.handlers -- listener lists."""

from unittest import mock

from bercon.rcon.handlers import ConnectionHandler, DisconnectReason, HandlerList


class TestHandlerList:
    """HandlerList fans out to every listener and isolates failures."""

    def test_fire_in_registration_order(self):
        calls = []
        handlers = HandlerList("Test")
        handlers.add(lambda text: calls.append(("a", text)))
        handlers.add(lambda text: calls.append(("b", text)))

        handlers.fire(lambda h: h("hi"))

        assert calls == [("a", "hi"), ("b", "hi")]

    def test_exception_logged_and_others_still_called(self, caplog):
        second = mock.Mock()
        handlers = HandlerList("Message")
        handlers.add(mock.Mock(side_effect=RuntimeError("boom")))
        handlers.add(second)

        with caplog.at_level("WARNING"):
            handlers.fire(lambda h: h("text"))

        second.assert_called_once_with("text")
        assert "Message handler exception: boom" in caplog.text

    def test_remove(self):
        handler = mock.Mock()
        handlers = HandlerList("Test")
        handlers.add(handler)
        assert handlers.remove(handler) is True
        assert handlers.remove(handler) is False
        handlers.fire(lambda h: h())
        handler.assert_not_called()

    def test_clear_and_len(self):
        handlers = HandlerList("Test")
        handlers.add(mock.Mock())
        handlers.add(mock.Mock())
        assert len(handlers) == 2
        handlers.clear()
        assert len(handlers) == 0

    def test_listener_may_remove_itself_while_firing(self):
        """Iteration works on a snapshot."""
        handlers = HandlerList("Test")
        calls = []

        def once():
            calls.append(1)
            handlers.remove(once)

        handlers.add(once)
        handlers.fire(lambda h: h())
        handlers.fire(lambda h: h())
        assert calls == [1]


class TestConnectionHandler:
    """The base handler ignores every event."""

    def test_defaults_do_nothing(self):
        handler = ConnectionHandler()
        handler.on_connected()
        handler.on_connection_failed()
        handler.on_disconnected(DisconnectReason.MANUAL)

    def test_override(self):
        class Recorder(ConnectionHandler):
            def __init__(self):
                self.reasons = []

            def on_disconnected(self, reason):
                self.reasons.append(reason)

        recorder = Recorder()
        recorder.on_connected()
        recorder.on_disconnected(DisconnectReason.CONNECTION_LOST)
        assert recorder.reasons == [DisconnectReason.CONNECTION_LOST]
