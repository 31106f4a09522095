"""
Listener registration for connection events, command responses and
server messages.

A connection keeps one HandlerList per event kind. Listeners are invoked
from the connection's receive, monitor or caller thread; an exception in
one listener is logged and does not reach the protocol loops or the other
listeners.
"""

import logging
import threading
from collections.abc import Callable, Iterator
from enum import Enum
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)


class DisconnectReason(Enum):
    """Why a session ended."""

    MANUAL = "manual"  # disconnect() called
    CONNECTION_LOST = "connection_lost"  # timeout or socket failure
    CONNECTION_FAILED = "connection_failed"  # automatic reconnect gave up


class ConnectionHandler:
    """
    Receives connection life-cycle events.

    Subclass and override the callbacks of interest; the defaults do nothing.
    """

    def on_connected(self) -> None:
        pass

    def on_connection_failed(self) -> None:
        pass

    def on_disconnected(self, reason: DisconnectReason) -> None:
        pass


# Response text and the echoed command sequence number
CommandResponseHandler = Callable[[str, int], None]
# Server message text
MessageHandler = Callable[[str], None]

H = TypeVar("H")


class HandlerList(Generic[H]):
    """Thread-safe, ordered list of listeners."""

    def __init__(self, name: str):
        self._name = name
        self._handlers: list[H] = []
        self._lock = threading.Lock()

    def add(self, handler: H) -> None:
        with self._lock:
            self._handlers.append(handler)

    def remove(self, handler: H) -> bool:
        """Remove a listener; returns False if it was not registered."""
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                return False
            return True

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)

    def __iter__(self) -> Iterator[H]:
        with self._lock:
            return iter(list(self._handlers))

    def fire(self, call: Callable[[H], Any]) -> None:
        """Invoke ``call(handler)`` for every listener, logging failures."""
        for handler in self:
            try:
                call(handler)
            except Exception as e:
                logger.warning(f"{self._name} handler exception: {e}", exc_info=True)
