"""
Single-in-flight command queue.

Commands are transmitted one at a time: a command goes out on enqueue only
if nothing else is waiting, otherwise it is sent when the previous command's
response has been fully delivered. Responses are correlated by the echoed
sequence number, but UDP loss and reordering make a strict match
unreliable, so a mismatch only logs a warning.
"""

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Optional

from .constants import DEFAULT_QUEUE_CAPACITY
from .errors import NotConnectedError, QueueFullError, RconError
from .sequence import SequenceAllocator

logger = logging.getLogger(__name__)

# transmit(sequence, text) sends one command packet
Transmitter = Callable[[int, str], None]


@dataclass
class PendingCommand:
    """A command waiting for transmission or for its response."""

    sequence: int
    text: str
    future: Future = field(default_factory=Future, repr=False)
    sent_at: Optional[float] = None


class CommandQueue:
    """FIFO of pending commands with at most one on the wire."""

    def __init__(
        self,
        allocator: SequenceAllocator,
        transmit: Transmitter,
        capacity: int = DEFAULT_QUEUE_CAPACITY,
    ):
        if capacity < 1:
            raise ValueError(f"Queue capacity must be positive, got {capacity}")
        self._allocator = allocator
        self._transmit = transmit
        self._capacity = capacity
        self._pending: deque[PendingCommand] = deque()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def head(self) -> Optional[PendingCommand]:
        """Command currently on the wire, if any."""
        with self._lock:
            return self._pending[0] if self._pending else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def is_head(self, sequence: int) -> bool:
        with self._lock:
            return bool(self._pending) and self._pending[0].sequence == sequence

    def enqueue(self, text: str) -> PendingCommand:
        """
        Queue a command, transmitting it immediately if the queue was empty.

        Raises:
            QueueFullError: capacity commands are already pending
            NotConnectedError: the session is gone; nothing is queued
        """
        with self._lock:
            if len(self._pending) >= self._capacity:
                raise QueueFullError(self._capacity)
            command = PendingCommand(sequence=self._allocator.next(), text=text)
            self._pending.append(command)
            if len(self._pending) == 1:
                try:
                    self._send(command)
                except NotConnectedError:
                    self._pending.clear()
                    raise
            else:
                logger.debug(f"Queued command seq={command.sequence} behind {len(self._pending) - 1} pending")
            return command

    def complete_head(self, responding_sequence: int, response: Optional[str] = None) -> Optional[PendingCommand]:
        """
        Retire the head after its response was delivered and send the next command.

        If the next command cannot be sent because the session is gone, every
        remaining command is dropped with that error.

        Args:
            responding_sequence: Sequence number echoed by the server
            response: Response text used to resolve the head's future

        Returns:
            The retired command, or None if nothing was pending
        """
        stranded: list[PendingCommand] = []
        error: Optional[RconError] = None
        with self._lock:
            if not self._pending:
                logger.warning(f"Response seq={responding_sequence} with no pending command")
                return None

            command = self._pending.popleft()
            if command.sequence != responding_sequence:
                logger.warning(
                    f"Response seq={responding_sequence} does not match pending command seq={command.sequence}"
                )

            if self._pending:
                try:
                    self._send(self._pending[0])
                except NotConnectedError as e:
                    stranded = list(self._pending)
                    self._pending.clear()
                    error = e

        # Futures resolve outside the lock; their callbacks may use the queue
        if not command.future.done():
            command.future.set_result(response if response is not None else "")
        if stranded:
            self._fail(stranded, error)
        return command

    def clear(self, exc: Optional[RconError] = None) -> int:
        """
        Drop every pending command, failing their futures.

        Returns:
            Number of commands dropped
        """
        with self._lock:
            dropped = list(self._pending)
            self._pending.clear()

        self._fail(dropped, exc)
        return len(dropped)

    @staticmethod
    def _fail(commands: list[PendingCommand], exc: Optional[RconError]):
        for command in commands:
            if not command.future.done():
                command.future.set_exception(exc if exc is not None else NotConnectedError("connection closed"))
        if commands:
            logger.debug(f"Dropped {len(commands)} pending command(s)")

    def _send(self, command: PendingCommand):
        # Caller holds self._lock
        command.sent_at = time.monotonic()
        try:
            self._transmit(command.sequence, command.text)
        except NotConnectedError:
            raise
        except (OSError, RconError) as e:
            # Stays at the head; the liveness monitor notices the silence
            logger.error(f"Failed to send command seq={command.sequence}: {e}")
