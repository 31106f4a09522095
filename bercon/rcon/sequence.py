"""Command sequence numbers, cyclic over 0-255."""

import threading
from typing import Optional

from .constants import MAX_SEQUENCE


class SequenceAllocator:
    """
    Thread-safe cyclic sequence counter.

    Shared by command submission and keep-alive emission, so every call to
    next() hands out a distinct position in the 0..255 cycle.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._current: Optional[int] = None

    @property
    def current(self) -> Optional[int]:
        """Last value handed out (None after reset)."""
        return self._current

    def next(self) -> int:
        with self._lock:
            if self._current is None or self._current == MAX_SEQUENCE:
                self._current = 0
            else:
                self._current += 1
            return self._current

    def reset(self):
        with self._lock:
            self._current = None
