"""
Multi-part command response reassembly.

Large command responses arrive split over several datagrams, each carrying
``0x00 | total | index`` before its share of the text. Fragments may arrive
in any order; the joined response is always in index order.

Only one response can be reassembled at a time. The command queue keeps a
single command in flight, so a second concurrent multi-part response would
be a protocol violation rather than something to buffer.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .errors import MalformedFrameError

logger = logging.getLogger(__name__)


@dataclass
class ReassemblyState:
    """Fragments collected so far for one response."""

    sequence: int
    expected_count: int
    parts: list[Optional[bytes]] = field(default_factory=list)
    received_count: int = 0

    def __post_init__(self):
        if not self.parts:
            self.parts = [None] * self.expected_count

    @property
    def complete(self) -> bool:
        return self.received_count == self.expected_count

    def join(self) -> bytes:
        return b"".join(part or b"" for part in self.parts)


class ReassemblyBuffer:
    """Single-slot fragment buffer."""

    def __init__(self):
        self._state: Optional[ReassemblyState] = None

    @property
    def active(self) -> bool:
        """True while a partial response is buffered."""
        return self._state is not None

    @property
    def state(self) -> Optional[ReassemblyState]:
        return self._state

    def add(self, sequence: int, total: int, index: int, fragment: bytes) -> Optional[bytes]:
        """
        Store one fragment.

        Args:
            sequence: Echoed command sequence number
            total: Declared number of fragments
            index: 0-based index of this fragment
            fragment: Fragment text

        Returns:
            The joined response once every fragment has arrived, else None

        Raises:
            MalformedFrameError: total is zero or index is out of range
        """
        if total == 0 or index >= total:
            raise MalformedFrameError(f"fragment index {index} out of range for {total} parts")

        state = self._state
        if state is not None and (state.sequence != sequence or state.expected_count != total):
            logger.warning(
                f"Discarding partial response seq={state.sequence} "
                f"({state.received_count}/{state.expected_count} parts) for new response seq={sequence}"
            )
            state = None

        if state is None:
            state = ReassemblyState(sequence=sequence, expected_count=total)
            self._state = state

        if state.parts[index] is None:
            state.received_count += 1
        else:
            logger.debug(f"Duplicate fragment {index}/{total} for seq={sequence}")
        state.parts[index] = fragment

        if not state.complete:
            return None

        self._state = None
        return state.join()

    def reset(self):
        """Discard any partial response."""
        self._state = None
