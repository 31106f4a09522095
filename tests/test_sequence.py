"""Tests for bercon.rcon.sequence -- cyclic sequence allocation."""

import threading
from collections import Counter

from bercon.rcon.sequence import SequenceAllocator


class TestSequenceAllocator:
    """Sequence numbers cycle 0..255 without duplicates or gaps."""

    def test_starts_at_zero(self):
        alloc = SequenceAllocator()
        assert alloc.current is None
        assert alloc.next() == 0
        assert alloc.next() == 1
        assert alloc.current == 1

    def test_wraps_after_255(self):
        alloc = SequenceAllocator()
        values = [alloc.next() for _ in range(258)]
        assert values[255] == 255
        assert values[256:] == [0, 1]

    def test_reset(self):
        alloc = SequenceAllocator()
        for _ in range(10):
            alloc.next()
        alloc.reset()
        assert alloc.current is None
        assert alloc.next() == 0

    def test_concurrent_callers_cover_exact_cycle_positions(self):
        """8 threads x 512 calls hit every value exactly 16 times."""
        alloc = SequenceAllocator()
        results: list[list[int]] = [[] for _ in range(8)]
        barrier = threading.Barrier(8)

        def worker(out):
            barrier.wait()
            for _ in range(512):
                out.append(alloc.next())

        threads = [threading.Thread(target=worker, args=(out,)) for out in results]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        counts = Counter(v for out in results for v in out)
        assert set(counts) == set(range(256))
        assert set(counts.values()) == {16}
        # Last value handed out closes the 16th cycle
        assert alloc.current == 255

    def test_no_duplicates_within_one_cycle(self):
        """Two threads drawing 200 values in total get 0..199 exactly once."""
        alloc = SequenceAllocator()
        seen: list[int] = []
        lock = threading.Lock()

        def worker():
            for _ in range(100):
                v = alloc.next()
                with lock:
                    seen.append(v)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(seen) == list(range(200))
