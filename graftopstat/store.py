"""Double-buffered snapshot store shared by the collector and HTTP readers."""
import threading
from typing import Iterable, List, Tuple

from graftopstat.series import MetricRecord


class SnapshotBuffer:
    """Private record buffer filled during a single collection cycle.

    Not thread-safe: only the coroutines of the owning cycle append to it,
    all on the same event loop.
    """

    def __init__(self):
        self._records: List[MetricRecord] = []

    def clear(self):
        self._records.clear()

    def append(self, record: MetricRecord):
        self._records.append(record)

    def extend(self, records: Iterable[MetricRecord]):
        self._records.extend(records)

    def records(self) -> Tuple[MetricRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)


class SnapshotStore:
    """Holds the most recently published, complete set of records.

    The collector builds each snapshot in a private SnapshotBuffer and hands
    it over with publish(), which swaps the shared reference under a lock.
    Readers only hold the lock long enough to grab that reference, so they
    never wait for a collection cycle and never observe a partial snapshot.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot: Tuple[MetricRecord, ...] = ()
        self._generation = 0

    def new_buffer(self) -> SnapshotBuffer:
        return SnapshotBuffer()

    def publish(self, buffer: SnapshotBuffer) -> int:
        """Make the buffer's records the current snapshot. Returns the new generation."""
        records = buffer.records()
        with self._lock:
            self._snapshot = records
            self._generation += 1
            return self._generation

    def clear(self) -> int:
        """Publish an empty snapshot."""
        return self.publish(SnapshotBuffer())

    def snapshot(self) -> Tuple[MetricRecord, ...]:
        with self._lock:
            return self._snapshot

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation
