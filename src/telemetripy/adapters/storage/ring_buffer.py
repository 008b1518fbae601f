"""Ring buffer storage for pending telemetry records.

Provides bounded in-memory storage that automatically evicts the oldest
entries when the buffer is full, so a burst of events or a long transport
outage cannot grow memory without limit.
"""

from collections import deque
from collections.abc import Iterable, Iterator
from typing import Generic, TypeVar

from telemetripy.exceptions import ConfigurationError

T = TypeVar("T")


class BoundedBuffer(Generic[T]):
    """Fixed-capacity, insertion-ordered store with drop-oldest eviction.

    Not synchronized: every caller runs on the same event loop, so each
    operation completes before the next one starts.

    Args:
        max_size: Maximum number of entries to store.
    """

    def __init__(self, max_size: int) -> None:
        if max_size < 1:
            raise ConfigurationError("max_size must be at least 1")
        self.max_size = max_size
        self.evicted = 0
        self._buffer: deque[T] = deque()

    def __len__(self) -> int:
        return len(self._buffer)

    def __iter__(self) -> Iterator[T]:
        return iter(tuple(self._buffer))

    def record(self, item: T) -> None:
        """Append an item at the tail, evicting the head on overflow."""
        self._buffer.append(item)
        self._evict_overflow()

    def drain_all(self) -> list[T]:
        """Remove and return every item in insertion order."""
        items = list(self._buffer)
        self._buffer.clear()
        return items

    def requeue(self, items: Iterable[T]) -> None:
        """Put previously drained items back at the head.

        Relative order is preserved. If the combined size overflows, the
        oldest entries are evicted first, which may include requeued ones.
        """
        self._buffer.extendleft(reversed(list(items)))
        self._evict_overflow()

    def clear(self) -> None:
        self._buffer.clear()

    def _evict_overflow(self) -> None:
        while len(self._buffer) > self.max_size:
            self._buffer.popleft()
            self.evicted += 1
