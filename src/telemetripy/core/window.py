"""Sliding-window rate tracking for threshold evaluation."""

import time
from collections import deque
from collections.abc import Callable

from telemetripy.core.models import RateWindowEntry, Severity

WINDOW_SECONDS = 60.0

EntryPredicate = Callable[[RateWindowEntry], bool]


class SlidingWindowRateTracker:
    """Keeps the error projections seen within a trailing time window.

    Pruning is lazy: it happens on every observe() and count_since() call,
    never on a timer. An entry recorded at T is retained while
    ``now - T <= window``.

    Args:
        window: Window length in seconds.
        clock: Returns the current Unix timestamp in seconds.
    """

    def __init__(
        self,
        window: float = WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.window = window
        self._clock = clock
        self._entries: deque[RateWindowEntry] = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def _prune(self, now: float) -> None:
        cutoff = now - self.window
        while self._entries and self._entries[0].timestamp < cutoff:
            self._entries.popleft()

    def observe(self, entry: RateWindowEntry) -> None:
        """Append an entry and drop everything older than the window."""
        self._entries.append(entry)
        self._prune(self._clock())

    def count_since(self, predicate: EntryPredicate | None = None) -> int:
        """Count retained entries, optionally only those matching predicate."""
        self._prune(self._clock())
        if predicate is None:
            return len(self._entries)
        return sum(1 for entry in self._entries if predicate(entry))

    def occupancy(self) -> int:
        """Count entries inside the window without pruning.

        Read-only counterpart of count_since() for diagnostics.
        """
        cutoff = self._clock() - self.window
        return sum(1 for entry in self._entries if entry.timestamp >= cutoff)

    def clear(self) -> None:
        self._entries.clear()


def is_critical(entry: RateWindowEntry) -> bool:
    return entry.severity is Severity.CRITICAL


def is_api_failure(entry: RateWindowEntry) -> bool:
    kind = entry.kind.lower()
    return "api" in kind or "network" in kind
