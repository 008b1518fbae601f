"""Tests for the bounded ring buffer."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from telemetripy.adapters.storage.ring_buffer import BoundedBuffer
from telemetripy.exceptions import ConfigurationError

pytestmark = [pytest.mark.storage, pytest.mark.tier(0)]


class TestBoundedBufferRecord:
    """Tests for BoundedBuffer.record()."""

    def test_record_appends_in_order(self) -> None:
        """Items come back in insertion order."""
        buffer: BoundedBuffer[str] = BoundedBuffer(max_size=5)
        for item in "abc":
            buffer.record(item)

        assert list(buffer) == ["a", "b", "c"]

    def test_overflow_evicts_oldest(self) -> None:
        """Recording past capacity drops the head."""
        buffer: BoundedBuffer[str] = BoundedBuffer(max_size=3)
        for item in "ABCD":
            buffer.record(item)

        assert list(buffer) == ["B", "C", "D"]
        assert buffer.evicted == 1

    def test_rejects_non_positive_capacity(self) -> None:
        """A buffer must hold at least one item."""
        with pytest.raises(ConfigurationError):
            BoundedBuffer(max_size=0)

    @given(
        capacity=st.integers(min_value=1, max_value=20),
        items=st.lists(st.integers(), max_size=100),
    )
    def test_length_never_exceeds_capacity(self, capacity: int, items: list[int]) -> None:
        """No sequence of records grows the buffer past its capacity."""
        buffer: BoundedBuffer[int] = BoundedBuffer(max_size=capacity)
        for item in items:
            buffer.record(item)
            assert len(buffer) <= capacity

        assert list(buffer) == items[-capacity:]
        assert buffer.evicted == max(0, len(items) - capacity)


class TestBoundedBufferDrain:
    """Tests for BoundedBuffer.drain_all()."""

    def test_drain_returns_everything_and_empties(self) -> None:
        """Drain hands back all items and leaves the buffer empty."""
        buffer: BoundedBuffer[int] = BoundedBuffer(max_size=5)
        buffer.record(1)
        buffer.record(2)

        drained = buffer.drain_all()

        assert drained == [1, 2]
        assert len(buffer) == 0

    def test_drain_empty_buffer(self) -> None:
        """Draining an empty buffer returns an empty list."""
        buffer: BoundedBuffer[int] = BoundedBuffer(max_size=5)
        assert buffer.drain_all() == []


class TestBoundedBufferRequeue:
    """Tests for BoundedBuffer.requeue()."""

    def test_requeue_puts_items_ahead_of_newer_ones(self) -> None:
        """Requeued items keep their order and precede later records."""
        buffer: BoundedBuffer[str] = BoundedBuffer(max_size=10)
        buffer.record("a")
        buffer.record("b")
        drained = buffer.drain_all()
        buffer.record("c")

        buffer.requeue(drained)

        assert list(buffer) == ["a", "b", "c"]

    def test_requeue_overflow_evicts_oldest_first(self) -> None:
        """When the combined size overflows, the oldest requeued items go."""
        buffer: BoundedBuffer[str] = BoundedBuffer(max_size=3)
        buffer.record("a")
        buffer.record("b")
        drained = buffer.drain_all()
        buffer.record("c")
        buffer.record("d")

        buffer.requeue(drained)

        assert list(buffer) == ["b", "c", "d"]
        assert buffer.evicted == 1

    @given(
        first=st.lists(st.integers(), max_size=10),
        second=st.lists(st.integers(), max_size=10),
    )
    def test_requeue_preserves_relative_order(
        self, first: list[int], second: list[int]
    ) -> None:
        """Without overflow, a failed batch is retried before newer items."""
        buffer: BoundedBuffer[int] = BoundedBuffer(max_size=20)
        for item in first:
            buffer.record(item)
        drained = buffer.drain_all()
        for item in second:
            buffer.record(item)

        buffer.requeue(drained)

        assert list(buffer) == first + second
