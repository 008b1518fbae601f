"""Shared test fixtures for all test modules."""

from collections.abc import Callable
from typing import Any

import pytest

from telemetripy.adapters.transport.in_memory import InMemoryTransport
from telemetripy.config import TelemetryConfig
from telemetripy.runtime.recorder import TelemetryRecorder


class FakeClock:
    """Manually advanced clock returning Unix seconds."""

    def __init__(self, start: float = 1702300000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at a fixed instant until advanced."""
    return FakeClock()


@pytest.fixture
def transport() -> InMemoryTransport:
    """Transport capturing every payload it is handed."""
    return InMemoryTransport()


@pytest.fixture
def config() -> TelemetryConfig:
    """Default configuration pointed at a test collector."""
    return TelemetryConfig(base_url="http://collector.test")


@pytest.fixture
def make_recorder(
    config: TelemetryConfig,
    transport: InMemoryTransport,
    clock: FakeClock,
) -> Callable[..., TelemetryRecorder]:
    """Factory fixture for recorders sharing the test transport and clock.

    Keyword arguments override TelemetryConfig fields.

    Usage:
        def test_something(make_recorder):
            recorder = make_recorder(event_capacity=3)
    """

    def _make(**overrides: Any) -> TelemetryRecorder:
        cfg = config.with_overrides(**overrides) if overrides else config
        return TelemetryRecorder(
            cfg,
            transport=transport,
            clock=clock,
            session_id="sess_test",
            user_id="user_test",
        )

    return _make


@pytest.fixture
def recorder(make_recorder: Callable[..., TelemetryRecorder]) -> TelemetryRecorder:
    """Recorder with default configuration."""
    return make_recorder()
