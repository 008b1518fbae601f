"""In-memory transport adapter."""

from typing import Any

from telemetripy.core.models import Channel


class InMemoryTransport:
    """In-memory implementation of TransportPort.

    Keeps every payload it is handed, per delivery mode. Suitable for
    testing and for hosts that forward telemetry themselves.

    Args:
        fail: When True, reliable deliveries report failure.
        accept_best_effort: Return value of send_best_effort().
    """

    def __init__(self, fail: bool = False, accept_best_effort: bool = True) -> None:
        self.fail = fail
        self.accept_best_effort = accept_best_effort
        self.reliable: list[tuple[Channel, dict[str, Any]]] = []
        self.best_effort: list[tuple[Channel, dict[str, Any]]] = []
        self.attempts = 0

    async def send_reliable(self, channel: Channel, payload: dict[str, Any]) -> bool:
        """Record a reliable delivery; fails when configured to."""
        self.attempts += 1
        if self.fail:
            return False
        self.reliable.append((channel, payload))
        return True

    def send_best_effort(self, channel: Channel, payload: dict[str, Any]) -> bool:
        """Record a best-effort hand-off."""
        if self.accept_best_effort:
            self.best_effort.append((channel, payload))
        return self.accept_best_effort

    def delivered(self, channel: Channel | None = None) -> list[dict[str, Any]]:
        """Payloads from both modes, optionally limited to one channel."""
        sent = self.reliable + self.best_effort
        return [p for c, p in sent if channel is None or c == channel]
