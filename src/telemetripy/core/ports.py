"""Port interfaces for transport and scheduling adapters.

These protocols define the contracts that adapters must implement.
The recorder depends only on these interfaces, not concrete implementations.
"""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from telemetripy.core.models import Channel


@runtime_checkable
class TransportPort(Protocol):
    """Port for delivering encoded payloads to the remote collector.

    Adapters implementing this protocol expose two delivery modes.
    Examples: HttpTransport, InMemoryTransport.
    """

    async def send_reliable(self, channel: Channel, payload: dict[str, Any]) -> bool:
        """Deliver a payload and report whether the collector accepted it.

        Args:
            channel: Logical egress channel.
            payload: JSON-serializable body.

        Returns:
            True on a success status, False on network error or any
            non-success status. Never raises.
        """
        ...

    def send_best_effort(self, channel: Channel, payload: dict[str, Any]) -> bool:
        """Hand a payload off without waiting for the outcome.

        Used at teardown and for critical escalation. May block up to a short
        timeout; the recorder moves the call off a running event loop. The
        return value only says whether the payload was accepted for sending.
        """
        ...


@runtime_checkable
class SchedulerPort(Protocol):
    """Port for periodic and delayed callbacks.

    Examples: AsyncioScheduler.
    """

    def call_every(self, interval: float, callback: Callable[[], Any]) -> object:
        """Run callback every interval seconds until cancelled."""
        ...

    def call_later(self, delay: float, callback: Callable[[], Any]) -> object:
        """Run callback once after delay seconds unless cancelled."""
        ...

    def cancel(self, handle: object) -> None:
        """Cancel a single scheduled callback."""
        ...

    def cancel_all(self) -> None:
        """Cancel every scheduled callback. Safe to call repeatedly."""
        ...
