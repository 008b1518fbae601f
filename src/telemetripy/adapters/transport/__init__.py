"""Transport adapters implementing TransportPort."""

from telemetripy.adapters.transport.http import HttpTransport
from telemetripy.adapters.transport.in_memory import InMemoryTransport

__all__ = ["HttpTransport", "InMemoryTransport"]
