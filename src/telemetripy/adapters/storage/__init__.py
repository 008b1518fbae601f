"""Storage adapters for pending records."""

from telemetripy.adapters.storage.ring_buffer import BoundedBuffer

__all__ = ["BoundedBuffer"]
