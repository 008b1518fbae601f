"""Client-side telemetry pipeline: bounded buffering, windowed alerting, batched delivery."""

from telemetripy.adapters.logging import TelemetryLogHandler
from telemetripy.adapters.producers import (
    MemorySampler,
    install_asyncio_handler,
    install_exception_hooks,
    instrument_client,
)
from telemetripy.adapters.scheduling import AsyncioScheduler
from telemetripy.adapters.storage.ring_buffer import BoundedBuffer
from telemetripy.adapters.transport.http import HttpTransport
from telemetripy.adapters.transport.in_memory import InMemoryTransport
from telemetripy.config import TelemetryConfig
from telemetripy.core.alerts import AlertEvaluator, AlertThresholds
from telemetripy.core.ids import hash_sensitive
from telemetripy.core.models import (
    Alert,
    AlertKind,
    Channel,
    ErrorKind,
    ErrorRecord,
    Event,
    FlushReason,
    MetricCategory,
    MetricSample,
    Severity,
)
from telemetripy.core.window import SlidingWindowRateTracker
from telemetripy.exceptions import ConfigurationError, TelemetryError
from telemetripy.runtime.recorder import TelemetryRecorder

__all__ = [
    "Alert",
    "AlertEvaluator",
    "AlertKind",
    "AlertThresholds",
    "AsyncioScheduler",
    "BoundedBuffer",
    "Channel",
    "ConfigurationError",
    "ErrorKind",
    "ErrorRecord",
    "Event",
    "FlushReason",
    "HttpTransport",
    "InMemoryTransport",
    "MemorySampler",
    "MetricCategory",
    "MetricSample",
    "Severity",
    "SlidingWindowRateTracker",
    "TelemetryConfig",
    "TelemetryError",
    "TelemetryLogHandler",
    "TelemetryRecorder",
    "hash_sensitive",
    "install_asyncio_handler",
    "install_exception_hooks",
    "instrument_client",
]
