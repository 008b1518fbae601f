"""Core domain models for telemetry data."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class Severity(StrEnum):
    """Ordinal importance of an error record (info < warning < error < critical)."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorKind(StrEnum):
    """Where an error record came from."""

    RUNTIME_ERROR = "runtime-error"
    UNHANDLED_REJECTION = "unhandled-rejection"
    RESOURCE_LOAD_FAILURE = "resource-load-failure"
    MEMORY_PRESSURE = "memory-pressure"
    OTHER = "other"


class MetricCategory(StrEnum):
    """Family of a performance sample."""

    PAGE_LOAD = "page-load"
    INTERACTION = "interaction"
    MEMORY = "memory"
    NETWORK = "network"
    CORE_VITAL = "core-vital"


class AlertKind(StrEnum):
    """Conditions the alert evaluator can raise."""

    HIGH_ERROR_RATE = "high-error-rate"
    CRITICAL_ERROR_THRESHOLD = "critical-error-threshold"
    API_FAILURE_PATTERN = "api-failure-pattern"
    MEMORY_LEAK_SUSPECTED = "memory-leak-suspected"


class FlushReason(StrEnum):
    """Why a flush was requested; selects the delivery mode."""

    PERIODIC = "periodic"
    UNLOAD = "unload"
    IMMEDIATE = "immediate"


class Channel(StrEnum):
    """Logical egress channels, one endpoint each."""

    EVENTS = "events"
    PERFORMANCE = "performance"
    ERRORS = "errors"
    ALERTS = "alerts"


@dataclass(frozen=True)
class SourceMetadata:
    """Static description of the producer side attached to every event.

    Attributes:
        source: Name of the emitting application.
        version: Version of the emitting application.
        environment: "production" or "development".
    """

    source: str = "web_app"
    version: str = "1.0.0"
    environment: str = "production"


@dataclass(frozen=True)
class Event:
    """A structured, immutable record of something that happened.

    Attributes:
        id: Best-effort unique identifier (timestamp plus random suffix).
        name: Event name (e.g., button_click).
        timestamp: Unix timestamp in seconds.
        session_id: Session the event belongs to.
        user_id: User the event belongs to.
        properties: Arbitrary structured fields.
        metadata: Producer description.
    """

    id: str
    name: str
    timestamp: float
    session_id: str
    user_id: str
    properties: dict[str, Any] = field(default_factory=dict)
    metadata: SourceMetadata = field(default_factory=SourceMetadata)


@dataclass(frozen=True)
class ErrorRecord(Event):
    """An event describing a failure observed in the host application.

    Attributes:
        kind: Origin of the error.
        error_type: Free-form type label (e.g., api_error, network_timeout).
            Rate rules match on this label.
        message: Human readable message.
        stack: Stack trace, truncated to the configured limit.
        severity: Assigned once at creation by the classification rules.
        context: Producer supplied context.
        component: Optional component the error is attributed to.
    """

    kind: ErrorKind = ErrorKind.OTHER
    error_type: str = ErrorKind.OTHER.value
    message: str = ""
    stack: str | None = None
    severity: Severity = Severity.INFO
    context: dict[str, Any] = field(default_factory=dict)
    component: str | None = None


@dataclass(frozen=True)
class MetricSample:
    """A single performance measurement.

    Attributes:
        category: Metric family.
        name: Metric name within the category (e.g., LCP, rss_bytes).
        value: Primary value.
        timestamp: Unix timestamp in seconds.
        values: Additional named values for multi-valued samples.
    """

    category: MetricCategory
    name: str
    value: float
    timestamp: float
    values: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class RateWindowEntry:
    """Minimal projection of an error kept for threshold arithmetic."""

    timestamp: float
    severity: Severity
    kind: str


@dataclass(frozen=True)
class Alert:
    """A threshold crossing detected by the alert evaluator.

    Attributes:
        id: Best-effort unique identifier.
        kind: Which rule fired.
        evidence: Observed values and the threshold that was crossed.
        timestamp: Unix timestamp in seconds.
        resolved: Left for the remote collector; never set here.
    """

    id: str
    kind: AlertKind
    evidence: dict[str, Any]
    timestamp: float
    resolved: bool = False

    @property
    def guaranteed(self) -> bool:
        """Whether the alert goes out through the unload-safe channel."""
        return self.kind is AlertKind.CRITICAL_ERROR_THRESHOLD


@dataclass(frozen=True)
class BatchPayload:
    """A batch of records bound for one egress channel."""

    channel: Channel
    session_id: str
    user_id: str
    records: tuple[Event | MetricSample, ...]
    flush_time: float
    environment: str
    reason: FlushReason

    @property
    def count(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class FlushOutcome:
    """Result of the most recent delivery attempt on a channel."""

    channel: Channel
    reason: FlushReason
    count: int
    success: bool
    timestamp: float
