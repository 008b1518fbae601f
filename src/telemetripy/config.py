"""Configuration for the telemetry recorder."""

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from telemetripy.core.alerts import AlertThresholds
from telemetripy.core.classification import DEFAULT_STACK_LIMIT
from telemetripy.core.models import Channel, SourceMetadata
from telemetripy.exceptions import ConfigurationError

DEFAULT_ENDPOINTS: dict[Channel, str] = {
    Channel.EVENTS: "/api/analytics/events",
    Channel.PERFORMANCE: "/api/analytics/performance",
    Channel.ERRORS: "/api/errors/report",
    Channel.ALERTS: "/api/alerts/report",
}


@dataclass(frozen=True)
class TelemetryConfig:
    """Settings consumed by TelemetryRecorder and HttpTransport.

    Attributes:
        enable_analytics: Record general events.
        enable_error_logging: Record errors and evaluate alerts.
        enable_performance: Record metric samples and sample memory.
        debug: Development environment; also logs every recorded error.
        base_url: Collector base URL; endpoint paths are joined onto it.
        endpoints: Path per egress channel.
        session_header: Header carrying the session id.
        event_capacity: Maximum pending general events.
        error_capacity: Maximum pending error records.
        metric_capacity: Maximum pending metric samples.
        flush_interval: Seconds between periodic flushes.
        memory_sample_interval: Seconds between memory samples.
        report_interval: Seconds between error rate reports.
        request_timeout: Timeout for reliable deliveries.
        best_effort_timeout: Timeout for teardown deliveries.
        stack_limit: Maximum stack trace length in characters.
        thresholds: Alert threshold table.
        alert_cooldown: Per-kind alert silence period in seconds.
        source: Producer name stamped on events.
        version: Producer version stamped on events.
    """

    enable_analytics: bool = True
    enable_error_logging: bool = True
    enable_performance: bool = True
    debug: bool = False
    base_url: str = ""
    endpoints: Mapping[Channel, str] = field(
        default_factory=lambda: dict(DEFAULT_ENDPOINTS)
    )
    session_header: str = "X-Session-ID"
    event_capacity: int = 1000
    error_capacity: int = 500
    metric_capacity: int = 1000
    flush_interval: float = 30.0
    memory_sample_interval: float = 30.0
    report_interval: float = 60.0
    request_timeout: float = 10.0
    best_effort_timeout: float = 2.0
    stack_limit: int = DEFAULT_STACK_LIMIT
    thresholds: AlertThresholds = field(default_factory=AlertThresholds)
    alert_cooldown: float = 60.0
    source: str = "web_app"
    version: str = "1.0.0"

    def __post_init__(self) -> None:
        for name in ("event_capacity", "error_capacity", "metric_capacity"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be at least 1")
        for name in (
            "flush_interval",
            "memory_sample_interval",
            "report_interval",
            "request_timeout",
            "best_effort_timeout",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        if self.alert_cooldown < 0:
            raise ConfigurationError("alert_cooldown cannot be negative")
        if self.stack_limit < 0:
            raise ConfigurationError("stack_limit cannot be negative")
        missing = [c.value for c in Channel if c not in self.endpoints]
        if missing:
            raise ConfigurationError(f"missing endpoints for: {', '.join(missing)}")

    @property
    def environment(self) -> str:
        return "development" if self.debug else "production"

    @property
    def source_metadata(self) -> SourceMetadata:
        return SourceMetadata(
            source=self.source, version=self.version, environment=self.environment
        )

    def endpoint_url(self, channel: Channel) -> str:
        """Full URL for a channel."""
        return self.base_url.rstrip("/") + self.endpoints[channel]

    def with_overrides(self, **changes: Any) -> "TelemetryConfig":
        """Return a validated copy with the given fields replaced."""
        endpoints = changes.pop("endpoints", None)
        if endpoints is not None:
            changes["endpoints"] = {
                **self.endpoints,
                **{Channel(k): v for k, v in endpoints.items()},
            }
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "TelemetryConfig":
        """Build a config from a host feature-flag mapping.

        Understands the ``FEATURES`` block (``ENABLE_ANALYTICS``,
        ``ENABLE_SECURITY_LOGGING``, ``ENABLE_PERFORMANCE_MONITORING``,
        ``DEBUG_MODE``) and an optional ``TELEMETRY`` block whose keys are
        TelemetryConfig field names. Unknown keys are ignored.
        """
        features = mapping.get("FEATURES", {}) or {}
        values: dict[str, Any] = {
            "enable_analytics": bool(features.get("ENABLE_ANALYTICS", False)),
            "enable_error_logging": bool(features.get("ENABLE_SECURITY_LOGGING", False)),
            "enable_performance": bool(
                features.get("ENABLE_PERFORMANCE_MONITORING", False)
            ),
            "debug": bool(features.get("DEBUG_MODE", False)),
        }

        names = {f.name for f in dataclasses.fields(cls)}
        overrides = dict(mapping.get("TELEMETRY", {}) or {})
        thresholds = overrides.pop("thresholds", None)
        endpoints = overrides.pop("endpoints", None)
        values.update({k: v for k, v in overrides.items() if k in names})
        if thresholds:
            values["thresholds"] = AlertThresholds(**thresholds)
        if endpoints:
            values["endpoints"] = {
                **DEFAULT_ENDPOINTS,
                **{Channel(k): v for k, v in endpoints.items()},
            }
        return cls(**values)
