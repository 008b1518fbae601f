"""Alert evaluation over the sliding error window and memory readings."""

import logging
import time
from collections import Counter, deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from telemetripy.core import ids
from telemetripy.core.models import Alert, AlertKind, ErrorRecord, RateWindowEntry, Severity
from telemetripy.core.window import (
    SlidingWindowRateTracker,
    is_api_failure,
    is_critical,
)
from telemetripy.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

HEALTH_HORIZON_SECONDS = 300.0
MEMORY_HISTORY = 10
TOP_ERRORS_LIMIT = 10


@dataclass(frozen=True)
class AlertThresholds:
    """Threshold table for the alert evaluator.

    Attributes:
        error_rate: Errors in the window that raise high-error-rate.
        critical_errors: Critical errors in the window that raise
            critical-error-threshold.
        api_failures: API or network errors in the window that raise
            api-failure-pattern.
        memory_increases: Consecutive strictly increasing memory readings
            that raise memory-leak-suspected.
    """

    error_rate: int = 10
    critical_errors: int = 3
    api_failures: int = 5
    memory_increases: int = 5

    def __post_init__(self) -> None:
        for name in ("error_rate", "critical_errors", "api_failures"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} threshold must be at least 1")
        if self.memory_increases < 2:
            raise ConfigurationError("memory_increases threshold must be at least 2")
        if self.memory_increases > MEMORY_HISTORY:
            raise ConfigurationError(
                f"memory_increases threshold cannot exceed {MEMORY_HISTORY}"
            )


@dataclass
class ErrorStatistics:
    """Running error counters owned by the evaluator."""

    total: int = 0
    by_type: Counter[str] = field(default_factory=Counter)
    by_component: Counter[str] = field(default_factory=Counter)

    def update(self, record: ErrorRecord) -> None:
        self.total += 1
        self.by_type[record.error_type] += 1
        if record.component:
            self.by_component[record.component] += 1

    def clear(self) -> None:
        self.total = 0
        self.by_type.clear()
        self.by_component.clear()

    def snapshot(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "by_type": dict(self.by_type),
            "by_component": dict(self.by_component),
        }


def top_errors(
    records: Iterable[ErrorRecord], limit: int = TOP_ERRORS_LIMIT
) -> list[dict[str, Any]]:
    """Most frequent ``type:message`` pairs among the given records."""
    frequency = Counter(f"{r.error_type}:{r.message}" for r in records)
    return [
        {"error": error, "count": count}
        for error, count in frequency.most_common(limit)
    ]


def system_health(
    records: Iterable[ErrorRecord],
    now: float,
    horizon: float = HEALTH_HORIZON_SECONDS,
) -> dict[str, Any]:
    """Score the recent error load between 0 and 100.

    Starts from 100 and subtracts 2 per recent error (at most 50), 10 per
    critical error and 3 per API or network error seen within horizon.
    """
    recent = [r for r in records if r.timestamp > now - horizon]
    critical = sum(1 for r in recent if r.severity is Severity.CRITICAL)
    api = sum(
        1
        for r in recent
        if "api" in r.error_type.lower() or "network" in r.error_type.lower()
    )

    score = 100
    score -= min(len(recent) * 2, 50)
    score -= critical * 10
    score -= api * 3

    if score > 80:
        status = "healthy"
    elif score > 50:
        status = "degraded"
    else:
        status = "critical"

    return {
        "score": max(score, 0),
        "status": status,
        "recent_errors": len(recent),
        "critical_errors": critical,
        "api_errors": api,
    }


class AlertEvaluator:
    """Checks the rate window and memory readings against thresholds.

    At most one alert per kind is produced by a single evaluation. After a
    kind fires it stays silent for ``cooldown`` seconds; a cooldown of zero
    re-alerts on every evaluation that finds the threshold still crossed.

    Args:
        tracker: Sliding window the rate rules read from.
        thresholds: Threshold table.
        cooldown: Per-kind silence period in seconds.
        clock: Returns the current Unix timestamp in seconds.
    """

    def __init__(
        self,
        tracker: SlidingWindowRateTracker,
        thresholds: AlertThresholds | None = None,
        cooldown: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.tracker = tracker
        self.thresholds = thresholds or AlertThresholds()
        self.cooldown = tracker.window if cooldown is None else cooldown
        if self.cooldown < 0:
            raise ConfigurationError("alert cooldown cannot be negative")
        self.statistics = ErrorStatistics()
        self.fired: Counter[AlertKind] = Counter()
        self._clock = clock
        self._last_fired: dict[AlertKind, float] = {}
        self._memory: deque[float] = deque(maxlen=MEMORY_HISTORY)

    def set_thresholds(self, **overrides: int) -> None:
        """Replace individual thresholds, keeping the rest."""
        current = {
            "error_rate": self.thresholds.error_rate,
            "critical_errors": self.thresholds.critical_errors,
            "api_failures": self.thresholds.api_failures,
            "memory_increases": self.thresholds.memory_increases,
        }
        current.update(overrides)
        self.thresholds = AlertThresholds(**current)

    def observe_error(self, record: ErrorRecord) -> list[Alert]:
        """Account for a new error record and evaluate the rate rules."""
        self.statistics.update(record)
        self.tracker.observe(
            RateWindowEntry(
                timestamp=record.timestamp,
                severity=record.severity,
                kind=record.error_type,
            )
        )
        return self.evaluate()

    def evaluate(self) -> list[Alert]:
        """Run every rate rule once against the current window."""
        window = f"{int(self.tracker.window)} seconds"
        checks = (
            (
                AlertKind.HIGH_ERROR_RATE,
                self.tracker.count_since(),
                self.thresholds.error_rate,
                "error_rate",
            ),
            (
                AlertKind.CRITICAL_ERROR_THRESHOLD,
                self.tracker.count_since(is_critical),
                self.thresholds.critical_errors,
                "critical_errors",
            ),
            (
                AlertKind.API_FAILURE_PATTERN,
                self.tracker.count_since(is_api_failure),
                self.thresholds.api_failures,
                "api_errors",
            ),
        )

        alerts = []
        for kind, observed, threshold, label in checks:
            if observed < threshold:
                continue
            alert = self._fire(
                kind, {label: observed, "threshold": threshold, "time_window": window}
            )
            if alert is not None:
                alerts.append(alert)
        return alerts

    def observe_memory(self, used_bytes: float) -> Alert | None:
        """Record a memory reading and check for a sustained climb."""
        self._memory.append(used_bytes)
        needed = self.thresholds.memory_increases
        if len(self._memory) < needed:
            return None

        recent = list(self._memory)[-needed:]
        if not all(later > earlier for earlier, later in zip(recent, recent[1:])):
            return None

        return self._fire(
            AlertKind.MEMORY_LEAK_SUSPECTED,
            {
                "memory_usage": used_bytes,
                "readings": recent,
                "threshold": needed,
            },
        )

    def _fire(self, kind: AlertKind, evidence: dict[str, Any]) -> Alert | None:
        now = self._clock()
        last = self._last_fired.get(kind)
        if last is not None and self.cooldown > 0 and now - last < self.cooldown:
            return None

        self._last_fired[kind] = now
        self.fired[kind] += 1
        alert = Alert(
            id=ids.generate_id("alert", now=now),
            kind=kind,
            evidence=evidence,
            timestamp=now,
        )
        logger.warning("Alert triggered: %s %s", kind.value, evidence)
        return alert

    def memory_readings(self) -> list[float]:
        return list(self._memory)

    def reset(self) -> None:
        """Forget statistics, the window, readings and cooldowns."""
        self.statistics.clear()
        self.tracker.clear()
        self._memory.clear()
        self._last_fired.clear()
