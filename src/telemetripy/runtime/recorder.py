"""Telemetry recorder: the public surface producers record into.

The recorder composes the bounded buffers, the sliding-window tracker, the
alert evaluator and a transport. Everything runs on one asyncio event loop;
the network dispatch is the only point where work is suspended, so buffers
and the rate window are mutated without locks.

Nothing the recorder does may break the host application. Public
operations catch and log their own failures, and a reentrancy guard stops
a failure inside the pipeline from being recorded by the pipeline.
"""

import asyncio
import functools
import logging
import time
from collections import deque
from collections.abc import Callable, Coroutine, Mapping
from dataclasses import asdict
from typing import Any, TypeVar

from telemetripy.adapters.scheduling import AsyncioScheduler
from telemetripy.adapters.storage.ring_buffer import BoundedBuffer
from telemetripy.config import TelemetryConfig
from telemetripy.core import ids
from telemetripy.core.alerts import AlertEvaluator, system_health, top_errors
from telemetripy.core.classification import build_error_record
from telemetripy.core.encoding.payload import encode_alert, encode_batch
from telemetripy.core.models import (
    Alert,
    BatchPayload,
    Channel,
    ErrorRecord,
    Event,
    FlushOutcome,
    FlushReason,
    MetricCategory,
    MetricSample,
    Severity,
)
from telemetripy.core.ports import SchedulerPort, TransportPort
from telemetripy.core.window import SlidingWindowRateTracker

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

BREADCRUMB_LIMIT = 5
RECENT_ALERTS_LIMIT = 50


def _guarded(method: F) -> F:
    """Run a public operation behind the reentrancy guard.

    Exceptions are logged and counted, never re-raised. A call made while
    another guarded call is in progress is dropped.
    """

    @functools.wraps(method)
    def wrapper(self: "TelemetryRecorder", *args: Any, **kwargs: Any) -> Any:
        if self._in_pipeline:
            logger.debug("Dropped reentrant call to %s", method.__name__)
            return None
        self._in_pipeline = True
        try:
            return method(self, *args, **kwargs)
        except Exception:
            self.internal_errors += 1
            logger.exception("Telemetry operation %s failed", method.__name__)
            return None
        finally:
            self._in_pipeline = False

    return wrapper  # type: ignore[return-value]


class TelemetryRecorder:
    """Records events, errors and metrics and ships them to the collector.

    Example:
        ```python
        recorder = TelemetryRecorder(config, HttpTransport(config))
        recorder.start()
        recorder.record_event("button_click", {"button_id": "buy"})
        ```

    Args:
        config: Capacities, thresholds, intervals and feature flags.
        transport: Delivery adapter (default: HttpTransport).
        scheduler: Timer adapter (default: AsyncioScheduler).
        clock: Returns the current Unix timestamp in seconds.
        session_id: Session identifier (generated when omitted).
        user_id: User identifier (generated when omitted).
    """

    def __init__(
        self,
        config: TelemetryConfig | None = None,
        transport: TransportPort | None = None,
        scheduler: SchedulerPort | None = None,
        clock: Callable[[], float] = time.time,
        session_id: str | None = None,
        user_id: str | None = None,
    ) -> None:
        self.config = config or TelemetryConfig()
        if transport is None:
            from telemetripy.adapters.transport.http import HttpTransport

            transport = HttpTransport(self.config)
        self.transport = transport
        self.scheduler = scheduler or AsyncioScheduler()
        self.clock = clock

        now = clock()
        self.session_id = session_id or ids.session_id(now)
        self.user_id = user_id or ids.user_id(now)
        self.metadata = self.config.source_metadata

        self.events: BoundedBuffer[Event] = BoundedBuffer(self.config.event_capacity)
        self.errors: BoundedBuffer[ErrorRecord] = BoundedBuffer(self.config.error_capacity)
        self.metrics: BoundedBuffer[MetricSample] = BoundedBuffer(
            self.config.metric_capacity
        )
        self.tracker = SlidingWindowRateTracker(clock=clock)
        self.evaluator = AlertEvaluator(
            self.tracker,
            thresholds=self.config.thresholds,
            cooldown=self.config.alert_cooldown,
            clock=clock,
        )

        self.enabled = True
        self.started = False
        self.closed = False
        self.internal_errors = 0
        self.last_flush: dict[Channel, FlushOutcome] = {}
        self.last_report: dict[str, Any] | None = None
        self.recent_alerts: deque[Alert] = deque(maxlen=RECENT_ALERTS_LIMIT)

        self._in_pipeline = False
        self._breadcrumbs: deque[str] = deque(maxlen=BREADCRUMB_LIMIT)
        self._observers: list[Callable[[], None]] = []
        self._tasks: set[asyncio.Future[Any]] = set()

    # Lifecycle

    def start(self, memory_reader: Callable[[], float] | None = None) -> None:
        """Schedule the periodic flush, error report and memory sampling.

        Must be called from a running event loop.

        Args:
            memory_reader: Returns bytes in use (default: process RSS).
        """
        if self.started or self.closed:
            return
        self.scheduler.call_every(self.config.flush_interval, self._periodic_flush)
        if self.config.enable_error_logging:
            self.scheduler.call_every(self.config.report_interval, self.generate_error_report)
        if self.config.enable_performance:
            from telemetripy.adapters.producers import MemorySampler

            sampler = MemorySampler(self, reader=memory_reader)
            sampler.start()
        self.started = True
        self.record_event("page_load", {"source": self.metadata.source})
        logger.debug("Telemetry started for session %s", self.session_id)

    def register_observer(self, unsubscribe: Callable[[], None]) -> None:
        """Register the revocation callable of an installed producer hook."""
        self._observers.append(unsubscribe)

    def teardown(self, flush: bool = True) -> None:
        """Stop all timers, revoke observers and send what is left.

        Pending records go out through the best-effort channel. Recording
        after teardown is a no-op. Safe to call more than once.
        """
        if self.closed:
            return
        self.closed = True
        try:
            self.scheduler.cancel_all()
            while self._observers:
                unsubscribe = self._observers.pop()
                try:
                    unsubscribe()
                except Exception:
                    logger.exception("Failed to revoke observer %r", unsubscribe)
            if flush and self.enabled:
                self._flush(FlushReason.UNLOAD)
        except Exception:
            self.internal_errors += 1
            logger.exception("Telemetry teardown failed")
        logger.debug("Telemetry torn down for session %s", self.session_id)

    async def aclose(self) -> None:
        """Wait for in-flight deliveries, tear down and close the transport.

        Deliveries settle before the unload flush, so a batch requeued by a
        failed delivery still goes out with it.
        """
        if not self.closed:
            self.scheduler.cancel_all()
        await self._settle_tasks()
        self.teardown()
        await self._settle_tasks()
        close = getattr(self.transport, "aclose", None)
        if close is not None:
            await close()

    async def _settle_tasks(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def enable(self) -> None:
        self.enabled = True
        logger.info("Telemetry enabled")

    def disable(self) -> None:
        """Stop recording and drop everything pending."""
        self.enabled = False
        self.events.clear()
        self.errors.clear()
        self.metrics.clear()
        logger.info("Telemetry disabled")

    def _accepting(self, flag: bool) -> bool:
        return flag and self.enabled and not self.closed

    # Recording

    @_guarded
    def record_event(
        self,
        name: str,
        properties: Mapping[str, Any] | None = None,
        *,
        immediate: bool = False,
    ) -> Event | None:
        """Record a named event.

        Args:
            name: Event name.
            properties: Arbitrary structured fields.
            immediate: Flush right after storing (business-critical steps).

        Returns:
            The stored Event, or None when analytics is off, the recorder
            is torn down, or recording failed.
        """
        return self._record_event(name, properties, immediate=immediate)

    def _record_event(
        self,
        name: str,
        properties: Mapping[str, Any] | None = None,
        *,
        immediate: bool = False,
    ) -> Event | None:
        if not self._accepting(self.config.enable_analytics):
            return None
        now = self.clock()
        if properties is None:
            props: dict[str, Any] = {}
        elif isinstance(properties, Mapping):
            props = dict(properties)
        else:
            props = {"value": properties}

        event = Event(
            id=ids.generate_id("event", now=now),
            name=str(name or "unnamed"),
            timestamp=now,
            session_id=self.session_id,
            user_id=self.user_id,
            properties=props,
            metadata=self.metadata,
        )
        self.events.record(event)
        self._breadcrumbs.append(event.name)
        if immediate:
            self._flush(FlushReason.IMMEDIATE)
        return event

    @_guarded
    def record_error(
        self,
        raw_error: BaseException | Mapping[str, Any] | str | None,
        context: Mapping[str, Any] | None = None,
    ) -> ErrorRecord | None:
        """Record an error, evaluate alert thresholds and escalate critical ones.

        Args:
            raw_error: Exception, message, or mapping describing the error.
            context: Additional structured context.

        Returns:
            The stored ErrorRecord, or None when error logging is off, the
            recorder is torn down, or recording failed.
        """
        return self._record_error(raw_error, context)

    def _record_error(
        self,
        raw_error: BaseException | Mapping[str, Any] | str | None,
        context: Mapping[str, Any] | None = None,
    ) -> ErrorRecord | None:
        if not self._accepting(self.config.enable_error_logging):
            return None
        ctx = dict(context or {})
        ctx.setdefault("breadcrumbs", list(self._breadcrumbs))
        record = build_error_record(
            raw_error,
            ctx,
            session_id=self.session_id,
            user_id=self.user_id,
            metadata=self.metadata,
            stack_limit=self.config.stack_limit,
            now=self.clock(),
        )
        self.errors.record(record)
        if self.config.debug:
            logger.error("Error monitored: [%s] %s", record.severity, record.message)

        for alert in self.evaluator.observe_error(record):
            self._dispatch_alert(alert)

        if record.severity is Severity.CRITICAL:
            self._flush(FlushReason.IMMEDIATE, channels=(Channel.ERRORS,), guaranteed=True)
        return record

    @_guarded
    def record_metric(self, sample: MetricSample) -> MetricSample | None:
        """Record a performance sample.

        Memory samples also feed the memory-leak rule.
        """
        if not self._accepting(self.config.enable_performance):
            return None
        self.metrics.record(sample)
        if sample.category is MetricCategory.MEMORY:
            alert = self.evaluator.observe_memory(sample.value)
            if alert is not None:
                self._dispatch_alert(alert)
        return sample

    # Business helpers

    @_guarded
    def track_step(self, step: str, flow: str = "purchase_flow", **data: Any) -> Event | None:
        """Record a step of a business flow and flush immediately."""
        return self._record_event(
            flow, {"step": step, **data, "flow_id": self.session_id}, immediate=True
        )

    @_guarded
    def track_api_call(
        self,
        endpoint: str,
        method: str,
        status_code: int | None,
        duration: float | None,
        success: bool,
        error: str | None = None,
    ) -> Event | None:
        """Record an outgoing API call; failures also become api_error records."""
        event = self._record_event(
            "api_call",
            {
                "endpoint": endpoint,
                "method": method,
                "status_code": status_code,
                "duration": duration,
                "success": success,
            },
        )
        if not success:
            self._record_error(
                {
                    "type": "network_error" if status_code is None else "api_error",
                    "message": error or f"API call failed: {method} {endpoint} ({status_code})",
                },
                {"endpoint": endpoint, "method": method, "status_code": status_code},
            )
        return event

    @_guarded
    def set_user_properties(self, **properties: Any) -> Event | None:
        return self._record_event("user_properties_updated", properties)

    # Alerts

    def _dispatch_alert(self, alert: Alert) -> None:
        """Send an alert right away, outside the batch path; never retried."""
        self.recent_alerts.append(alert)
        self._record_event(
            "alert_triggered",
            {"alert_id": alert.id, "alert_type": alert.kind.value, "evidence": alert.evidence},
        )
        payload = {**encode_alert(alert), "sessionId": self.session_id}
        if alert.guaranteed:
            self._hand_off(Channel.ALERTS, FlushReason.IMMEDIATE, 1, payload)
            return
        if self._spawn(self._deliver_alert(alert, payload)) is None:
            logger.warning("No event loop to report alert %s; dropped", alert.kind.value)

    async def _deliver_alert(self, alert: Alert, payload: dict[str, Any]) -> bool:
        try:
            delivered = await self.transport.send_reliable(Channel.ALERTS, payload)
        except Exception:
            logger.exception("Transport raised while reporting alert %s", alert.id)
            delivered = False
        if not delivered:
            logger.warning("Failed to report alert %s (%s)", alert.id, alert.kind.value)
        self._note(Channel.ALERTS, FlushReason.IMMEDIATE, 1, delivered)
        return delivered

    # Flushing

    @_guarded
    def flush(
        self, reason: FlushReason | str = FlushReason.PERIODIC
    ) -> "asyncio.Task[bool] | None":
        """Drain the buffers and hand them to the transport.

        ``unload`` uses the best-effort channel and never requeues.
        ``periodic`` and ``immediate`` deliver reliably in the background;
        a failed batch is put back at the head of its buffer for the next
        flush.

        Returns:
            The background delivery task (resolving to True when every
            batch was accepted), or None when nothing was dispatched
            asynchronously.
        """
        return self._flush(FlushReason(reason))

    def _periodic_flush(self) -> None:
        self.flush(FlushReason.PERIODIC)

    def _buffers(
        self, channels: tuple[Channel, ...] | None
    ) -> list[tuple[Channel, BoundedBuffer[Any]]]:
        buffers: list[tuple[Channel, BoundedBuffer[Any]]] = [
            (Channel.EVENTS, self.events),
            (Channel.ERRORS, self.errors),
            (Channel.PERFORMANCE, self.metrics),
        ]
        return [(c, b) for c, b in buffers if channels is None or c in channels]

    def _flush(
        self,
        reason: FlushReason,
        channels: tuple[Channel, ...] | None = None,
        guaranteed: bool | None = None,
    ) -> "asyncio.Task[bool] | None":
        if guaranteed is None:
            guaranteed = reason is FlushReason.UNLOAD
        if not guaranteed and not _has_running_loop():
            logger.debug("No running event loop; %s flush deferred", reason.value)
            return None

        pending = []
        for channel, buffer in self._buffers(channels):
            if not len(buffer):
                continue
            records = buffer.drain_all()
            batch = BatchPayload(
                channel=channel,
                session_id=self.session_id,
                user_id=self.user_id,
                records=tuple(records),
                flush_time=self.clock(),
                environment=self.config.environment,
                reason=reason,
            )
            if guaranteed:
                self._hand_off(
                    channel, reason, batch.count, encode_batch(batch), buffer, records
                )
            else:
                pending.append((buffer, records, batch))

        if not pending:
            return None
        return self._spawn(self._deliver(pending))

    def _try_best_effort(self, channel: Channel, payload: dict[str, Any]) -> bool:
        try:
            return bool(self.transport.send_best_effort(channel, payload))
        except Exception:
            logger.exception("Transport raised on best-effort %s delivery", channel.value)
            return False

    def _hand_off(
        self,
        channel: Channel,
        reason: FlushReason,
        count: int,
        payload: dict[str, Any],
        buffer: BoundedBuffer[Any] | None = None,
        records: list[Any] | None = None,
    ) -> None:
        """Send through the best-effort channel without blocking a running loop.

        On a running loop the send happens in the loop's default executor;
        without one it happens inline. Records the collector did not accept
        go back to the head of their buffer, except on unload.
        """

        def settle(accepted: bool) -> None:
            self._note(channel, reason, count, accepted)
            if accepted:
                logger.debug("Sent %d %s records best-effort", count, channel.value)
            elif reason is FlushReason.UNLOAD:
                logger.debug("Dropped %d %s records at unload", count, channel.value)
            elif buffer is not None and records is not None:
                buffer.requeue(records)
                logger.warning(
                    "Best-effort send of %d %s records failed; requeued", count, channel.value
                )
            else:
                logger.warning("Best-effort send to %s was not accepted", channel.value)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            settle(self._try_best_effort(channel, payload))
            return

        future = loop.run_in_executor(None, self._try_best_effort, channel, payload)
        self._tasks.add(future)

        def done(fut: "asyncio.Future[bool]") -> None:
            self._tasks.discard(fut)
            settle(not fut.cancelled() and fut.result())

        future.add_done_callback(done)

    async def _deliver(
        self, pending: list[tuple[BoundedBuffer[Any], list[Any], BatchPayload]]
    ) -> bool:
        all_delivered = True
        for buffer, records, batch in pending:
            try:
                delivered = await self.transport.send_reliable(
                    batch.channel, encode_batch(batch)
                )
            except Exception:
                logger.exception("Transport raised while flushing %s", batch.channel.value)
                delivered = False
            if delivered:
                logger.debug("Flushed %d %s records", batch.count, batch.channel.value)
            else:
                buffer.requeue(records)
                all_delivered = False
                logger.warning(
                    "Flush of %d %s records failed; requeued", batch.count, batch.channel.value
                )
            self._note(batch.channel, batch.reason, batch.count, delivered)
        return all_delivered

    def _note(self, channel: Channel, reason: FlushReason, count: int, success: bool) -> None:
        self.last_flush[channel] = FlushOutcome(
            channel=channel,
            reason=reason,
            count=count,
            success=success,
            timestamp=self.clock(),
        )

    def _spawn(self, coro: Coroutine[Any, Any, bool]) -> "asyncio.Task[bool] | None":
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # Diagnostics

    @_guarded
    def generate_error_report(self) -> dict[str, Any] | None:
        """Build and keep an error rate report for diagnostics."""
        now = self.clock()
        errors = list(self.errors)
        stats = self.evaluator.statistics.snapshot()
        report = {
            "timestamp": now,
            "error_rate": self.tracker.count_since(),
            "total_errors": stats["total"],
            "errors_by_type": stats["by_type"],
            "errors_by_component": stats["by_component"],
            "top_errors": top_errors(errors),
            "system_health": system_health(errors, now),
        }
        if report["error_rate"]:
            logger.info("Current error rate: %d errors/minute", report["error_rate"])
        self.last_report = report
        return report

    def clear_errors(self) -> None:
        """Forget error statistics, the rate window and pending errors."""
        self.evaluator.reset()
        self.errors.clear()

    def set_alert_thresholds(self, **overrides: int) -> None:
        self.evaluator.set_thresholds(**overrides)

    @_guarded
    def get_summary(self) -> dict[str, Any] | None:
        """Read-only diagnostics snapshot; never mutates recorder state."""
        errors = list(self.errors)
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "enabled": self.enabled,
            "closed": self.closed,
            "environment": self.config.environment,
            "pending": {
                Channel.EVENTS.value: len(self.events),
                Channel.ERRORS.value: len(self.errors),
                Channel.PERFORMANCE.value: len(self.metrics),
            },
            "evicted": {
                Channel.EVENTS.value: self.events.evicted,
                Channel.ERRORS.value: self.errors.evicted,
                Channel.PERFORMANCE.value: self.metrics.evicted,
            },
            "errors": self.evaluator.statistics.snapshot(),
            "window_occupancy": self.tracker.occupancy(),
            "alerts": {kind.value: count for kind, count in self.evaluator.fired.items()},
            "recent_alerts": [encode_alert(alert) for alert in self.recent_alerts],
            "system_health": system_health(errors, self.clock()),
            "last_flush": {
                channel.value: asdict(outcome) for channel, outcome in self.last_flush.items()
            },
            "last_report": self.last_report,
            "internal_errors": self.internal_errors,
        }


def _has_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
