"""BDD step definitions for the telemetry pipeline feature."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest
from pytest_bdd import given, parsers, then, when

from telemetripy.adapters.transport.in_memory import InMemoryTransport
from telemetripy.config import TelemetryConfig
from telemetripy.core.models import Channel
from telemetripy.runtime.recorder import TelemetryRecorder


@dataclass
class PipelineScenarioContext:
    """Shared state between steps in a pipeline scenario."""

    transport: InMemoryTransport = field(default_factory=InMemoryTransport)
    recorder: TelemetryRecorder | None = None
    flush_results: list[bool | None] = field(default_factory=list)


@pytest.fixture
def ctx() -> PipelineScenarioContext:
    """Fresh scenario context for each test."""
    return PipelineScenarioContext()


def _recorder(ctx: PipelineScenarioContext) -> TelemetryRecorder:
    assert ctx.recorder is not None, "no recorder configured"
    return ctx.recorder


def _split(names: str) -> list[str]:
    return [name.strip() for name in names.split(",") if name.strip()]


def _event_names(payloads: list[dict[str, Any]]) -> list[str]:
    return [record["name"] for payload in payloads for record in payload["events"]]


async def _periodic_flush(recorder: TelemetryRecorder) -> bool | None:
    task = recorder.flush()
    if task is None:
        return None
    return await task


# === Background Steps ===
@given("an in-memory transport")
def step_transport(ctx: PipelineScenarioContext) -> None:
    ctx.transport = InMemoryTransport()


@given(parsers.parse("a recorder with an event capacity of {capacity:d}"))
def step_recorder(ctx: PipelineScenarioContext, capacity: int) -> None:
    ctx.recorder = TelemetryRecorder(
        TelemetryConfig(base_url="http://collector.test", event_capacity=capacity),
        transport=ctx.transport,
        session_id="sess_bdd",
        user_id="user_bdd",
    )


@given("the transport rejects deliveries")
def step_transport_rejects(ctx: PipelineScenarioContext) -> None:
    ctx.transport.fail = True


# === Actions ===
@when("the transport accepts deliveries")
def step_transport_accepts(ctx: PipelineScenarioContext) -> None:
    ctx.transport.fail = False


@when(parsers.parse('the events "{names}" are recorded'))
def step_record_events(ctx: PipelineScenarioContext, names: str) -> None:
    for name in _split(names):
        _recorder(ctx).record_event(name)


@when(parsers.parse("{count:d} critical errors are recorded"))
def step_record_critical(ctx: PipelineScenarioContext, count: int) -> None:
    for i in range(count):
        _recorder(ctx).record_error(f"fatal: payment ledger mismatch #{i}")


@when("a periodic flush runs")
def step_periodic_flush(ctx: PipelineScenarioContext) -> None:
    ctx.flush_results.append(asyncio.run(_periodic_flush(_recorder(ctx))))


@when("the recorder is torn down")
def step_teardown(ctx: PipelineScenarioContext) -> None:
    _recorder(ctx).teardown()


# === Assertions ===
@then(parsers.parse('the event buffer holds "{names}"'))
def step_buffer_holds(ctx: PipelineScenarioContext, names: str) -> None:
    assert [event.name for event in _recorder(ctx).events] == _split(names)


@then("the event buffer is empty")
def step_buffer_empty(ctx: PipelineScenarioContext) -> None:
    assert len(_recorder(ctx).events) == 0


@then(parsers.parse('the transport received the events "{names}"'))
def step_transport_received(ctx: PipelineScenarioContext, names: str) -> None:
    payloads = [p for c, p in ctx.transport.reliable if c is Channel.EVENTS]
    assert _event_names(payloads) == _split(names)


@then(parsers.parse('the best-effort channel received the events "{names}"'))
def step_best_effort_received(ctx: PipelineScenarioContext, names: str) -> None:
    payloads = [p for c, p in ctx.transport.best_effort if c is Channel.EVENTS]
    assert _event_names(payloads) == _split(names)


@then(parsers.parse('{count:d} "{kind}" alert was sent best-effort'))
def step_alert_sent(ctx: PipelineScenarioContext, count: int, kind: str) -> None:
    alerts = [p for c, p in ctx.transport.best_effort if c is Channel.ALERTS]
    assert [alert["type"] for alert in alerts] == [kind] * count


@then("every critical error was sent best-effort")
def step_critical_sent(ctx: PipelineScenarioContext) -> None:
    payloads = [p for c, p in ctx.transport.best_effort if c is Channel.ERRORS]
    severities = [record["severity"] for payload in payloads for record in payload["events"]]
    assert severities == ["critical"] * 3
    assert len(_recorder(ctx).errors) == 0


@then(parsers.parse('recording "{name}" is ignored'))
def step_recording_ignored(ctx: PipelineScenarioContext, name: str) -> None:
    assert _recorder(ctx).record_event(name) is None
