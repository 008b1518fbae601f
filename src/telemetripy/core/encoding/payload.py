"""JSON payload encoding for telemetry records and batches.

The key names and shapes produced here are what the remote collector
parses; they must stay stable. Keys are camelCase and timestamps are Unix
epoch milliseconds.
"""

import json
from typing import Any

from telemetripy.core.models import Alert, BatchPayload, ErrorRecord, Event, MetricSample


def _millis(timestamp: float) -> int:
    return int(timestamp * 1000)


def encode_event(event: Event) -> dict[str, Any]:
    """Encode an Event (or ErrorRecord) as a JSON-ready dict."""
    obj: dict[str, Any] = {
        "id": event.id,
        "name": event.name,
        "properties": event.properties,
        "sessionId": event.session_id,
        "userId": event.user_id,
        "timestamp": _millis(event.timestamp),
        "metadata": {
            "source": event.metadata.source,
            "version": event.metadata.version,
            "environment": event.metadata.environment,
        },
    }
    if isinstance(event, ErrorRecord):
        obj.update(
            {
                "kind": event.kind.value,
                "type": event.error_type,
                "message": event.message,
                "stack": event.stack,
                "severity": event.severity.value,
                "context": event.context,
                "component": event.component,
            }
        )
    return obj


def encode_metric(sample: MetricSample) -> dict[str, Any]:
    """Encode a MetricSample as a JSON-ready dict."""
    return {
        "category": sample.category.value,
        "name": sample.name,
        "value": sample.value,
        "values": sample.values,
        "timestamp": _millis(sample.timestamp),
    }


def encode_alert(alert: Alert) -> dict[str, Any]:
    """Encode an Alert as a JSON-ready dict."""
    return {
        "id": alert.id,
        "type": alert.kind.value,
        "severity": "high",
        "data": alert.evidence,
        "timestamp": _millis(alert.timestamp),
        "resolved": alert.resolved,
    }


def encode_record(record: Event | MetricSample) -> dict[str, Any]:
    if isinstance(record, MetricSample):
        return encode_metric(record)
    return encode_event(record)


def encode_batch(batch: BatchPayload) -> dict[str, Any]:
    """Encode a batch into the collector's payload shape.

    Returns:
        ``{sessionId, userId, events, metadata: {flushTime, eventCount,
        environment, reason}}``.
    """
    return {
        "sessionId": batch.session_id,
        "userId": batch.user_id,
        "events": [encode_record(record) for record in batch.records],
        "metadata": {
            "flushTime": _millis(batch.flush_time),
            "eventCount": batch.count,
            "environment": batch.environment,
            "reason": batch.reason.value,
        },
    }


def dumps(payload: dict[str, Any]) -> str:
    """Serialize a payload, stringifying values JSON cannot represent."""
    return json.dumps(payload, default=str, separators=(",", ":"))
