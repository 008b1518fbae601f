"""Severity classification and error record construction.

Severity is decided by an ordered rule table. Rules are evaluated top to
bottom against the lower-cased message and the first match wins; a message
mentioning both "network" and "fatal" is therefore a warning.
"""

import time
import traceback
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from telemetripy.core import ids
from telemetripy.core.models import ErrorKind, ErrorRecord, Severity, SourceMetadata

DEFAULT_STACK_LIMIT = 500


@dataclass(frozen=True)
class SeverityRule:
    """Maps any of a set of keywords to a severity."""

    keywords: tuple[str, ...]
    severity: Severity

    def matches(self, message: str) -> bool:
        return any(keyword in message for keyword in self.keywords)


SEVERITY_RULES: tuple[SeverityRule, ...] = (
    SeverityRule(("network", "fetch"), Severity.WARNING),
    SeverityRule(("permission", "security"), Severity.ERROR),
    SeverityRule(("critical", "fatal"), Severity.CRITICAL),
)


def classify_severity(
    message: str,
    rules: tuple[SeverityRule, ...] = SEVERITY_RULES,
    default: Severity = Severity.INFO,
) -> Severity:
    """Return the severity of the first rule matching message."""
    lowered = message.lower()
    for rule in rules:
        if rule.matches(lowered):
            return rule.severity
    return default


def infer_kind(raw_error: object) -> ErrorKind:
    """Guess the origin of a raw error when the producer did not say."""
    if isinstance(raw_error, MemoryError):
        return ErrorKind.MEMORY_PRESSURE
    if isinstance(raw_error, (ConnectionError, TimeoutError)):
        return ErrorKind.RESOURCE_LOAD_FAILURE
    if isinstance(raw_error, BaseException):
        return ErrorKind.RUNTIME_ERROR
    return ErrorKind.OTHER


def truncate_stack(stack: str | None, limit: int = DEFAULT_STACK_LIMIT) -> str | None:
    """Cut a stack trace down to at most limit characters."""
    if not stack:
        return None
    return stack[:limit]


def _format_exception(error: BaseException) -> str | None:
    if error.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


def _coerce_kind(value: object, fallback: ErrorKind) -> ErrorKind:
    try:
        return ErrorKind(value)
    except ValueError:
        return fallback


def _coerce_severity(value: object) -> Severity | None:
    try:
        return Severity(value)
    except ValueError:
        return None


def build_error_record(
    raw_error: BaseException | Mapping[str, Any] | str | None,
    context: Mapping[str, Any] | None = None,
    *,
    session_id: str,
    user_id: str,
    metadata: SourceMetadata | None = None,
    stack_limit: int = DEFAULT_STACK_LIMIT,
    now: float | None = None,
) -> ErrorRecord:
    """Build an ErrorRecord from whatever a producer handed over.

    Accepts an exception, a plain message, or a mapping with any of the
    keys ``kind``, ``type``, ``message``, ``stack``, ``severity`` and
    ``component``. Missing or malformed fields fall back to defaults, so
    this never raises on bad producer input.

    An explicit ``severity`` in a mapping is the producer's own
    classification and is kept; otherwise the rule table decides.

    Args:
        raw_error: The error as reported by the producer.
        context: Additional structured context.
        session_id: Session the record belongs to.
        user_id: User the record belongs to.
        metadata: Producer description.
        stack_limit: Maximum stack length in characters.
        now: Unix timestamp in seconds (default: current time).

    Returns:
        An immutable ErrorRecord.
    """
    timestamp = time.time() if now is None else now
    ctx = dict(context or {})
    explicit_severity: Severity | None = None
    component = ctx.pop("component", None)

    if isinstance(raw_error, BaseException):
        kind = infer_kind(raw_error)
        error_type = type(raw_error).__name__
        message = str(raw_error) or error_type
        stack = _format_exception(raw_error)
    elif isinstance(raw_error, Mapping):
        kind = _coerce_kind(raw_error.get("kind"), ErrorKind.OTHER)
        error_type = str(raw_error.get("type") or kind.value)
        message = str(raw_error.get("message") or "")
        stack = raw_error.get("stack")
        stack = str(stack) if stack is not None else None
        explicit_severity = _coerce_severity(raw_error.get("severity"))
        component = raw_error.get("component", component)
    else:
        kind = ErrorKind.OTHER
        error_type = kind.value
        message = "" if raw_error is None else str(raw_error)
        stack = None

    severity = explicit_severity or classify_severity(message)

    return ErrorRecord(
        id=ids.generate_id("error", now=timestamp),
        name="error_occurred",
        timestamp=timestamp,
        session_id=session_id,
        user_id=user_id,
        properties={},
        metadata=metadata or SourceMetadata(),
        kind=kind,
        error_type=error_type,
        message=message,
        stack=truncate_stack(stack, stack_limit),
        severity=severity,
        context=ctx,
        component=str(component) if component is not None else None,
    )
