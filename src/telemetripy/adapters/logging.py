"""Python logging handler adapter for telemetripy.

This adapter bridges Python's standard library logging module to the
recorder, so that ERROR and CRITICAL log records become error records.
"""

from __future__ import annotations

import logging
import traceback
from typing import TYPE_CHECKING, Any

from telemetripy.core.models import ErrorKind, Severity

if TYPE_CHECKING:
    from telemetripy.runtime.recorder import TelemetryRecorder

# Standard LogRecord attributes that should not be treated as extra fields
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)

# Default attributes to extract from LogRecord
_DEFAULT_INCLUDE_ATTRS = ["module", "funcName", "lineno", "pathname"]

# Records from these loggers describe the pipeline itself and are never re-fed
_OWN_LOGGER = "telemetripy"


class TelemetryLogHandler(logging.Handler):
    """Logging handler that records log records as telemetry errors.

    Example:
        ```python
        handler = TelemetryLogHandler(recorder)
        logging.getLogger().addHandler(handler)
        ```
    """

    def __init__(
        self,
        recorder: TelemetryRecorder,
        level: int = logging.ERROR,
        include_attrs: list[str] | None = None,
    ) -> None:
        """Initialize the handler with a recorder.

        Args:
            recorder: Recorder that receives the error records.
            level: Minimum level converted (default: ERROR).
            include_attrs: List of LogRecord attributes to include. Defaults to
                ["module", "funcName", "lineno", "pathname"].
        """
        super().__init__(level)
        self._recorder = recorder
        self._include_attrs = include_attrs or _DEFAULT_INCLUDE_ATTRS

    def emit(self, record: logging.LogRecord) -> None:
        """Convert a log record into an error record.

        Args:
            record: The log record to emit.
        """
        if record.name == _OWN_LOGGER or record.name.startswith(_OWN_LOGGER + "."):
            return

        # Map of attribute names to their values from LogRecord
        attr_mapping: dict[str, str | int | float | bool] = {
            "module": record.name,
            "funcName": record.funcName or "",
            "lineno": record.lineno,
            "pathname": record.pathname,
        }

        context: dict[str, Any] = {
            key: attr_mapping[key] for key in self._include_attrs if key in attr_mapping
        }

        # Add any extra attributes passed via logging call
        for key, value in record.__dict__.items():
            if key not in _STANDARD_LOGRECORD_ATTRS and isinstance(
                value, (str, int, float, bool)
            ):
                context[key] = value

        raw: dict[str, Any] = {
            "kind": ErrorKind.OTHER.value,
            "type": f"log_{record.levelname.lower()}",
            "message": record.getMessage(),
        }

        # Extract exception info if present
        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            raw["kind"] = ErrorKind.RUNTIME_ERROR.value
            if exc_type is not None:
                raw["type"] = exc_type.__name__
            if exc_tb is not None:
                raw["stack"] = "".join(
                    traceback.format_exception(exc_type, exc_value, exc_tb)
                )

        if record.levelno >= logging.CRITICAL:
            raw["severity"] = Severity.CRITICAL.value

        self._recorder.record_error(raw, context)
