"""Unit tests for TelemetryLogHandler logging adapter."""

import logging
import sys

import pytest

from telemetripy.adapters.logging import TelemetryLogHandler
from telemetripy.adapters.transport.in_memory import InMemoryTransport
from telemetripy.core.models import Channel, ErrorKind, Severity
from telemetripy.runtime.recorder import TelemetryRecorder

pytestmark = [pytest.mark.unit, pytest.mark.tier(1)]


def _record(
    name: str = "myapp.service",
    level: int = logging.ERROR,
    msg: str = "payment failed",
    exc_info: object = None,
) -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="/app/service.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,  # type: ignore[arg-type]
        func="charge",
    )


class TestTelemetryLogHandler:
    """Tests for TelemetryLogHandler adapter."""

    def test_handler_is_logging_handler(self, recorder: TelemetryRecorder) -> None:
        """Handler extends logging.Handler at ERROR level by default."""
        handler = TelemetryLogHandler(recorder)
        assert isinstance(handler, logging.Handler)
        assert handler.level == logging.ERROR

    def test_emit_records_error(self, recorder: TelemetryRecorder) -> None:
        """Handler.emit() records an error with the log message."""
        TelemetryLogHandler(recorder).emit(_record())

        (error,) = list(recorder.errors)
        assert error.message == "payment failed"
        assert error.error_type == "log_error"
        assert error.kind is ErrorKind.OTHER

    def test_extracts_logrecord_attributes(self, recorder: TelemetryRecorder) -> None:
        """Handler copies module, funcName, lineno and pathname into context."""
        TelemetryLogHandler(recorder).emit(_record())

        (error,) = list(recorder.errors)
        assert error.context["module"] == "myapp.service"
        assert error.context["funcName"] == "charge"
        assert error.context["lineno"] == 42
        assert error.context["pathname"] == "/app/service.py"

    def test_include_attrs_limits_context(self, recorder: TelemetryRecorder) -> None:
        TelemetryLogHandler(recorder, include_attrs=["lineno"]).emit(_record())

        (error,) = list(recorder.errors)
        assert "module" not in error.context
        assert error.context["lineno"] == 42

    def test_extra_fields_are_added(self, recorder: TelemetryRecorder) -> None:
        record = _record()
        record.order_id = "o-1"  # type: ignore[attr-defined]

        TelemetryLogHandler(recorder).emit(record)

        (error,) = list(recorder.errors)
        assert error.context["order_id"] == "o-1"

    def test_exception_info_becomes_stack(self, recorder: TelemetryRecorder) -> None:
        try:
            raise KeyError("missing")
        except KeyError:
            exc_info = sys.exc_info()

        TelemetryLogHandler(recorder).emit(_record(exc_info=exc_info))

        (error,) = list(recorder.errors)
        assert error.kind is ErrorKind.RUNTIME_ERROR
        assert error.error_type == "KeyError"
        assert error.stack is not None
        assert "KeyError" in error.stack

    def test_critical_level_is_critical_severity(
        self, recorder: TelemetryRecorder, transport: InMemoryTransport
    ) -> None:
        """Critical records are escalated straight out of the buffer."""
        TelemetryLogHandler(recorder).emit(_record(level=logging.CRITICAL, msg="disk full"))

        assert len(recorder.errors) == 0
        ((channel, payload),) = transport.best_effort
        assert channel is Channel.ERRORS
        assert payload["events"][0]["severity"] == Severity.CRITICAL.value

    def test_ignores_own_loggers(self, recorder: TelemetryRecorder) -> None:
        """Records from the telemetripy hierarchy are never re-fed."""
        handler = TelemetryLogHandler(recorder)
        handler.emit(_record(name="telemetripy.runtime.recorder"))
        handler.emit(_record(name="telemetripy"))

        assert len(recorder.errors) == 0

    def test_attached_to_logger(self, recorder: TelemetryRecorder) -> None:
        logger = logging.getLogger("tests.log_handler")
        handler = TelemetryLogHandler(recorder)
        logger.addHandler(handler)
        try:
            logger.warning("not recorded")
            logger.error("recorded")
        finally:
            logger.removeHandler(handler)

        assert [e.message for e in recorder.errors] == ["recorded"]
