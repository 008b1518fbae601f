"""Exceptions raised by telemetripy.

Only construction-time validation escapes the package. Failures while
recording, evaluating or delivering telemetry are logged and swallowed by
the recorder.
"""


class TelemetryError(Exception):
    """Base class for telemetripy errors."""


class ConfigurationError(TelemetryError, ValueError):
    """Raised when a capacity, interval or threshold is invalid."""
