"""Producer adapters that feed the recorder from runtime instrumentation.

Each installer wires one source of telemetry into a recorder and registers
its own revocation with the recorder, so that a single teardown removes
every hook. None of them assume more of the recorder than its public
recording API.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
import time
import traceback
from collections.abc import Callable
from types import TracebackType
from typing import TYPE_CHECKING, Any

import httpx
import psutil

from telemetripy.core import metrics
from telemetripy.core.models import Channel, ErrorKind, FlushReason, MetricSample

if TYPE_CHECKING:
    from telemetripy.runtime.recorder import TelemetryRecorder

logger = logging.getLogger(__name__)

_START_KEY = "telemetripy.start"


def process_memory() -> float:
    """Resident set size of the current process, in bytes."""
    return float(psutil.Process().memory_info().rss)


class MemorySampler:
    """Periodically reports memory usage as a memory MetricSample.

    Args:
        recorder: Recorder receiving the samples.
        reader: Returns bytes in use (default: process RSS via psutil).
        interval: Seconds between samples (default: from the recorder config).
    """

    def __init__(
        self,
        recorder: TelemetryRecorder,
        reader: Callable[[], float] | None = None,
        interval: float | None = None,
    ) -> None:
        self.recorder = recorder
        self.reader = reader or process_memory
        self.interval = interval or recorder.config.memory_sample_interval
        self._handle: object | None = None

    def sample(self) -> MetricSample | None:
        """Take one reading and record it."""
        try:
            used = self.reader()
        except (psutil.Error, OSError) as exc:
            logger.debug("Memory reading failed: %s", exc)
            return None
        return self.recorder.record_metric(metrics.memory(used, timestamp=self.recorder.clock()))

    def start(self) -> None:
        if self._handle is not None:
            return
        self._handle = self.recorder.scheduler.call_every(self.interval, self.sample)
        self.recorder.register_observer(self.stop)

    def stop(self) -> None:
        if self._handle is not None:
            self.recorder.scheduler.cancel(self._handle)
            self._handle = None
def install_exception_hooks(
    recorder: TelemetryRecorder,
    loop: asyncio.AbstractEventLoop | None = None,
) -> Callable[[], None]:
    """Record uncaught exceptions of the main thread and of worker threads.

    The interpreter is about to exit when the main thread hook runs, so
    pending records are sent through the best-effort channel right after the
    error is recorded. Worker thread failures are handed to the recorder's
    event loop with ``call_soon_threadsafe`` when one is known, and recorded
    inline otherwise; the next flush picks them up. The previous hooks still
    run.

    Args:
        recorder: Recorder receiving the errors.
        loop: Loop the recorder runs on (default: the running loop, if any).

    Returns:
        Callable restoring the previous hooks (also registered with the
        recorder's teardown).
    """
    previous = sys.excepthook
    previous_thread = threading.excepthook
    target = loop
    if target is None:
        try:
            target = asyncio.get_running_loop()
        except RuntimeError:
            target = None

    def hook(
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        if not issubclass(exc_type, KeyboardInterrupt):
            recorder.record_error(exc.with_traceback(tb), {"source": "sys.excepthook"})
            recorder.flush(FlushReason.UNLOAD)
        previous(exc_type, exc, tb)

    def thread_hook(args: threading.ExceptHookArgs) -> None:
        if args.exc_value is not None and not issubclass(args.exc_type, SystemExit):
            context: dict[str, Any] = {"source": "threading.excepthook"}
            if args.thread is not None:
                context["thread"] = args.thread.name
            error = args.exc_value.with_traceback(args.exc_traceback)
            if target is not None and not target.is_closed():
                target.call_soon_threadsafe(recorder.record_error, error, context)
            else:
                recorder.record_error(error, context)
        previous_thread(args)

    sys.excepthook = hook
    threading.excepthook = thread_hook

    def uninstall() -> None:
        if sys.excepthook is hook:
            sys.excepthook = previous
        if threading.excepthook is thread_hook:
            threading.excepthook = previous_thread

    recorder.register_observer(uninstall)
    return uninstall


def install_asyncio_handler(
    recorder: TelemetryRecorder,
    loop: asyncio.AbstractEventLoop | None = None,
) -> Callable[[], None]:
    """Record exceptions the event loop could not deliver to anyone.

    Covers tasks whose exception was never retrieved and failing callbacks,
    recorded as unhandled-rejection errors. The previous handler (or the
    loop's default handler) still runs.

    Returns:
        Callable restoring the previous handler (also registered with the
        recorder's teardown).
    """
    target = loop or asyncio.get_running_loop()
    previous = target.get_exception_handler()

    def handler(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        raw: dict[str, Any] = {
            "kind": ErrorKind.UNHANDLED_REJECTION.value,
            "type": type(exc).__name__ if exc is not None else "unhandled_rejection",
            "message": str(exc) if exc else context.get("message", "Unhandled rejection"),
        }
        if exc is not None and exc.__traceback__ is not None:
            raw["stack"] = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
        recorder.record_error(raw, {"source": "asyncio"})
        if previous is not None:
            previous(loop, context)
        else:
            loop.default_exception_handler(context)

    target.set_exception_handler(handler)

    def uninstall() -> None:
        if target.get_exception_handler() is handler:
            target.set_exception_handler(previous)

    recorder.register_observer(uninstall)
    return uninstall


def _is_own_endpoint(recorder: TelemetryRecorder, url: str) -> bool:
    return any(url.startswith(recorder.config.endpoint_url(c)) for c in Channel) or any(
        url.endswith(path) for path in recorder.config.endpoints.values()
    )


def instrument_client(
    client: httpx.Client | httpx.AsyncClient,
    recorder: TelemetryRecorder,
) -> Callable[[], None]:
    """Track every response of an httpx client as an api_call event.

    Non-success statuses are also recorded as api_error records, which feed
    the api-failure-pattern rule. Requests to the collector's own endpoints
    are ignored so delivery failures never report themselves.

    Returns:
        Callable removing the hooks (also registered with the recorder's
        teardown).
    """

    def on_request(request: httpx.Request) -> None:
        request.extensions[_START_KEY] = time.perf_counter()

    def on_response(response: httpx.Response) -> None:
        request = response.request
        url = str(request.url)
        if _is_own_endpoint(recorder, url):
            return
        start = request.extensions.get(_START_KEY)
        duration = (time.perf_counter() - start) * 1000 if start is not None else None
        recorder.track_api_call(
            url, request.method, response.status_code, duration, response.is_success
        )

    request_hook: Callable[..., Any]
    response_hook: Callable[..., Any]
    if isinstance(client, httpx.AsyncClient):

        async def async_request(request: httpx.Request) -> None:
            on_request(request)

        async def async_response(response: httpx.Response) -> None:
            on_response(response)

        request_hook, response_hook = async_request, async_response
    else:
        request_hook, response_hook = on_request, on_response

    hooks = client.event_hooks
    hooks["request"].append(request_hook)
    hooks["response"].append(response_hook)
    client.event_hooks = hooks

    def uninstall() -> None:
        current = client.event_hooks
        if request_hook in current["request"]:
            current["request"].remove(request_hook)
        if response_hook in current["response"]:
            current["response"].remove(response_hook)
        client.event_hooks = current

    recorder.register_observer(uninstall)
    return uninstall
