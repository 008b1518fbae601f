"""Asyncio-backed timer scheduler."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class AsyncioScheduler:
    """SchedulerPort implementation on an asyncio event loop.

    Periodic callbacks run as tasks that sleep between invocations; delayed
    callbacks use ``loop.call_later``. All callbacks share the loop's single
    thread, so they never overlap each other or producer calls.

    Args:
        loop: Event loop to schedule on (default: the running loop at the
            time of the first scheduling call).
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._handles: set[asyncio.Task[None] | asyncio.TimerHandle] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def pending(self) -> int:
        """Number of callbacks still scheduled."""
        return len(self._handles)

    async def _every(self, interval: float, callback: Callable[[], Any]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                callback()
            except Exception:
                logger.exception("Scheduled callback %r failed", callback)

    def call_every(self, interval: float, callback: Callable[[], Any]) -> asyncio.Task[None]:
        """Run callback every interval seconds until cancelled."""
        task = self.loop.create_task(self._every(interval, callback))
        self._handles.add(task)
        task.add_done_callback(self._handles.discard)
        return task

    def call_later(self, delay: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        """Run callback once after delay seconds unless cancelled."""

        def run() -> None:
            self._handles.discard(handle)
            try:
                callback()
            except Exception:
                logger.exception("Delayed callback %r failed", callback)

        handle = self.loop.call_later(delay, run)
        self._handles.add(handle)
        return handle

    def cancel(self, handle: object) -> None:
        """Cancel a single scheduled callback."""
        if isinstance(handle, (asyncio.Task, asyncio.TimerHandle)):
            handle.cancel()
            self._handles.discard(handle)

    def cancel_all(self) -> None:
        """Cancel every scheduled callback. Safe to call repeatedly."""
        for handle in list(self._handles):
            handle.cancel()
        self._handles.clear()
