"""Cancellable periodic tasks on the asyncio event loop.

Two kinds of timers run while the dashboard is open: the hourly refresh
of the displayed snapshot and the "wait for today" probe.  Both are
``PeriodicTask`` instances owned by whoever started them, with explicit
``start``/``stop`` calls instead of relying on garbage collection.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run *callback* every *interval* seconds until stopped.

    Args:
        name: Used for the asyncio task name and log lines.
        callback: Coroutine function invoked on every tick.
        interval: Seconds between the end of one call and the next.
        run_immediately: Call *callback* right away instead of waiting
            one *interval* first.
        until_success: Finish on its own as soon as *callback* returns
            a truthy value.
    """

    def __init__(
        self,
        name: str,
        callback: Callable[[], Awaitable[object]],
        interval: float,
        *,
        run_immediately: bool = False,
        until_success: bool = False,
    ):
        self.name = name
        self._callback = callback
        self._interval = interval
        self._run_immediately = run_immediately
        self._until_success = until_success
        self._task: asyncio.Task | None = None
        self.succeeded = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            raise RuntimeError(f"{self.name} is already running")
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    async def _run(self) -> None:
        if not self._run_immediately:
            await asyncio.sleep(self._interval)
        while True:
            try:
                result = await self._callback()
            except Exception:
                logger.exception("%s: tick failed, retrying in %ss", self.name, self._interval)
                result = None
            if self._until_success and result:
                self.succeeded = True
                logger.info("%s: finished", self.name)
                return
            await asyncio.sleep(self._interval)

    def cancel(self) -> None:
        """Request cancellation without yielding to the event loop.

        A task cancelled before its first tick never calls *callback*.
        """
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def stop(self) -> None:
        """Cancel the task and wait until it has fully stopped."""
        task = self._task
        if task is None:
            return
        self.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("%s: stopped", self.name)


class PollerRegistry:
    """At most one "wait for today" poller per community key.

    A poller is ``idle`` when absent or finished and ``polling`` while
    its task runs.  Starting a poller for a key stops the previous one
    for the same key first.
    """

    def __init__(self, interval: float):
        self.interval = interval
        self._pollers: dict[str, PeriodicTask] = {}

    async def start(self, key: str, probe: Callable[[], Awaitable[bool]]) -> PeriodicTask:
        await self.stop(key)
        logger.info("[%s] Starting poll for the latest daily snapshot", key)
        poller = PeriodicTask(
            f"poll-{key}", probe, self.interval,
            run_immediately=True, until_success=True,
        )
        self._pollers[key] = poller
        poller.start()
        return poller

    def is_polling(self, key: str) -> bool:
        poller = self._pollers.get(key)
        return poller is not None and poller.running

    def active_keys(self) -> list[str]:
        return sorted(key for key, poller in self._pollers.items() if poller.running)

    async def stop(self, key: str) -> None:
        poller = self._pollers.pop(key, None)
        if poller is not None:
            await poller.stop()

    def cancel_all(self) -> None:
        """Cancel every poller at once, before any of them can run again."""
        for poller in self._pollers.values():
            poller.cancel()

    async def stop_all(self) -> None:
        self.cancel_all()
        for key in list(self._pollers):
            await self.stop(key)
