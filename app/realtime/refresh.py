"""Debounced, serialized refresh for live screens."""

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class CoalescingRefresher:
    """Runs `refresh` at most once at a time.

    trigger() (re)starts a trailing debounce window; when it elapses the
    refresh runs, or, if one is already in flight, a single trailing run is
    queued behind it. Any number of triggers collapse into at most one
    in-flight run plus one pending run.
    """

    def __init__(self, refresh: Callable[[], Awaitable[None]], delay: float = 1.0, name: str = "refresh"):
        self._refresh = refresh
        self._delay = delay
        self._name = name
        self._timer: Optional[asyncio.TimerHandle] = None
        self._running: Optional[asyncio.Task] = None
        self._rerun = False
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._timer is not None or self._rerun

    @property
    def in_flight(self) -> bool:
        return self._running is not None and not self._running.done()

    def trigger(self) -> None:
        if self._closed:
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(self._delay, self._fire)

    async def run_now(self) -> None:
        """Refresh immediately (manual retry), joining an in-flight run if there is one."""
        if self._closed:
            return
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.in_flight:
            self._rerun = True
        else:
            self._running = asyncio.ensure_future(self._run())
        await asyncio.shield(self._running)

    async def close(self) -> None:
        self._closed = True
        self._rerun = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        task = self._running
        self._running = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _fire(self) -> None:
        self._timer = None
        if self._closed:
            return
        if self.in_flight:
            self._rerun = True
            return
        self._running = asyncio.ensure_future(self._run())

    async def _run(self) -> None:
        while True:
            self._rerun = False
            try:
                await self._refresh()
            except Exception:
                logger.exception(f"{self._name} failed")
            if self._closed or not self._rerun:
                break
