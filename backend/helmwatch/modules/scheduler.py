"""Fixed-interval asyncio task runner.

At most one run is in flight: a tick that fires while the previous run is
still active is skipped, not queued. Exceptions raised by a run are logged
and the schedule continues.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

TaskFunc = Callable[[], Union[Any, Awaitable[Any]]]


class PeriodicTask:
    def __init__(self, name: str, interval_seconds: float, func: TaskFunc) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self._func = func
        self._loop_task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self.runs = 0
        self.skipped = 0

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def start(self) -> None:
        """Start ticking. Must be called from a running event loop."""
        if self.running:
            return
        self._loop_task = asyncio.get_running_loop().create_task(self._tick_loop(), name=self.name)
        logger.debug("%s started (every %.1fs)", self.name, self.interval_seconds)

    async def stop(self) -> None:
        """Cancel scheduled ticks and any run in flight."""
        for task in (self._loop_task, self._inflight):
            if task is not None and not task.done():
                task.cancel()
        for task in (self._loop_task, self._inflight):
            if task is not None:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._loop_task = None
        self._inflight = None
        logger.debug("%s stopped", self.name)

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            if self.busy:
                self.skipped += 1
                logger.debug("%s: previous run still in flight, tick skipped", self.name)
                continue
            self._inflight = asyncio.get_running_loop().create_task(self._run_once())

    async def _run_once(self) -> None:
        try:
            result = self._func()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s run failed", self.name)
        finally:
            self.runs += 1
