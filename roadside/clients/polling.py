"""
Fixed-interval poller shared by both observers.

Same shape as the server-side progression loop: run the callback, then wait
for either the interval or the stop signal.  Stopping is not preemptive; a
callback already in flight is allowed to finish, and callers discard its
result by checking ``generation``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class Poller:
    def __init__(self, callback: Callable[[], Awaitable[object]], interval: float):
        self.callback = callback
        self.interval = interval
        self.generation = 0
        self._task: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self.generation += 1
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._loop(self._stop))

    async def stop(self) -> None:
        """Signal the loop to end and wait for it, unless called from it."""
        self.generation += 1
        if self._stop:
            self._stop.set()
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            await task

    async def _loop(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            try:
                await self.callback()
            except Exception:
                logger.exception("Unhandled error in poll callback")
            if stop.is_set():
                break
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
