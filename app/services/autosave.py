"""
Debounced background task used for PRD autosave.

Holds a single "latest scheduled" asyncio.Task for the delay phase. Every
``schedule`` call cancels the pending task and replaces it, so only the last
call within the delay window ever runs. Once the delay has elapsed the action
runs in its own task; ``cancel`` no longer reaches it and it always finishes.

Usage
-----
    debouncer = Debouncer(delay=2.0, name="autosave")
    debouncer.schedule(save_current_prd)   # coroutine function, no args
    ...
    await debouncer.wait()                 # optional: wait for pending and running saves
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class Debouncer:
    """Cancellable delayed task keyed by a single handle."""

    def __init__(self, delay: float, name: str = "debounced") -> None:
        self.delay = delay
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._running: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """True while a run is waiting out its delay or still executing."""
        if self._task is not None and not self._task.done():
            return True
        return any(not t.done() for t in self._running)

    def schedule(self, action: Callable[[], Awaitable[None]]) -> None:
        """
        Run *action* after ``delay`` seconds, replacing any run still waiting.

        Must be called from inside a running event loop.
        """
        self.cancel()

        async def _delayed() -> None:
            await asyncio.sleep(self.delay)
            # Detached from the handle: later cancels only hit the next delay.
            run = asyncio.create_task(self._run(action))
            self._running.add(run)
            run.add_done_callback(self._running.discard)

        task = asyncio.create_task(_delayed())
        self._task = task
        task.add_done_callback(self._cleanup)

    async def _run(self, action: Callable[[], Awaitable[None]]) -> None:
        try:
            await action()
        except Exception as exc:
            logger.error("%s task failed: %s", self.name, exc, exc_info=True)

    def cancel(self) -> None:
        """Drop a run that is still in its delay. Running actions are left alone."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def wait(self) -> None:
        """Wait until nothing is delayed or running, following reschedules made meanwhile."""
        while True:
            task = self._task
            if task is not None and not task.done():
                await asyncio.wait({task})
                continue
            running = {t for t in self._running if not t.done()}
            if not running:
                break
            await asyncio.wait(running)

    def _cleanup(self, task: asyncio.Task) -> None:
        """Drop the handle once the latest task is done."""
        if self._task is task:
            self._task = None
