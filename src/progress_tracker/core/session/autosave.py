"""Debounced autosave as a cancellable delayed asyncio task."""

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger


class Debouncer:
    """Run ``action`` once a burst of ``schedule()`` calls has gone quiet.

    Each ``schedule()`` cancels the pending delayed task and starts a new
    one. Only a task that sleeps the full ``delay`` without being cancelled
    awaits the action, on the loop; the action hands its file I/O to worker
    threads itself. Must be used from within a running event loop.
    """

    def __init__(self, delay: float, action: Callable[[], Awaitable[object]]) -> None:
        self.delay = delay
        self.action = action
        self._task: asyncio.Task[None] | None = None
        self.runs = 0

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self) -> None:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run_later())

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def flush(self) -> None:
        """Run a pending action now instead of waiting for the delay."""
        if not self.pending:
            return
        self.cancel()
        await self._run()

    async def _run_later(self) -> None:
        await asyncio.sleep(self.delay)
        await self._run()

    async def _run(self) -> None:
        try:
            await self.action()
        except Exception:
            logger.exception("Autosave failed")
        self.runs += 1
