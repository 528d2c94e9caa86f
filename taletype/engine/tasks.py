"""Tracking for fire-and-forget asyncio work."""

import asyncio
from typing import Awaitable, Optional, Set

import structlog

log = structlog.get_logger(__name__)


class BackgroundTasks:
    """Holds strong references to spawned tasks until they finish.

    Coroutines are expected to handle their own errors; anything that still
    escapes is logged when the task completes.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Awaitable, name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        if name:
            task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error(
                "background_task_failed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )

    async def drain(self) -> None:
        """Wait until no tracked task is left, including ones spawned meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
