from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

LOGGER = logging.getLogger(__name__)


class TaskTracker:
    """
    Owns detached background work (optimistic lock calls, preview cleanup).

    Callers may await the task returned by ``spawn`` or ignore it; ``drain``
    waits for everything still outstanding.
    """

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task[Any]] = set()

    def spawn(
        self, coro: Coroutine[Any, Any, Any], *, name: Optional[str] = None
    ) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning("Background task %s failed: %s", task.get_name(), exc, exc_info=exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        while True:
            outstanding = [task for task in self._tasks if not task.done()]
            if not outstanding:
                return
            await asyncio.gather(*outstanding, return_exceptions=True)

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()


__all__ = ["TaskTracker"]
