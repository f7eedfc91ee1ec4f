"""Fire-and-forget task registry.

asyncio only keeps weak references to tasks, so a task spawned without a
reference can be garbage-collected mid-flight. BackgroundTasks holds a strong
reference until the task finishes and logs any exception it ends with.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from signalbot.logging import get_logger

logger = get_logger(__name__)


class BackgroundTasks:
    """Strong-reference holder for detached coroutines."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()  # type: ignore[type-arg]

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:  # type: ignore[type-arg]
        """Schedule ``coro`` on the running loop and return its task."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:  # type: ignore[type-arg]
        self._tasks.discard(task)
        if task.cancelled():
            logger.info("background_task_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "background_task_failed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )

    def __len__(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait until every task spawned so far (and any they spawn) has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
