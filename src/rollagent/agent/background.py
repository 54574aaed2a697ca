"""
Detached background work.

Archival summarization and durable-memory writes run after the reply has
been returned. They only read snapshots, their failures are logged and
swallowed, and nothing awaits them on the request path.
"""

import asyncio
from typing import Any, Coroutine

import structlog

logger = structlog.get_logger()


class BackgroundTasks:
    """Owns fire-and-forget tasks until they finish.

    The event loop only keeps weak references to tasks, so the set here is
    what keeps a detached task alive.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self.failures = 0

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        """Schedule ``coro`` without awaiting it."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug("Background task scheduled", task=name)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info("Background task cancelled", task=task.get_name())
            return
        error = task.exception()
        if error is not None:
            self.failures += 1
            logger.error(
                "Background task failed",
                task=task.get_name(),
                error=str(error),
                error_type=type(error).__name__,
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every outstanding task; failures stay swallowed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
