import asyncio
import logging
from typing import Awaitable, Optional, Set

logger = logging.getLogger(__name__)


class DetachedTasks:
    """
    Keeps strong references to fire-and-forget tasks spawned by request handlers.

    Tasks are created on the event loop, not as children of the request, so a
    client disconnect never cancels them. Their failures are logged here and
    never reach the request that spawned them.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Detached task {task.get_name()} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Detached task {task.get_name()} failed: {exc!r}", exc_info=exc)

    async def drain(self, timeout: Optional[float] = None):
        """Waits for pending tasks; whatever is still running after `timeout` is cancelled."""
        pending = set(self._tasks)
        if not pending:
            return
        done, pending = await asyncio.wait(pending, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} detached task(s) on shutdown")
            await asyncio.gather(*pending, return_exceptions=True)
