"""Fire-and-forget background tasks."""
import asyncio
import logging
from typing import Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Spawns coroutines without awaiting them.

    Holds a reference to every running task so it is not garbage collected,
    and logs any exception the task ends with. ``drain`` waits for whatever
    is still in flight (shutdown, tests).
    """

    def __init__(self, name: str = "background"):
        self.name = name
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine, description: str = "") -> Optional[asyncio.Task]:
        """Schedule *coro* on the running loop. Returns None if there is no loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning(f"No running event loop, dropped {self.name} task {description}")
            return None

        task = loop.create_task(coro)
        task.set_name(f"{self.name}:{description}" if description else self.name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Task {task.get_name()} failed: {exc}")

    async def drain(self):
        """Wait until every spawned task (including ones spawned meanwhile) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)
