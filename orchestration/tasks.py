"""Task supervisor - tracks the engine's background asyncio tasks."""

import asyncio
from collections.abc import Coroutine
from typing import Any

from pinkflow_sdk.logging import get_logger


class TaskSupervisor:
    """Owns background tasks so none of them is garbage collected or lost.

    A task that ends with an exception is logged; its result is otherwise
    discarded.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._logger = get_logger("orchestration.tasks")

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task[Any]:
        """Schedule a coroutine on the running loop.

        Args:
            coro: Coroutine to run
            name: Task name shown in logs

        Returns:
            The created task
        """
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error(
                "background_task_failed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait until every task, including ones spawned meanwhile, is done.

        Args:
            timeout: Overall limit in seconds, or None to wait forever

        Returns:
            True if no task is left running
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._tasks:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                break
            await asyncio.wait(set(self._tasks), timeout=remaining)
        return not self._tasks

    async def shutdown(self) -> None:
        """Cancel every task still running and wait for them to finish."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            self._logger.info("background_tasks_cancelled", count=len(tasks))
