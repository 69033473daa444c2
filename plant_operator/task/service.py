"""Task tracking service.

Executors of a reconcile pass run as tracked tasks so a pass can be joined as
a unit, while the runner worker and delayed requeues run as background tasks
that are only cancelled on shutdown.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Coroutine
from functools import partial
import logging
from typing import Any, TypeVar

_LOGGER = logging.getLogger(__name__)

__all__: list[str] = []

_T = TypeVar("_T")


class TaskService(ABC):
    """Service for tracking and waiting for asynchronous tasks."""

    @abstractmethod
    def create_task(
        self, coro: Coroutine[Any, Any, _T], name: str | None = None
    ) -> asyncio.Task[_T]:
        """Create and track a task that is part of the current work."""

    @abstractmethod
    def create_background_task(
        self, coro: Coroutine[Any, Any, _T], name: str | None = None
    ) -> asyncio.Task[_T]:
        """Create and track a long running task such as a queue worker."""

    @abstractmethod
    async def block_till_done(self) -> None:
        """Wait for all active non-background tasks to complete."""

    @abstractmethod
    async def cancel_background_tasks(self) -> None:
        """Cancel all background tasks and wait for them to exit."""

    @abstractmethod
    def get_num_active_tasks(self) -> int:
        """Get the number of active non-background tasks."""


class TaskServiceImpl(TaskService):
    """Default TaskService backed by the running event loop."""

    def __init__(self) -> None:
        """Initialize the task service."""
        self._active_tasks: set[asyncio.Task[Any]] = set()
        self._background_tasks: set[asyncio.Task[Any]] = set()

    def create_task(
        self, coro: Coroutine[Any, Any, _T], name: str | None = None
    ) -> asyncio.Task[_T]:
        """Create and track a task that is part of the current work."""
        task = asyncio.create_task(coro, name=name)
        self._active_tasks.add(task)
        task.add_done_callback(partial(self._task_done, self._active_tasks))
        return task

    def create_background_task(
        self, coro: Coroutine[Any, Any, _T], name: str | None = None
    ) -> asyncio.Task[_T]:
        """Create and track a long running task such as a queue worker."""
        task = asyncio.create_task(coro, name=name)
        self._background_tasks.add(task)
        task.add_done_callback(partial(self._task_done, self._background_tasks))
        return task

    def _task_done(
        self, task_set: set[asyncio.Task[Any]], task: asyncio.Task[Any]
    ) -> None:
        task_set.discard(task)
        if task.cancelled():
            return
        if (err := task.exception()) is not None:
            _LOGGER.error("Task %s failed: %s", task.get_name(), err)

    async def block_till_done(self) -> None:
        """Wait for all active non-background tasks to complete.

        Tasks created while waiting are not waited for.
        """
        active_tasks = list(self._active_tasks)
        if not active_tasks:
            await asyncio.sleep(0)
            return
        _LOGGER.debug("Waiting for %d tasks to complete", len(active_tasks))
        await asyncio.gather(*active_tasks, return_exceptions=True)

    async def cancel_background_tasks(self) -> None:
        """Cancel all background tasks and wait for them to exit."""
        tasks = list(self._background_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def get_num_active_tasks(self) -> int:
        """Get the number of active non-background tasks."""
        return len(self._active_tasks)
