"""Work queue that drives reconcile passes from client change notifications.

The runner listens to the client for changes of Plants and of the objects
they control and feeds the affected Plants to a single worker. A Plant is
queued at most once at a time and passes never run concurrently, so a pass
always starts from the state the previous one left behind. Passes asking for a
requeue are retried with an exponential backoff.
"""

import asyncio
from collections.abc import Callable
import logging

from .client import Client, ClientEvent
from .config import RunnerConfig
from .controller import PlantController, ReconcileResult
from .manifest import PLANT_KIND, KubeObject, NamedResource, Plant
from .task import get_task_service

__all__ = [
    "Runner",
]

_LOGGER = logging.getLogger(__name__)


class Runner:
    """Serialized work queue for the PlantController."""

    def __init__(
        self,
        client: Client,
        controller: PlantController,
        config: RunnerConfig | None = None,
    ) -> None:
        """Initialize Runner."""
        self._client = client
        self._controller = controller
        self._config = config or RunnerConfig()
        self._queue: asyncio.Queue[NamedResource] = asyncio.Queue()
        self._queued: set[NamedResource] = set()
        self._pending: dict[NamedResource, asyncio.Task[None]] = {}
        self._failures: dict[NamedResource, int] = {}
        self._watched_kinds = {cls.kind for cls in controller.workflow.managed()}
        self._worker: asyncio.Task[None] | None = None
        self._remove_listener: Callable[[], None] | None = None
        self._passes = 0

    @property
    def passes(self) -> int:
        """Number of reconcile passes run so far."""
        return self._passes

    def start(self) -> None:
        """Start the worker and queue all existing Plants."""
        if self._worker is not None:
            return
        _LOGGER.info("Starting runner")
        self._remove_listener = self._client.add_listener(self._on_event)
        self._worker = get_task_service().create_background_task(
            self._work(), name="plant-runner"
        )
        for obj in self._client.list_objects(PLANT_KIND):
            self.enqueue(obj.resource_id)

    async def stop(self) -> None:
        """Stop the worker and drop all pending requeues."""
        if self._worker is None:
            return
        _LOGGER.info("Stopping runner")
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        # The worker and pending requeues are the background tasks
        await get_task_service().cancel_background_tasks()
        self._pending.clear()
        self._worker = None

    def enqueue(self, resource_id: NamedResource) -> None:
        """Queue a reconcile pass for the Plant unless one is already queued."""
        if resource_id in self._queued:
            return
        _LOGGER.debug("Queued %s", resource_id)
        self._queued.add(resource_id)
        self._queue.put_nowait(resource_id)

    def _on_event(self, event: ClientEvent, obj: KubeObject) -> None:
        if isinstance(obj, Plant):
            # Status writes are made by the controller itself
            if event != ClientEvent.STATUS_UPDATED:
                self.enqueue(obj.resource_id)
            return
        if obj.kind not in self._watched_kinds:
            return
        ref = obj.metadata.controller_ref()
        if ref is not None and ref.kind == PLANT_KIND:
            self.enqueue(NamedResource(PLANT_KIND, obj.metadata.namespace, ref.name))

    async def _work(self) -> None:
        while True:
            resource_id = await self._queue.get()
            self._queued.discard(resource_id)
            try:
                await self._process(resource_id)
            finally:
                self._queue.task_done()

    async def _process(self, resource_id: NamedResource) -> None:
        self._passes += 1
        try:
            result = await self._controller.reconcile(resource_id)
        except Exception:
            _LOGGER.exception("Unexpected error reconciling %s", resource_id)
            result = ReconcileResult(requeue=True)
        if not result.requeue:
            self._failures.pop(resource_id, None)
            return
        attempt = self._failures.get(resource_id, 0)
        self._failures[resource_id] = attempt + 1
        delay = min(self._config.backoff_base * 2**attempt, self._config.backoff_max)
        if resource_id in self._pending:
            return
        _LOGGER.debug("Requeue %s in %0.2fs", resource_id, delay)
        self._pending[resource_id] = get_task_service().create_background_task(
            self._requeue_after(resource_id, delay), name=f"requeue-{resource_id}"
        )

    async def _requeue_after(self, resource_id: NamedResource, delay: float) -> None:
        await asyncio.sleep(delay)
        self._pending.pop(resource_id, None)
        self.enqueue(resource_id)

    async def wait_settled(self) -> None:
        """Wait until no pass is queued, running or waiting to be retried."""
        task_service = get_task_service()
        while True:
            await self._queue.join()
            await task_service.block_till_done()
            if self._pending:
                await asyncio.wait(list(self._pending.values()))
                continue
            if self._queue.empty() and task_service.get_num_active_tasks() == 0:
                return

    async def run(self, timeout: float | None = None) -> bool:
        """Start the runner and wait for all Plants to settle.

        Returns False if the timeout expired first.
        """
        self.start()
        try:
            async with asyncio.timeout(timeout):
                await self.wait_settled()
        except TimeoutError:
            _LOGGER.warning("Plants did not settle within %ss", timeout)
            return False
        _LOGGER.info("All Plants settled after %d passes", self._passes)
        return True
