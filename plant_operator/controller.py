"""
Plant Controller implementation.

The controller runs one reconcile pass for a Plant. A pass moves the Plant
through its lifecycle states:

    ""          -> Processing
    Processing  -> Ready | Processing | Error
    Ready       -> Ready | Processing | Error
    Error       -> Ready | Processing | Error
    any         -> Deleting, once deletion was requested

A finalizer is added before any managed object is created and removed last
when the Plant is deleted, so cleanup can never be skipped. Every failure of a
pass forces the Error state and asks for the pass to be retried.

Dependencies:
    - plant_operator.client.Client: For reading and writing the Plant.
    - plant_operator.workflow.WorkflowManager: Synchronizes managed objects.
    - plant_operator.status.StatusAggregator: Folds results into the status.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging

from .client import Client
from .config import PlantControllerConfig, WorkflowConfig
from .events import EventRecorder, EventType
from .exceptions import ClientError, ObjectNotFoundError, PlantException
from .manifest import NamedResource, Plant, State
from .status import StatusAggregator
from .workflow import WorkflowManager

__all__ = [
    "PlantController",
    "ReconcileResult",
    "TeardownHook",
]

_LOGGER = logging.getLogger(__name__)

TeardownHook = Callable[[Plant], Awaitable[None]]
"""Cleanup run for a deleted Plant before its finalizer is removed."""


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a reconcile pass."""

    requeue: bool = False
    """True if the Plant should be reconciled again."""


class PlantController:
    """Controller for reconciling Plant resources."""

    def __init__(
        self,
        client: Client,
        recorder: EventRecorder,
        config: PlantControllerConfig | None = None,
        workflow_config: WorkflowConfig | None = None,
        teardown: TeardownHook | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            client: Client used for the Plant and all managed objects.
            recorder: Sink for events about the Plant.
            config: The configuration for the controller.
            workflow_config: The configuration for the workflow.
            teardown: Optional cleanup run before the finalizer is removed.
                Managed objects are garbage collected through their owner
                reference and need no teardown.
        """
        self._client = client
        self._recorder = recorder
        self._config = config or PlantControllerConfig()
        self._workflow = WorkflowManager(client, workflow_config)
        self._aggregator = StatusAggregator(client, recorder)
        self._teardown = teardown

    @property
    def workflow(self) -> WorkflowManager:
        return self._workflow

    async def reconcile(self, resource_id: NamedResource) -> ReconcileResult:
        """Run one reconcile pass for the Plant."""
        try:
            plant = await self._client.get(resource_id, Plant)
        except ObjectNotFoundError:
            _LOGGER.debug("Plant %s not found, nothing to do", resource_id)
            return ReconcileResult()
        except ClientError as err:
            _LOGGER.error("Unable to fetch Plant %s: %s", resource_id, err)
            return ReconcileResult(requeue=True)

        try:
            return await self._reconcile(plant)
        except Exception as err:
            return await self._handle_error(plant, err)

    async def _reconcile(self, plant: Plant) -> ReconcileResult:
        finalizer = self._config.finalizer
        if not plant.is_deleting and plant.add_finalizer(finalizer):
            await self._client.update(plant)
            _LOGGER.info("Added finalizer %s to %s", finalizer, plant.resource_id)
            # The update triggers the next pass
            return ReconcileResult()

        if plant.is_deleting and plant.status.state != State.DELETING:
            _LOGGER.info("Plant %s is being deleted", plant.resource_id)
            plant.status.state = State.DELETING
            await self._aggregator.persist(plant)

        state = plant.status.state
        if state == State.NONE:
            _LOGGER.info("Started processing Plant %s", plant.resource_id)
            plant.status.state = State.PROCESSING
            await self._aggregator.persist(plant)
            return ReconcileResult(requeue=True)
        if state == State.DELETING:
            return await self._delete(plant)
        return await self._process(plant)

    async def _process(self, plant: Plant) -> ReconcileResult:
        """Synchronize the managed objects and update the status."""
        result = await self._workflow.execute(plant)
        state = await self._aggregator.update_results(plant, result.results)
        if result.error is not None:
            raise result.error
        return ReconcileResult(requeue=state != State.READY)

    async def _delete(self, plant: Plant) -> ReconcileResult:
        """Run the teardown and release the Plant for deletion."""
        if self._teardown is not None:
            await self._teardown(plant)
        if plant.remove_finalizer(self._config.finalizer):
            await self._client.update(plant)
            _LOGGER.info(
                "Removed finalizer %s from %s",
                self._config.finalizer,
                plant.resource_id,
            )
        return ReconcileResult()

    async def _handle_error(self, plant: Plant, err: Exception) -> ReconcileResult:
        """Force the Error state and request a retry."""
        _LOGGER.error(
            "Failed to reconcile %s: %s", plant.resource_id, err, exc_info=True
        )
        plant.status.state = State.ERROR
        self._recorder.event(
            plant.resource_id,
            EventType.WARNING,
            "Error",
            f"Rescheduling due to error: {err}",
        )
        try:
            await self._aggregator.persist(plant)
        except PlantException as persist_err:
            _LOGGER.error("Failed to persist Error state: %s", persist_err)
        return ReconcileResult(requeue=True)
