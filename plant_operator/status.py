"""Aggregation of executor results into the Plant status.

Every pass records one condition and one resource status per managed object,
keyed by the name of the object's executor, and derives the overall state of
the Plant from them. The status is the only part of the Plant the aggregator
changes and it is written back with a single status update.
"""

from collections.abc import Sequence
import logging

from .client import Client
from .events import EventRecorder, EventType
from .exceptions import StatusPersistError
from .manifest import (
    Condition,
    ConditionStatus,
    Plant,
    ResourceStatus,
    State,
    _now,
)
from .resource import ExecuteResult

__all__ = [
    "StatusAggregator",
    "REASON_ERROR",
    "REASON_SKIPPED",
    "REASON_READY",
    "REASON_WAITING",
]

_LOGGER = logging.getLogger(__name__)

REASON_ERROR = "ErrorState"
REASON_SKIPPED = "ProcessingSkipped"
REASON_READY = "InReadyState"
REASON_WAITING = "WaitingForReadyState"

EVENT_READY = "Ready"
EVENT_WAITING = "WaitingReadyState"
EVENT_ERROR = "Error"


def _classify(result: ExecuteResult) -> tuple[State, str, str]:
    """Return the state, condition reason and message for a result."""
    name = result.name
    if result.error is not None:
        message = f"Resource {name} is in Error state: {result.error}"
        return State.ERROR, REASON_ERROR, message
    if result.skipped:
        message = f"Resource {name} skipped due to conditions"
        return State.READY, REASON_SKIPPED, message
    if result.ready:
        state, reason = State.READY, REASON_READY
        message = f"Resource {name} is in Ready state"
    else:
        state, reason = State.PROCESSING, REASON_WAITING
        message = f"Resource {name} is in Not Ready state"
    if ops := result.processing_ops:
        message = f"{message} after {', '.join(ops)} ops"
    return state, reason, message


def _tracked(result: ExecuteResult) -> bool:
    """Return True if the result gets a resource status entry."""
    return not (result.skipped and result.obj is None)


class StatusAggregator:
    """Folds executor results into the Plant status and persists it."""

    def __init__(self, client: Client, recorder: EventRecorder) -> None:
        """Initialize StatusAggregator."""
        self._client = client
        self._recorder = recorder

    def apply_results(self, plant: Plant, results: Sequence[ExecuteResult]) -> State:
        """Update conditions, resources and state of the Plant in place.

        Entries for objects that are no longer part of the results are
        removed. Returns the new overall state.
        """
        status = plant.status
        resources = status.resource_set
        for result in results:
            state, reason, message = _classify(result)
            status.set_condition(
                Condition(
                    type=result.name,
                    status=(
                        ConditionStatus.TRUE
                        if state == State.READY
                        else ConditionStatus.FALSE
                    ),
                    reason=reason,
                    message=message,
                    observed_generation=plant.metadata.generation,
                )
            )
            if not _tracked(result):
                continue
            resources.upsert(
                ResourceStatus(
                    name=result.name,
                    kind=result.kind,
                    uid=result.obj.metadata.uid if result.obj is not None else None,
                    state=state,
                )
            )

        names = [result.name for result in results]
        status.condition_set.remove_stale(names)
        if removed := resources.remove_stale(
            result.name for result in results if _tracked(result)
        ):
            _LOGGER.debug(
                "Pruned stale resources %s from %s",
                [res.name for res in removed],
                plant.resource_id,
            )
        status.state = status.determine_state()
        return status.state

    def record_events(self, plant: Plant, results: Sequence[ExecuteResult]) -> None:
        """Record one event for the overall state and one per errored object."""
        for result in results:
            if result.error is not None:
                self._recorder.event(
                    plant.resource_id,
                    EventType.WARNING,
                    EVENT_ERROR,
                    f"Rescheduling as resource {result.name} is in Error state: "
                    f"{result.error}",
                )
        state = plant.status.state
        if state == State.READY:
            self._recorder.event(
                plant.resource_id,
                EventType.NORMAL,
                EVENT_READY,
                "All tasks done, Plant is in Ready state",
            )
            return
        self._recorder.event(
            plant.resource_id,
            EventType.WARNING if state == State.ERROR else EventType.NORMAL,
            EVENT_WAITING,
            f"Plant is in {state} state due to conditions: "
            f"{', '.join(plant.status.waiting_conditions())}",
        )

    async def persist(self, plant: Plant) -> None:
        """Write the Plant status to the cluster.

        The Plant picks up the new resource version so it can be updated again
        in the same pass.

        Raises:
            StatusPersistError: If the status could not be written.
        """
        plant.status.last_update_time = _now()
        try:
            stored = await self._client.update_status(plant)
        except Exception as err:
            raise StatusPersistError(
                f"could not update status of {plant.resource_id}: {err}"
            ) from err
        plant.metadata.resource_version = stored.metadata.resource_version
        _LOGGER.debug(
            "Persisted status %s of %s", plant.status.state, plant.resource_id
        )

    async def update_results(
        self, plant: Plant, results: Sequence[ExecuteResult]
    ) -> State:
        """Apply the results, record events and persist the status.

        A failure to persist is logged, the next pass writes the status again.
        """
        previous = plant.status.state
        state = self.apply_results(plant, results)
        if state != previous:
            _LOGGER.info(
                "Plant %s transitioned from '%s' to '%s'",
                plant.resource_id,
                previous,
                state,
            )
        self.record_events(plant, results)
        try:
            await self.persist(plant)
        except StatusPersistError as err:
            _LOGGER.error("Failed to persist status: %s", err)
        return state
