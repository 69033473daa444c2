"""Tests for the Runner work queue."""

import asyncio
import copy

import pytest

from plant_operator.client import InMemoryClient, ReadinessSimulator
from plant_operator.config import RunnerConfig
from plant_operator.controller import PlantController, ReconcileResult
from plant_operator.events import InMemoryEventRecorder
from plant_operator.exceptions import ObjectNotFoundError
from plant_operator.manifest import Deployment, NamedResource, Plant, State
from plant_operator.runner import Runner

FAST = RunnerConfig(backoff_base=0.001, backoff_max=0.01)


class CountingController(PlantController):
    """Controller that records the passes and checks they never overlap."""

    def __init__(self, *args, **kwargs) -> None:  # type: ignore[no-untyped-def]
        super().__init__(*args, **kwargs)
        self.passes: list[NamedResource] = []
        self.running = 0
        self.max_running = 0

    async def reconcile(self, resource_id: NamedResource) -> ReconcileResult:
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        self.passes.append(resource_id)
        try:
            return await super().reconcile(resource_id)
        finally:
            self.running -= 1


@pytest.fixture(name="controller")
def controller_fixture(
    client: InMemoryClient, recorder: InMemoryEventRecorder
) -> CountingController:
    return CountingController(client, recorder)


async def test_converges_to_ready(
    client: InMemoryClient, controller: CountingController, plant: Plant
) -> None:
    """Test Plants settle in the Ready state with the simulator running."""
    ReadinessSimulator(client).start()
    await client.create(plant)
    other = copy.deepcopy(plant)
    other.metadata.name = "api"
    await client.create(other)

    runner = Runner(client, controller, FAST)
    assert await runner.run(timeout=5)
    await runner.stop()

    for name in ("web", "api"):
        stored = await client.get(NamedResource("Plant", "default", name), Plant)
        assert stored.status.state == State.READY
        assert stored.has_finalizer()
    assert runner.passes == len(controller.passes)
    assert controller.max_running == 1
    assert len(client.list_objects("Deployment")) == 2


async def test_deletion(
    client: InMemoryClient, controller: CountingController, plant: Plant
) -> None:
    """Test deleting a Plant through the runner removes everything."""
    ReadinessSimulator(client).start()
    created = await client.create(plant)
    runner = Runner(client, controller, FAST)
    assert await runner.run(timeout=5)

    await client.delete(created.resource_id)
    assert await runner.run(timeout=5)
    await runner.stop()

    with pytest.raises(ObjectNotFoundError):
        await client.get(created.resource_id, Plant)
    assert client.list_objects() == []


async def test_managed_object_change(
    client: InMemoryClient, controller: CountingController, plant: Plant
) -> None:
    """Test a change to a managed object triggers a pass for its owner."""
    ReadinessSimulator(client).start()
    created = await client.create(plant)
    runner = Runner(client, controller, FAST)
    assert await runner.run(timeout=5)
    passes = len(controller.passes)

    deployment_id = NamedResource("Deployment", "default", "web")
    deployment = await client.get(deployment_id, Deployment)
    deployment.spec["replicas"] = 7
    await client.update(deployment)
    assert await runner.run(timeout=5)
    await runner.stop()

    assert len(controller.passes) > passes
    assert set(controller.passes[passes:]) == {created.resource_id}
    restored = await client.get(deployment_id, Deployment)
    assert restored.spec["replicas"] == 1


async def test_timeout_without_readiness(
    client: InMemoryClient, controller: CountingController, plant: Plant
) -> None:
    """Test the runner gives up when a Plant never becomes Ready."""
    await client.create(plant)
    runner = Runner(client, controller, FAST)
    assert not await runner.run(timeout=0.2)
    await runner.stop()

    stored = await client.get(plant.resource_id, Plant)
    assert stored.status.state == State.PROCESSING
    assert stored.status.waiting_conditions() == ["Deployment"]


async def test_stop_cancels_background_tasks(
    client: InMemoryClient, controller: CountingController, plant: Plant
) -> None:
    """Test no pass runs once the runner was stopped."""
    await client.create(plant)
    runner = Runner(client, controller, FAST)
    assert not await runner.run(timeout=0.1)
    await runner.stop()
    passes = len(controller.passes)

    await client.delete(plant.resource_id)
    await asyncio.sleep(0.05)
    assert len(controller.passes) == passes


async def test_unexpected_error_requeued(
    client: InMemoryClient, recorder: InMemoryEventRecorder, plant: Plant
) -> None:
    """Test an unexpected exception is logged and retried."""
    calls: list[NamedResource] = []

    class FlakyController(PlantController):
        async def reconcile(self, resource_id: NamedResource) -> ReconcileResult:
            calls.append(resource_id)
            if len(calls) == 1:
                raise RuntimeError("unexpected")
            return ReconcileResult()

    await client.create(plant)
    runner = Runner(client, FlakyController(client, recorder), FAST)
    assert await runner.run(timeout=5)
    await runner.stop()
    assert calls == [plant.resource_id, plant.resource_id]


async def test_enqueue_deduplicates(
    client: InMemoryClient, recorder: InMemoryEventRecorder
) -> None:
    """Test a queued Plant is only reconciled once."""
    calls: list[NamedResource] = []
    release = asyncio.Event()

    class SlowController(PlantController):
        async def reconcile(self, resource_id: NamedResource) -> ReconcileResult:
            calls.append(resource_id)
            await release.wait()
            return ReconcileResult()

    runner = Runner(client, SlowController(client, recorder), FAST)
    runner.start()
    first = NamedResource("Plant", "default", "a")
    second = NamedResource("Plant", "default", "b")
    runner.enqueue(first)
    await asyncio.sleep(0)
    # The first is running, the second is queued three times
    for _ in range(3):
        runner.enqueue(second)
    release.set()
    assert await runner.run(timeout=5)
    await runner.stop()
    assert calls == [first, second]
