"""Fixtures shared by the plant-operator tests."""

import pytest

from plant_operator.client import InMemoryClient
from plant_operator.events import InMemoryEventRecorder
from plant_operator.manifest import ObjectMeta, Plant, PlantSpec


@pytest.fixture(name="client")
def client_fixture() -> InMemoryClient:
    """Fixture for an empty in-memory cluster."""
    return InMemoryClient()


@pytest.fixture(name="recorder")
def recorder_fixture() -> InMemoryEventRecorder:
    """Fixture for the event recorder."""
    return InMemoryEventRecorder()


@pytest.fixture(name="plant")
def plant_fixture() -> Plant:
    """Fixture for a Plant that has not been created yet."""
    return Plant(
        metadata=ObjectMeta(name="web", namespace="default"),
        spec=PlantSpec(image="nginx:1.25", host="web.example.com"),
    )


@pytest.fixture(name="created_plant")
async def created_plant_fixture(client: InMemoryClient, plant: Plant) -> Plant:
    """Fixture for a Plant stored in the cluster."""
    return await client.create(plant)
