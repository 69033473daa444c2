"""Service exposing the Plant Deployment."""

from plant_operator.client import Client
from plant_operator.manifest import ObjectMeta, Plant, Service
from plant_operator.resource import Executor

from .common import managed_executor

__all__ = [
    "build_service",
    "is_service_ready",
    "new_service_executor",
]


def build_service(plant: Plant) -> Service:
    """Return the desired Service for the Plant."""
    return Service(
        metadata=ObjectMeta(
            name=plant.name,
            namespace=plant.namespace,
            labels=plant.operator_labels(),
        ),
        spec={
            "ports": [
                {
                    "protocol": "TCP",
                    "port": plant.spec.container_port,
                    "targetPort": plant.spec.container_port,
                }
            ],
            "selector": plant.operator_labels(),
            "type": "NodePort",
        },
    )


def is_service_ready(obj: Service) -> bool:
    """Return True when every reported condition of the Service is True."""
    return all(
        cond.get("status") == "True" for cond in obj.status.get("conditions") or []
    )


def new_service_executor(
    client: Client, plant: Plant, timeout: float | None = None
) -> Executor[Service]:
    """Return the Executor for the Service of the Plant."""
    return managed_executor(
        client, plant, build_service(plant), is_service_ready, timeout
    )
