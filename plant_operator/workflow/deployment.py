"""Deployment running the Plant image."""

from plant_operator.client import Client
from plant_operator.manifest import Deployment, ObjectMeta, Plant
from plant_operator.resource import Executor

from .common import managed_executor

__all__ = [
    "build_deployment",
    "new_deployment_executor",
]


def build_deployment(plant: Plant) -> Deployment:
    """Return the desired Deployment for the Plant."""
    return Deployment(
        metadata=ObjectMeta(
            name=plant.name,
            namespace=plant.namespace,
            labels=plant.operator_labels(),
        ),
        spec={
            "replicas": plant.spec.replicas,
            "selector": {"matchLabels": plant.operator_labels()},
            "template": {
                "metadata": {"labels": plant.operator_labels()},
                "spec": {
                    "containers": [
                        {
                            "name": plant.name,
                            "image": plant.spec.image,
                            "imagePullPolicy": "IfNotPresent",
                            "ports": [{"containerPort": plant.spec.container_port}],
                        }
                    ]
                },
            },
        },
    )


def new_deployment_executor(
    client: Client, plant: Plant, timeout: float | None = None
) -> Executor[Deployment]:
    """Return the Executor for the Deployment of the Plant."""
    replicas = plant.spec.replicas

    def is_ready(obj: Deployment) -> bool:
        return obj.status.get("availableReplicas", 0) == replicas

    return managed_executor(client, plant, build_deployment(plant), is_ready, timeout)
