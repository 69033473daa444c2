"""Ingress routing the Plant host to its Service."""

from typing import Any

from plant_operator.client import Client
from plant_operator.manifest import Ingress, ObjectMeta, Plant
from plant_operator.resource import Executor

from .common import managed_executor

__all__ = [
    "build_ingress",
    "new_ingress_executor",
]

EXACT_FIELDS = ("tls", "ingressClassName")


def build_ingress(plant: Plant, tls_secret_name: str | None) -> Ingress:
    """Return the desired Ingress, using TLS only when a secret is given."""
    spec: dict[str, Any] = {}
    if plant.spec.ingress_class_name:
        spec["ingressClassName"] = plant.spec.ingress_class_name
    if tls_secret_name:
        spec["tls"] = [{"hosts": [plant.spec.host], "secretName": tls_secret_name}]
    spec["rules"] = [
        {
            "host": plant.spec.host,
            "http": {
                "paths": [
                    {
                        "path": "/",
                        "pathType": "Prefix",
                        "backend": {
                            "service": {
                                "name": plant.name,
                                "port": {"number": plant.spec.container_port},
                            }
                        },
                    }
                ]
            },
        }
    ]
    return Ingress(
        metadata=ObjectMeta(
            name=plant.name,
            namespace=plant.namespace,
            labels=plant.operator_labels(),
        ),
        spec=spec,
    )


def is_ingress_ready(obj: Ingress) -> bool:
    """An Ingress is usable as soon as it exists."""
    return True


def new_ingress_executor(
    client: Client,
    plant: Plant,
    tls_secret_name: str | None,
    timeout: float | None = None,
) -> Executor[Ingress]:
    """Return the Executor for the Ingress of the Plant."""
    return managed_executor(
        client,
        plant,
        build_ingress(plant, tls_secret_name),
        is_ingress_ready,
        timeout,
        exact_fields=EXACT_FIELDS,
    )
