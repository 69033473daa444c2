"""Readiness simulator for managed objects.

A real cluster runs controllers that roll out Deployments and issue
Certificates and report it in their status. The simulator plays that part for
the in-memory client so a Plant can converge to Ready without a cluster.
"""

from collections.abc import Callable
import logging
from typing import Any

from plant_operator.exceptions import ClientError
from plant_operator.manifest import (
    CERTIFICATE_KIND,
    DEPLOYMENT_KIND,
    KubeObject,
    ManagedObject,
)
from plant_operator.task import get_task_service

from .client import Client, ClientEvent

_LOGGER = logging.getLogger(__name__)


def _deployment_status(obj: ManagedObject) -> dict[str, Any]:
    replicas = obj.spec.get("replicas", 1)
    return {
        **obj.status,
        "replicas": replicas,
        "readyReplicas": replicas,
        "availableReplicas": replicas,
        "observedGeneration": obj.metadata.generation,
    }


def _certificate_status(obj: ManagedObject) -> dict[str, Any]:
    return {
        **obj.status,
        "conditions": [
            {
                "type": "Ready",
                "status": "True",
                "reason": "Ready",
                "message": "Certificate is up to date and has not expired",
            }
        ],
    }


STATUS_BUILDERS: dict[str, Callable[[ManagedObject], dict[str, Any]]] = {
    DEPLOYMENT_KIND: _deployment_status,
    CERTIFICATE_KIND: _certificate_status,
}


class ReadinessSimulator:
    """Marks created or updated managed objects as ready."""

    def __init__(self, client: Client) -> None:
        """Initialize ReadinessSimulator."""
        self._client = client
        self._remove_listener: Callable[[], None] | None = None

    def start(self) -> None:
        """Start listening for object changes."""
        if self._remove_listener is None:
            self._remove_listener = self._client.add_listener(self._on_event)

    def stop(self) -> None:
        """Stop listening for object changes."""
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    def _on_event(self, event: ClientEvent, obj: KubeObject) -> None:
        if event not in (ClientEvent.OBJECT_ADDED, ClientEvent.OBJECT_UPDATED):
            return
        if not isinstance(obj, ManagedObject) or obj.kind not in STATUS_BUILDERS:
            return
        get_task_service().create_task(
            self._mark_ready(obj), name=f"simulate-ready-{obj.resource_id}"
        )

    async def _mark_ready(self, obj: ManagedObject) -> None:
        status = STATUS_BUILDERS[obj.kind](obj)
        if status == obj.status:
            return
        obj.status = status
        # Apply to the latest version, a newer update will trigger another pass
        obj.metadata.resource_version = None
        try:
            await self._client.update_status(obj)
        except ClientError as err:
            _LOGGER.debug("Unable to mark %s ready: %s", obj.resource_id, err)
            return
        _LOGGER.debug("Marked %s ready", obj.resource_id)
