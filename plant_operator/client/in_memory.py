"""Module for an in memory cluster client."""

import asyncio
from collections.abc import Callable
import copy
import itertools
import logging
import uuid
from typing import TypeVar

from plant_operator.exceptions import (
    AlreadyExistsError,
    AlreadyOwnedError,
    ClientError,
    ConflictError,
    ObjectNotFoundError,
)
from plant_operator.manifest import KubeObject, NamedResource, OwnerReference, _now

from .client import Client, ClientEvent

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=KubeObject)


class InMemoryClient(Client):
    """In-memory implementation of the Client interface.

    Objects are stored keyed by NamedResource and every read or write hands out
    a deep copy. The client assigns uids and resource versions, bumps the
    generation on spec changes, holds back deletion while finalizers are
    present and garbage collects objects whose controlling owner is removed.
    """

    def __init__(self) -> None:
        """Initialize the InMemoryClient."""
        self._objects: dict[NamedResource, KubeObject] = {}
        self._listeners: list[Callable[[ClientEvent, KubeObject], None]] = []
        self._versions = itertools.count(1)

    def _next_version(self) -> str:
        return str(next(self._versions))

    def _lookup(self, resource_id: NamedResource) -> KubeObject:
        if (obj := self._objects.get(resource_id)) is None:
            raise ObjectNotFoundError(f"{resource_id} not found")
        return obj

    def _check_version(self, existing: KubeObject, obj: KubeObject) -> None:
        version = obj.metadata.resource_version
        if version is not None and version != existing.metadata.resource_version:
            raise ConflictError(
                f"{obj.resource_id} was modified (resourceVersion {version} "
                f"!= {existing.metadata.resource_version})"
            )

    async def get(self, resource_id: NamedResource, cls: type[T]) -> T:
        """Fetch a copy of the object by identity."""
        await asyncio.sleep(0)
        obj = self._lookup(resource_id)
        if not isinstance(obj, cls):
            raise ValueError(
                f"Object {resource_id.namespaced_name} is not of type "
                f"{cls.__name__} (was {obj.__class__.__name__})"
            )
        return copy.deepcopy(obj)

    async def create(self, obj: T) -> T:
        """Store a copy of a new object."""
        await asyncio.sleep(0)
        resource_id = obj.resource_id
        if resource_id in self._objects:
            raise AlreadyExistsError(f"{resource_id} already exists")
        stored = copy.deepcopy(obj)
        stored.metadata.uid = str(uuid.uuid4())
        stored.metadata.generation = 1
        stored.metadata.resource_version = self._next_version()
        stored.metadata.creation_timestamp = _now()
        stored.metadata.deletion_timestamp = None
        _LOGGER.debug("Created object %s", resource_id)
        self._objects[resource_id] = stored
        self._fire_event(ClientEvent.OBJECT_ADDED, stored)
        return copy.deepcopy(stored)

    async def update(self, obj: T) -> T:
        """Replace metadata and spec of an existing object."""
        await asyncio.sleep(0)
        resource_id = obj.resource_id
        existing = self._lookup(resource_id)
        self._check_version(existing, obj)
        stored = copy.deepcopy(obj)
        # Status and server managed fields are owned by the client
        if hasattr(existing, "status"):
            stored.status = copy.deepcopy(existing.status)  # type: ignore[attr-defined]
        stored.metadata.uid = existing.metadata.uid
        stored.metadata.creation_timestamp = existing.metadata.creation_timestamp
        stored.metadata.deletion_timestamp = existing.metadata.deletion_timestamp
        stored.metadata.generation = existing.metadata.generation
        if getattr(stored, "spec", None) != getattr(existing, "spec", None):
            stored.metadata.generation += 1
        stored.metadata.resource_version = self._next_version()
        if stored.metadata.deletion_timestamp and not stored.metadata.finalizers:
            _LOGGER.debug("Last finalizer removed from %s", resource_id)
            self._remove(resource_id)
            return copy.deepcopy(stored)
        self._objects[resource_id] = stored
        _LOGGER.debug(
            "Updated object %s (generation %d)",
            resource_id,
            stored.metadata.generation,
        )
        self._fire_event(ClientEvent.OBJECT_UPDATED, stored)
        return copy.deepcopy(stored)

    async def update_status(self, obj: T) -> T:
        """Replace only the status of an existing object."""
        await asyncio.sleep(0)
        resource_id = obj.resource_id
        existing = self._lookup(resource_id)
        self._check_version(existing, obj)
        if not hasattr(obj, "status"):
            raise ClientError(f"{resource_id} does not support status updates")
        stored = copy.deepcopy(existing)
        stored.status = copy.deepcopy(obj.status)  # type: ignore[attr-defined]
        stored.metadata.resource_version = self._next_version()
        self._objects[resource_id] = stored
        _LOGGER.debug("Updated status of %s", resource_id)
        self._fire_event(ClientEvent.STATUS_UPDATED, stored)
        return copy.deepcopy(stored)

    async def delete(self, resource_id: NamedResource) -> None:
        """Delete an object or mark it for deletion if it has finalizers."""
        await asyncio.sleep(0)
        existing = self._lookup(resource_id)
        if not existing.metadata.finalizers:
            self._remove(resource_id)
            return
        if existing.metadata.deletion_timestamp is not None:
            _LOGGER.debug("Deletion of %s already requested", resource_id)
            return
        stored = copy.deepcopy(existing)
        stored.metadata.deletion_timestamp = _now()
        stored.metadata.resource_version = self._next_version()
        self._objects[resource_id] = stored
        _LOGGER.debug(
            "Marked %s for deletion, waiting on finalizers %s",
            resource_id,
            stored.metadata.finalizers,
        )
        self._fire_event(ClientEvent.OBJECT_UPDATED, stored)

    def _remove(self, resource_id: NamedResource) -> None:
        """Remove the object and everything it controls."""
        if (removed := self._objects.pop(resource_id, None)) is None:
            return
        _LOGGER.debug("Deleted object %s", resource_id)
        self._fire_event(ClientEvent.OBJECT_DELETED, removed)
        if not (uid := removed.metadata.uid):
            return
        dependents = [
            obj.resource_id
            for obj in self._objects.values()
            if any(ref.uid == uid for ref in obj.metadata.owner_references)
        ]
        for dependent in dependents:
            _LOGGER.debug("Garbage collecting %s owned by %s", dependent, resource_id)
            self._remove(dependent)

    def set_owner_reference(self, owner: KubeObject, obj: KubeObject) -> None:
        """Mark owner as the controller of obj."""
        if not owner.metadata.uid:
            raise ClientError(f"Owner {owner.resource_id} has no uid")
        ref = obj.metadata.controller_ref()
        if ref is not None and ref.uid != owner.metadata.uid:
            raise AlreadyOwnedError(
                f"{obj.resource_id} is already owned by {ref.kind}/{ref.name}"
            )
        obj.metadata.owner_references = [
            ref
            for ref in obj.metadata.owner_references
            if ref.uid != owner.metadata.uid
        ]
        obj.metadata.owner_references.append(
            OwnerReference(
                api_version=owner.api_version,
                kind=owner.kind,
                name=owner.metadata.name,
                uid=owner.metadata.uid,
                controller=True,
                block_owner_deletion=True,
            )
        )

    def list_objects(self, kind: str | None = None) -> list[KubeObject]:
        """List copies of all objects, optionally filtered by kind."""
        return [
            copy.deepcopy(obj)
            for resource_id, obj in sorted(
                self._objects.items(), key=lambda item: str(item[0])
            )
            if kind is None or resource_id.kind == kind
        ]

    def add_listener(
        self, callback: Callable[[ClientEvent, KubeObject], None]
    ) -> Callable[[], None]:
        """Register a callback for object changes."""

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        self._listeners.append(callback)
        return remove

    def _fire_event(self, event: ClientEvent, obj: KubeObject) -> None:
        for cb in list(self._listeners):
            try:
                cb(event, copy.deepcopy(obj))
            except Exception:
                _LOGGER.exception("Client listener callback failed for event %s", event)
