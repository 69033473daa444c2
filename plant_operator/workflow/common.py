"""Shared construction of executors for managed objects."""

import copy
import logging
from typing import TypeVar

from plant_operator.client import Client
from plant_operator.manifest import ManagedObject, Plant
from plant_operator.resource import (
    Executor,
    is_subset_equal,
    merge_fields,
    merge_labels,
)
from plant_operator.resource.executor import IsReadyFunc

__all__: list[str] = []

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=ManagedObject)


def _converge(desired: T, live: T, exact_fields: tuple[str, ...]) -> bool:
    """Write the desired state into live, returning True if anything changed."""
    changed = False
    if not is_subset_equal(desired.spec, live.spec):
        live.spec = merge_fields(desired.spec, live.spec)
        changed = True
    # Removing one of these fields from the desired state is also a change
    for name in exact_fields:
        if desired.spec.get(name) == live.spec.get(name):
            continue
        if name in desired.spec:
            live.spec[name] = copy.deepcopy(desired.spec[name])
        else:
            live.spec.pop(name, None)
        changed = True
    if merge_labels(desired.metadata.labels, live.metadata.labels):
        changed = True
    return changed


def managed_executor(
    client: Client,
    owner: Plant,
    desired: T,
    is_ready: IsReadyFunc[T],
    timeout: float | None = None,
    exact_fields: tuple[str, ...] = (),
) -> Executor[T]:
    """Return an Executor that keeps desired in sync with the cluster.

    Args:
        client: Client shared by all executors of the pass.
        owner: The Plant set as controller of the created object.
        desired: The desired state of the object.
        is_ready: Readiness predicate over the live object.
        timeout: Seconds allowed for each client call.
        exact_fields: Top level spec fields compared exactly, so that removing
            them from the desired state removes them from the live object.
    """
    resource_id = desired.resource_id
    cls = type(desired)

    async def fetch() -> T:
        return await client.get(resource_id, cls)

    async def create() -> T:
        obj = copy.deepcopy(desired)
        client.set_owner_reference(owner, obj)
        return await client.create(obj)

    async def update(live: T) -> T | None:
        changed = _converge(desired, live, exact_fields)
        ref = live.metadata.controller_ref()
        if ref is None or ref.uid != owner.metadata.uid:
            client.set_owner_reference(owner, live)
            changed = True
        if not changed:
            return None
        _LOGGER.debug("Object %s differs from its desired state", resource_id)
        return await client.update(live)

    return Executor(
        name=desired.kind,
        kind=desired.gvk,
        fetch_func=fetch,
        create_func=create,
        update_func=update,
        is_ready=is_ready,
        timeout=timeout,
    )
