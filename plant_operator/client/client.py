"""Cluster client interface."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import TypeVar

from plant_operator.manifest import KubeObject, NamedResource

T = TypeVar("T", bound=KubeObject)


class ClientEvent(str, Enum):
    """Enum for client change notifications."""

    OBJECT_ADDED = "object_added"
    OBJECT_UPDATED = "object_updated"
    STATUS_UPDATED = "status_updated"
    OBJECT_DELETED = "object_deleted"


class Client(ABC):
    """Abstract base class for reading and writing cluster objects.

    Implementations must be safe to share between the concurrent executors of
    a reconcile pass.
    """

    @abstractmethod
    async def get(self, resource_id: NamedResource, cls: type[T]) -> T:
        """Fetch an object by identity.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            ClientError: For any other failure.
        """

    @abstractmethod
    async def create(self, obj: T) -> T:
        """Create the object and return the stored copy.

        Raises:
            AlreadyExistsError: If an object with the same identity exists.
        """

    @abstractmethod
    async def update(self, obj: T) -> T:
        """Update metadata and spec of the object and return the stored copy.

        The status of the stored object is left untouched.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            ConflictError: If the object changed since it was read.
        """

    @abstractmethod
    async def update_status(self, obj: T) -> T:
        """Update only the status of the object and return the stored copy.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            ConflictError: If the object changed since it was read.
        """

    @abstractmethod
    async def delete(self, resource_id: NamedResource) -> None:
        """Request deletion of an object.

        Objects holding finalizers are only marked with a deletion timestamp
        and removed once their last finalizer is cleared.
        """

    @abstractmethod
    def set_owner_reference(self, owner: KubeObject, obj: KubeObject) -> None:
        """Mark owner as the controller of obj.

        Raises:
            AlreadyOwnedError: If obj is controlled by a different owner.
        """

    @abstractmethod
    def list_objects(self, kind: str | None = None) -> list[KubeObject]:
        """List all objects, optionally filtered by kind."""

    @abstractmethod
    def add_listener(
        self, callback: Callable[[ClientEvent, KubeObject], None]
    ) -> Callable[[], None]:
        """Register a callback for object changes.

        Returns a callable that can be called to remove the listener.
        """
