"""Exceptions related to plant-operator."""

from enum import StrEnum

__all__ = [
    "PlantException",
    "InputException",
    "ExecutorConfigError",
    "ClientError",
    "ObjectNotFoundError",
    "AlreadyExistsError",
    "ConflictError",
    "AlreadyOwnedError",
    "ErrorKind",
    "ExecuteError",
    "WorkflowError",
    "StatusPersistError",
]


class PlantException(Exception):
    """Generic base exception used for this library."""


class InputException(PlantException):
    """Raised when the input files or values are not formatted as expected."""


class ExecutorConfigError(PlantException):
    """Raised when an Executor is missing one of its required functions."""


class ClientError(PlantException):
    """Raised when the cluster client fails to perform an operation."""


class ObjectNotFoundError(ClientError):
    """Raised when an object is not found in the cluster."""


class AlreadyExistsError(ClientError):
    """Raised when creating an object that already exists."""


class ConflictError(ClientError):
    """Raised when an object was modified since it was last read."""


class AlreadyOwnedError(ClientError):
    """Raised when an object is already controlled by a different owner."""


class ErrorKind(StrEnum):
    """Operation that failed while synchronizing a managed resource."""

    FETCH = "Fetch"
    CREATE = "Create"
    UPDATE = "Update"


class ExecuteError(PlantException):
    """Raised when synchronizing a single managed resource fails."""

    def __init__(self, kind: ErrorKind, resource_name: str, cause: BaseException):
        self.kind = kind
        self.resource_name = resource_name
        self.cause = cause
        super().__init__(
            f"failed to {kind.lower()} {resource_name}: "
            f"{str(cause) or type(cause).__name__}"
        )
        self.__cause__ = cause


class WorkflowError(PlantException):
    """Raised when one or more managed resources of a pass failed."""

    def __init__(self, errors: list[ExecuteError]) -> None:
        self.errors = errors
        super().__init__("; ".join(str(err) for err in errors))


class StatusPersistError(ClientError):
    """Raised when the status of an owner could not be written."""
