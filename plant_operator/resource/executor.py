"""The Executor primitive for a single managed resource."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
import logging
from typing import Any, Generic, TypeVar, cast

from plant_operator.exceptions import (
    ErrorKind,
    ExecuteError,
    ExecutorConfigError,
    ObjectNotFoundError,
)
from plant_operator.manifest import KubeObject

__all__ = [
    "Operation",
    "ExecuteResult",
    "Executor",
    "FetchFunc",
    "CreateFunc",
    "UpdateFunc",
    "IsReadyFunc",
]

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=KubeObject)

FetchFunc = Callable[[], Awaitable[T]]
"""Fetch the live object, raising ObjectNotFoundError if it does not exist."""

CreateFunc = Callable[[], Awaitable[T]]
"""Create the object from the desired state and return the stored copy."""

UpdateFunc = Callable[[T], Awaitable[T | None]]
"""Converge the live object, returning the updated copy or None if unchanged."""

IsReadyFunc = Callable[[T], bool]
"""Return True if the live object reports it is ready."""


class Operation(StrEnum):
    """An operation performed by an Executor."""

    SKIP = "Skip"
    FETCH = "Fetch"
    CREATE = "Create"
    UPDATE = "Update"
    CHECK = "Check"


PROCESSING_OPS = (Operation.CREATE, Operation.UPDATE)


@dataclass(frozen=True)
class ExecuteResult:
    """Outcome of executing one managed resource."""

    name: str
    """Name of the managed resource, e.g. the kind it synchronizes."""

    kind: str
    """The group, version and kind of the managed object."""

    obj: KubeObject | None = None
    """The live object after the execution, None if skipped or failed early."""

    operations: frozenset[Operation] = frozenset()

    error: ExecuteError | None = None
    """The fatal error of the execution, if any."""

    is_ready: bool = False
    """Result of the ready check."""

    @property
    def skipped(self) -> bool:
        return Operation.SKIP in self.operations

    @property
    def errored(self) -> bool:
        return self.error is not None

    @property
    def ready(self) -> bool:
        return self.is_ready and not self.errored and not self.skipped

    @property
    def not_ready(self) -> bool:
        return not self.is_ready and not self.errored and not self.skipped

    @property
    def processing_ops(self) -> list[Operation]:
        """Return the mutating operations performed, in execution order."""
        return [op for op in PROCESSING_OPS if op in self.operations]


@dataclass
class Executor(Generic[T]):
    """Idempotently synchronize one managed resource with its desired state.

    The desired state and identity are captured by the functions the executor
    is built from. All four functions are required, use `Executor.nop` for a
    resource that should be skipped.
    """

    name: str
    kind: str
    fetch_func: FetchFunc[T] | None = None
    create_func: CreateFunc[T] | None = None
    update_func: UpdateFunc[T] | None = None
    is_ready: IsReadyFunc[T] | None = None
    timeout: float | None = None
    """Seconds allowed for each client call, None to wait indefinitely."""

    noop: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        """Fail fast on a misconfigured executor."""
        if self.noop:
            return
        missing = [
            attr
            for attr in ("fetch_func", "create_func", "update_func", "is_ready")
            if getattr(self, attr) is None
        ]
        if missing:
            raise ExecutorConfigError(
                f"Executor for {self.name} is missing {', '.join(missing)}"
            )

    @classmethod
    def nop(cls, name: str, kind: str) -> "Executor[Any]":
        """Return an executor that skips the resource."""
        return cls(name=name, kind=kind, noop=True)

    async def _call(self, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        if self.timeout is None:
            return await func(*args)
        async with asyncio.timeout(self.timeout):
            return await func(*args)

    def _failed(
        self,
        kind: ErrorKind,
        operations: set[Operation],
        err: Exception,
        obj: KubeObject | None = None,
    ) -> ExecuteResult:
        error = ExecuteError(kind, self.name, err)
        _LOGGER.debug("Executor %s failed: %s", self.name, error)
        return ExecuteResult(
            name=self.name,
            kind=self.kind,
            obj=obj,
            operations=frozenset(operations),
            error=error,
        )

    async def execute(self) -> ExecuteResult:
        """Fetch, create or update the resource and check if it is ready.

        Any failure of a client call is reported in the result and never
        raised, so the other executors of a pass are not interrupted.
        """
        if self.noop:
            _LOGGER.debug("Skipping %s", self.name)
            return ExecuteResult(
                name=self.name, kind=self.kind, operations=frozenset({Operation.SKIP})
            )
        fetch_func = cast(FetchFunc[T], self.fetch_func)
        create_func = cast(CreateFunc[T], self.create_func)
        update_func = cast(UpdateFunc[T], self.update_func)
        is_ready = cast(IsReadyFunc[T], self.is_ready)

        operations: set[Operation] = set()
        obj: T | None
        try:
            obj = await self._call(fetch_func)
        except ObjectNotFoundError:
            obj = None
        except Exception as err:
            return self._failed(ErrorKind.FETCH, {Operation.FETCH}, err)

        if obj is None:
            operations.add(Operation.CREATE)
            try:
                obj = await self._call(create_func)
            except Exception as err:
                return self._failed(ErrorKind.CREATE, operations, err)
            _LOGGER.debug("Created %s", self.name)
        else:
            try:
                updated = await self._call(update_func, obj)
            except Exception as err:
                operations.add(Operation.UPDATE)
                return self._failed(ErrorKind.UPDATE, operations, err, obj)
            if updated is not None:
                operations.add(Operation.UPDATE)
                obj = updated
                _LOGGER.debug("Updated %s", self.name)

        operations.add(Operation.CHECK)
        ready = is_ready(obj)
        _LOGGER.debug("Resource %s ready=%s", self.name, ready)
        return ExecuteResult(
            name=self.name,
            kind=self.kind,
            obj=obj,
            operations=frozenset(operations),
            is_ready=ready,
        )
