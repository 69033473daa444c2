"""Tests for the Executor primitive."""

import asyncio

import pytest

from plant_operator.exceptions import (
    ConflictError,
    ErrorKind,
    ExecutorConfigError,
    ObjectNotFoundError,
)
from plant_operator.manifest import Deployment, ObjectMeta
from plant_operator.resource import Executor, Operation


class FakeBackend:
    """Single object store recording the calls made by an executor."""

    def __init__(self) -> None:
        self.obj: Deployment | None = None
        self.desired_replicas = 2
        self.calls: list[str] = []
        self.fail: dict[str, Exception] = {}

    def _check(self, call: str) -> None:
        self.calls.append(call)
        if (err := self.fail.get(call)) is not None:
            raise err

    async def fetch(self) -> Deployment:
        self._check("fetch")
        if self.obj is None:
            raise ObjectNotFoundError("not found")
        return self.obj

    async def create(self) -> Deployment:
        self._check("create")
        self.obj = Deployment(
            metadata=ObjectMeta(name="web", namespace="default"),
            spec={"replicas": self.desired_replicas},
        )
        return self.obj

    async def update(self, obj: Deployment) -> Deployment | None:
        if obj.spec.get("replicas") == self.desired_replicas:
            return None
        self._check("update")
        obj.spec["replicas"] = self.desired_replicas
        self.obj = obj
        return obj

    def is_ready(self, obj: Deployment) -> bool:
        return obj.status.get("availableReplicas") == obj.spec.get("replicas")

    def executor(self, timeout: float | None = None) -> Executor[Deployment]:
        return Executor(
            name="Deployment",
            kind="apps/v1, Kind=Deployment",
            fetch_func=self.fetch,
            create_func=self.create,
            update_func=self.update,
            is_ready=self.is_ready,
            timeout=timeout,
        )


@pytest.fixture(name="backend")
def backend_fixture() -> FakeBackend:
    return FakeBackend()


async def test_nop_executor() -> None:
    """Test a no-op executor skips without errors."""
    result = await Executor.nop("Certificate", "cert-manager.io/v1").execute()
    assert result.name == "Certificate"
    assert result.operations == {Operation.SKIP}
    assert result.skipped
    assert not result.errored
    assert not result.ready
    assert not result.not_ready
    assert result.obj is None


def test_missing_functions() -> None:
    """Test an executor without all functions fails at construction."""
    backend = FakeBackend()
    with pytest.raises(ExecutorConfigError, match="update_func, is_ready"):
        Executor(
            name="Deployment",
            kind="apps/v1, Kind=Deployment",
            fetch_func=backend.fetch,
            create_func=backend.create,
        )


async def test_create_then_check(backend: FakeBackend) -> None:
    """Test a missing object is created and checked."""
    result = await backend.executor().execute()
    assert result.operations == {Operation.CREATE, Operation.CHECK}
    assert result.processing_ops == [Operation.CREATE]
    assert result.not_ready
    assert not result.ready
    assert result.obj is backend.obj
    assert backend.calls == ["fetch", "create"]


async def test_idempotent(backend: FakeBackend) -> None:
    """Test executing a converged object twice changes nothing."""
    await backend.executor().execute()
    assert backend.obj
    backend.obj.status["availableReplicas"] = 2
    backend.calls.clear()

    for _ in range(2):
        result = await backend.executor().execute()
        assert result.operations == {Operation.CHECK}
        assert result.processing_ops == []
        assert result.ready
    assert backend.calls == ["fetch", "fetch"]


async def test_converges_with_one_update(backend: FakeBackend) -> None:
    """Test a drifted object is updated exactly once."""
    await backend.executor().execute()
    backend.desired_replicas = 3

    result = await backend.executor().execute()
    assert result.operations == {Operation.UPDATE, Operation.CHECK}
    assert result.processing_ops == [Operation.UPDATE]
    assert result.obj
    assert result.obj.spec["replicas"] == 3

    result = await backend.executor().execute()
    assert result.operations == {Operation.CHECK}
    assert backend.calls.count("update") == 1


async def test_fetch_error(backend: FakeBackend) -> None:
    """Test a failed fetch is fatal and records the failed operation."""
    backend.fail["fetch"] = ConflictError("boom")
    result = await backend.executor().execute()
    assert result.errored
    assert not result.ready
    assert not result.not_ready
    assert result.operations == {Operation.FETCH}
    assert result.error
    assert result.error.kind == ErrorKind.FETCH
    assert result.error.resource_name == "Deployment"
    assert isinstance(result.error.__cause__, ConflictError)
    assert str(result.error) == "failed to fetch Deployment: boom"
    assert backend.calls == ["fetch"]


async def test_create_error(backend: FakeBackend) -> None:
    """Test a failed create is fatal and skips the ready check."""
    backend.fail["create"] = ConflictError("exists")
    result = await backend.executor().execute()
    assert result.error
    assert result.error.kind == ErrorKind.CREATE
    assert result.operations == {Operation.CREATE}
    assert Operation.CHECK not in result.operations


async def test_update_error(backend: FakeBackend) -> None:
    """Test a failed update is fatal."""
    await backend.executor().execute()
    backend.desired_replicas = 5
    backend.fail["update"] = ConflictError("modified")
    result = await backend.executor().execute()
    assert result.error
    assert result.error.kind == ErrorKind.UPDATE
    assert result.operations == {Operation.UPDATE}
    assert result.obj is not None


async def test_timeout(backend: FakeBackend) -> None:
    """Test a client call exceeding the timeout fails the operation."""

    async def slow_fetch() -> Deployment:
        await asyncio.sleep(10)
        raise AssertionError("not reached")

    executor = backend.executor(timeout=0.01)
    executor.fetch_func = slow_fetch
    result = await executor.execute()
    assert result.error
    assert result.error.kind == ErrorKind.FETCH
    assert isinstance(result.error.cause, TimeoutError)
    assert str(result.error) == "failed to fetch Deployment: TimeoutError"


@pytest.mark.parametrize("call", ["fetch", "create"])
async def test_transport_error(backend: FakeBackend, call: str) -> None:
    """Test errors outside the client hierarchy are reported, not raised."""
    backend.fail[call] = ConnectionResetError("connection reset by peer")
    result = await backend.executor().execute()
    assert result.errored
    assert result.error
    assert result.error.kind == ErrorKind(call.capitalize())
    assert isinstance(result.error.cause, ConnectionResetError)
    assert str(result.error) == f"failed to {call} Deployment: connection reset by peer"
