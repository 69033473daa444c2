"""Manager that runs the executors of all managed objects of a Plant."""

import asyncio
from dataclasses import dataclass
import logging

from plant_operator.client import Client
from plant_operator.config import WorkflowConfig
from plant_operator.context import trace_context
from plant_operator.exceptions import WorkflowError
from plant_operator.manifest import (
    Certificate,
    Deployment,
    Ingress,
    ManagedObject,
    Plant,
    Service,
)
from plant_operator.resource import ExecuteResult, Executor
from plant_operator.task import get_task_service

from .certificate import new_tls_or_nop_executor
from .deployment import new_deployment_executor
from .ingress import new_ingress_executor
from .service import new_service_executor

__all__ = [
    "WorkflowManager",
    "WorkflowResult",
]

_LOGGER = logging.getLogger(__name__)


@dataclass
class WorkflowResult:
    """Results of one workflow execution."""

    results: list[ExecuteResult]
    """One result per managed kind, in the order of `WorkflowManager.managed`."""

    error: WorkflowError | None = None
    """The joined errors of all failed executors."""


class WorkflowManager:
    """Runs the workflow of a Plant without modifying the Plant.

    All executors share one client and run concurrently. Every executor is
    waited for even when another one failed, so a pass always reports a
    result for each managed object.
    """

    def __init__(self, client: Client, config: WorkflowConfig | None = None) -> None:
        """Initialize WorkflowManager."""
        self._client = client
        self._config = config or WorkflowConfig()

    @staticmethod
    def managed() -> list[type[ManagedObject]]:
        """Return the kinds of objects managed for a Plant, in result order."""
        return [Deployment, Service, Certificate, Ingress]

    def executors(self, plant: Plant) -> list[Executor]:
        """Return the executors for the Plant, in result order."""
        timeout = self._config.execute_timeout
        tls_secret_name, certificate = new_tls_or_nop_executor(
            self._client, plant, timeout
        )
        return [
            new_deployment_executor(self._client, plant, timeout),
            new_service_executor(self._client, plant, timeout),
            certificate,
            new_ingress_executor(self._client, plant, tls_secret_name, timeout),
        ]

    async def execute(self, plant: Plant) -> WorkflowResult:
        """Synchronize all managed objects of the Plant."""
        executors = self.executors(plant)
        task_service = get_task_service()

        async def run(executor: Executor) -> ExecuteResult:
            with trace_context(executor.name):
                return await executor.execute()

        with trace_context(str(plant.resource_id)):
            tasks = [
                task_service.create_task(
                    run(executor), name=f"{plant.resource_id}/{executor.name}"
                )
                for executor in executors
            ]
            results = list(await asyncio.gather(*tasks))

        errors = [result.error for result in results if result.error is not None]
        if errors:
            _LOGGER.debug(
                "Workflow for %s failed for %d resources",
                plant.resource_id,
                len(errors),
            )
            return WorkflowResult(results=results, error=WorkflowError(errors))
        return WorkflowResult(results=results)
