"""Plant-operator reconcile action."""

import logging
from argparse import (
    ArgumentParser,
    BooleanOptionalAction,
    _SubParsersAction as SubParsersAction,
)
from typing import cast, Any
import pathlib

from plant_operator.client import InMemoryClient, ReadinessSimulator
from plant_operator.config import OperatorConfig, WorkflowConfig
from plant_operator.controller import PlantController
from plant_operator.events import InMemoryEventRecorder
from plant_operator.exceptions import PlantException, InputException
from plant_operator.manifest import KubeObject, Plant, read_plants
from plant_operator.runner import Runner
from plant_operator.task import task_service_context

from .format import Formatter, JsonFormatter, PrintFormatter, YamlFormatter

_LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
TABLE_COLUMNS = ["kind", "namespace", "name", "state"]


def _summary(objects: list[KubeObject]) -> list[dict[str, Any]]:
    """Return one row per object with the state reported by its Plant."""
    plants = {obj.metadata.name: obj for obj in objects if isinstance(obj, Plant)}
    rows = []
    for obj in objects:
        state = ""
        if isinstance(obj, Plant):
            state = str(obj.status.state)
        elif (ref := obj.metadata.controller_ref()) is not None and (
            owner := plants.get(ref.name)
        ) is not None:
            if (res := owner.status.resource_set.get(obj.kind)) is not None:
                state = str(res.state)
        rows.append(
            {
                "kind": obj.kind,
                "namespace": obj.metadata.namespace or "",
                "name": obj.metadata.name,
                "state": state,
            }
        )
    return rows


class ReconcileAction:
    """Reconcile Plant objects from local manifests."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "reconcile",
                help="Reconcile Plant objects against an in-memory cluster",
                description=(
                    "Load Plant objects from a file or directory, run the operator "
                    "until they settle and print the resulting objects."
                ),
            ),
        )
        args.add_argument(
            "path",
            help="File or directory with Plant manifests",
            type=pathlib.Path,
        )
        args.add_argument(
            "--simulate-ready",
            type=bool,
            action=BooleanOptionalAction,
            default=True,
            help="Mark Deployments and Certificates ready as soon as they are written",
        )
        args.add_argument(
            "--delete",
            type=bool,
            action=BooleanOptionalAction,
            default=False,
            help="Delete the Plant objects after they settled",
        )
        args.add_argument(
            "--timeout",
            type=float,
            default=DEFAULT_TIMEOUT,
            help="Seconds to wait for the Plant objects to settle",
        )
        args.add_argument(
            "--execute-timeout",
            type=float,
            default=WorkflowConfig.execute_timeout,
            help="Seconds allowed for each client call of a managed object",
        )
        args.add_argument(
            "--output",
            "-o",
            choices=["table", "yaml", "json"],
            default="table",
            help="Output format of the command",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        path: pathlib.Path,
        simulate_ready: bool,
        delete: bool,
        timeout: float,
        execute_timeout: float,
        output: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        plants = await read_plants(path)
        if not plants:
            raise InputException(f"No Plant objects found in {path}")

        config = OperatorConfig(
            workflow=WorkflowConfig(execute_timeout=execute_timeout)
        )
        client = InMemoryClient()
        recorder = InMemoryEventRecorder()
        controller = PlantController(
            client,
            recorder,
            config=config.controller,
            workflow_config=config.workflow,
        )
        runner = Runner(client, controller, config.runner)
        simulator = ReadinessSimulator(client)

        with task_service_context():
            if simulate_ready:
                simulator.start()
            for plant in plants:
                await client.create(plant)
            try:
                settled = await runner.run(timeout)
                if settled and delete:
                    for plant in plants:
                        await client.delete(plant.resource_id)
                    settled = await runner.run(timeout)
            finally:
                await runner.stop()
                simulator.stop()

        objects = client.list_objects()
        formatter: Formatter
        if output == "yaml":
            formatter = YamlFormatter()
        elif output == "json":
            formatter = JsonFormatter()
        else:
            formatter = PrintFormatter(TABLE_COLUMNS)
        if isinstance(formatter, PrintFormatter):
            formatter.print(_summary(objects))
        else:
            formatter.print([obj.to_doc() for obj in objects])

        if not settled:
            raise PlantException(f"Plant objects did not settle within {timeout}s")
