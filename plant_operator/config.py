"""Configuration objects for plant-operator."""

from dataclasses import dataclass, field

from .manifest import FINALIZER


@dataclass
class WorkflowConfig:
    """Configuration for the WorkflowManager."""

    execute_timeout: float | None = 30.0
    """Seconds allowed for each client call made by an executor, None to disable."""


@dataclass
class PlantControllerConfig:
    """Configuration for the PlantController."""

    finalizer: str = FINALIZER
    """Finalizer guarding deletion of a Plant until cleanup is done."""


@dataclass
class RunnerConfig:
    """Configuration for the Runner work queue."""

    backoff_base: float = 0.05
    """Delay in seconds before the first requeue of an owner."""

    backoff_max: float = 5.0
    """Upper bound in seconds for the requeue delay."""


@dataclass
class OperatorConfig:
    """Configuration for all operator components."""

    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    controller: PlantControllerConfig = field(default_factory=PlantControllerConfig)
    runner: RunnerConfig = field(default_factory=RunnerConfig)
