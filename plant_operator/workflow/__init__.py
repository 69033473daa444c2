"""Workflow that synchronizes the objects managed for a Plant.

Each managed kind contributes a pure builder computing its desired state from
the Plant and a readiness predicate. The WorkflowManager turns them into
Executors and runs them concurrently without touching the Plant itself.
"""

from .manager import WorkflowManager, WorkflowResult

__all__ = [
    "WorkflowManager",
    "WorkflowResult",
]
