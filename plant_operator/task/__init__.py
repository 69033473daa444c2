"""Task tracking for plant-operator.

Reconcile passes fan out into asyncio tasks, one per managed resource, and
the runner keeps a long running worker. This module tracks both so callers can
wait for outstanding work and shut down cleanly.
"""

from .context import task_service_context, get_task_service
from .service import TaskService

__all__ = ["get_task_service", "task_service_context", "TaskService"]
