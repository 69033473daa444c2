"""Synchronization of a single managed resource.

The Executor is the idempotent fetch, create, update and ready check
primitive. It is built from per-kind functions and reports what it did as an
ExecuteResult without ever raising for a failed client call.
"""

from .diff import is_subset_equal, merge_fields, merge_labels
from .executor import ExecuteResult, Executor, Operation

__all__ = [
    "ExecuteResult",
    "Executor",
    "Operation",
    "is_subset_equal",
    "merge_fields",
    "merge_labels",
]
