"""Utilities for tracing reconcile passes."""

import contextvars
from contextlib import contextmanager
import logging
from time import perf_counter
from typing import Generator


_LOGGER = logging.getLogger(__name__)

# No public API
__all__: list[str] = []


trace: contextvars.ContextVar[list[str]] = contextvars.ContextVar("trace")


@contextmanager
def trace_context(name: str) -> Generator[None, None, None]:
    """Log entry, exit and duration of a named step.

    Nested steps are joined into a single label, e.g. the executor of a
    resource logs as `Plant/default/web > Deployment`.
    """
    stack = trace.get([])
    token = trace.set(stack + [name])
    label = " > ".join(stack + [name])
    start = perf_counter()
    _LOGGER.debug("[Trace] > %s", label)
    try:
        yield
    finally:
        trace.reset(token)
        _LOGGER.debug("[Trace] < %s (%0.3fs)", label, perf_counter() - start)
