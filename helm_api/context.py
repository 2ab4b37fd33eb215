"""Utilities for tracing release operations."""

import contextvars
from contextlib import contextmanager
import logging
from time import perf_counter
from typing import Generator


_LOGGER = logging.getLogger(__name__)

# No public API
__all__: list[str] = []


operation: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation", default=None
)


@contextmanager
def trace_context(op: str, release_name: str) -> Generator[None, None, None]:
    """Log the duration of an operation on a release.

    Nested operations (e.g. the upgrade inside a scale) are labeled with the
    outer operation.
    """
    outer = operation.get()
    label = f"{outer} > {op}" if outer else op
    token = operation.set(label)
    t1 = perf_counter()
    _LOGGER.debug("[Trace] > %s %s", label, release_name)
    try:
        yield
    finally:
        t2 = perf_counter()
        operation.reset(token)
        _LOGGER.debug("[Trace] < %s %s (%0.2fs)", label, release_name, (t2 - t1))
