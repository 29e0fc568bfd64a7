"""Implementation table — binds handler ids to opaque callables.

Descriptors say *what* a handler accepts and returns; an implementation is
the code that actually does the work (a model call, a tool run, a human
hand-off).  The core never looks inside it.  An implementation receives a
private copy of the validated payload plus an :class:`InvocationSignal`
and either returns a value or raises.  Raising :class:`TransientError`
(or any exception with ``retryable = True``) asks for a retry; anything
else is fatal.

ARCHITECTURE
────────────
::

    ImplementationTable
      ├── .bind(handler_id, fn)      ─ attach (replaces existing binding)
      ├── .implements(handler_id)    ─ decorator form of bind
      ├── .get(handler_id)           ─ fn or ImplementationNotBoundError
      ├── .has(handler_id) / .unbind(handler_id) / .ids()

    HandlerImplementation
      async def fn(payload: dict, signal: InvocationSignal) -> Any
      def fn(payload: dict, signal: InvocationSignal) -> Any   (run in a thread)

Example:
    >>> table = ImplementationTable()
    >>> @table.implements("adr-drafter")
    ... async def draft(payload, signal):
    ...     return {"adr": f"# {payload['title']}"}

Tags:
    skillweave, execution, implementation, handler

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from skillweave.core.errors import ImplementationNotBoundError
from skillweave.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class InvocationSignal:
    """Cancellation and deadline information handed to an implementation.

    ``cancel_event`` is the run-level event; implementations running in a
    worker thread poll :attr:`cancelled` instead of awaiting it.
    """

    handler_id: str
    attempt: int = 1
    deadline: float | None = None  # time.monotonic() based
    cancel_event: asyncio.Event | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise asyncio.CancelledError(f"invocation of {self.handler_id} cancelled")


class HandlerImplementation(Protocol):
    """Callable protocol for opaque handler implementations."""

    def __call__(self, payload: dict[str, Any], signal: InvocationSignal) -> Any: ...


class ImplementationTable:
    """Thread-safe mapping from handler id to implementation."""

    def __init__(self, bindings: dict[str, HandlerImplementation] | None = None):
        self._lock = threading.Lock()
        self._bindings: dict[str, HandlerImplementation] = dict(bindings or {})

    def bind(self, handler_id: str, implementation: HandlerImplementation) -> None:
        if not callable(implementation):
            raise TypeError(f"implementation for {handler_id!r} is not callable")
        with self._lock:
            replaced = handler_id in self._bindings
            self._bindings[handler_id] = implementation
        logger.debug("implementation.bound", handler_id=handler_id, replaced=replaced)

    def implements(self, handler_id: str) -> Callable[[HandlerImplementation], HandlerImplementation]:
        """Decorator binding the wrapped function to ``handler_id``."""

        def decorator(fn: HandlerImplementation) -> HandlerImplementation:
            self.bind(handler_id, fn)
            return fn

        return decorator

    def get(self, handler_id: str) -> HandlerImplementation:
        implementation = self._bindings.get(handler_id)
        if implementation is None:
            raise ImplementationNotBoundError(handler_id)
        return implementation

    def has(self, handler_id: str) -> bool:
        return handler_id in self._bindings

    def unbind(self, handler_id: str) -> bool:
        with self._lock:
            return self._bindings.pop(handler_id, None) is not None

    def ids(self) -> list[str]:
        return sorted(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __contains__(self, handler_id: object) -> bool:
        return handler_id in self._bindings


__all__ = ["InvocationSignal", "HandlerImplementation", "ImplementationTable"]
