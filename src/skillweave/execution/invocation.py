"""Invocation Boundary — the single guarded call into an opaque handler.

Manifesto:
A handler is trusted with nothing.  Its input is checked before the call
so it never sees a payload its contract rejects, and its output is checked
after the call so contract-violating data is a failure of that handler
rather than something a later step trips over.  Everything the handler
raises is classified into one structured error.

ARCHITECTURE
────────────
::

    invoke(descriptor, payload, timeout=, cancel_event=)
      │
      ├─ 1. validate(payload, input_schema)  ── InputValidationError (no call)
      ├─ 2. implementations.get(id)          ── ImplementationNotBoundError
      ├─ 3. fn(deepcopy(payload), signal)    ── under timeout + cancel_event
      │        raises        → HandlerExecutionError(retryable from error)
      │        too slow      → InvocationTimeoutError (retryable)
      │        cancelled     → asyncio.CancelledError propagates
      ├─ 4. validate(result, output_schema)  ── OutputContractViolationError
      └─ 5. InvocationResult(output, duration)

The boundary has no side effects of its own beyond validation and the one
delegated call.

Tags:
    skillweave, execution, invocation, contracts, timeout, cancellation

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from skillweave.core.errors import (
    ErrorCategory,
    HandlerExecutionError,
    InputValidationError,
    InvocationTimeoutError,
    OutputContractViolationError,
    WeaveError,
    is_retryable,
)
from skillweave.core.logging import get_logger
from skillweave.execution.implementations import (
    HandlerImplementation,
    ImplementationTable,
    InvocationSignal,
)
from skillweave.registry.descriptor import HandlerDescriptor
from skillweave.schema.validator import validate

logger = get_logger(__name__)


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class InvocationResult:
    """A validated handler output."""

    handler_id: str
    output: Any
    attempt: int = 1
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime = field(default_factory=utcnow)

    @property
    def duration_ms(self) -> float:
        return (self.completed_at - self.started_at).total_seconds() * 1000


def _consume_result(task: asyncio.Future) -> None:
    # Abandoned calls may still fail later; retrieve so asyncio does not warn
    if not task.cancelled():
        task.exception()


class InvocationBoundary:
    """Validates, calls and classifies one handler invocation.

    Args:
        implementations: Table of opaque implementations keyed by handler id.
        default_timeout: Timeout applied when ``invoke`` gets none.
    """

    def __init__(
        self,
        implementations: ImplementationTable,
        *,
        default_timeout: float | None = None,
    ):
        self.implementations = implementations
        self.default_timeout = default_timeout

    async def invoke(
        self,
        descriptor: HandlerDescriptor,
        payload: Any,
        *,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
        attempt: int = 1,
    ) -> InvocationResult:
        """Run one guarded invocation.

        Raises:
            InputValidationError: Payload violates ``input_schema``.
            ImplementationNotBoundError: Nothing bound for ``descriptor.id``.
            InvocationTimeoutError: The call outlived ``timeout``.
            HandlerExecutionError: The implementation raised.
            OutputContractViolationError: Result violates ``output_schema``.
            asyncio.CancelledError: ``cancel_event`` fired or the task was cancelled.
        """
        handler_id = descriptor.id

        checked = validate(descriptor.input_schema, payload)
        if not checked.ok:
            raise InputValidationError(handler_id, checked.violations)

        implementation = self.implementations.get(handler_id)

        effective_timeout = timeout if timeout is not None else self.default_timeout
        deadline = time.monotonic() + effective_timeout if effective_timeout else None
        signal = InvocationSignal(
            handler_id=handler_id,
            attempt=attempt,
            deadline=deadline,
            cancel_event=cancel_event,
        )
        if signal.cancelled:
            raise asyncio.CancelledError(f"invocation of {handler_id} cancelled")

        started_at = utcnow()
        logger.debug("invocation.start", handler_id=handler_id, attempt=attempt)
        output = await self._call(implementation, copy.deepcopy(payload), signal, effective_timeout)

        checked = validate(descriptor.output_schema, output)
        if not checked.ok:
            raise OutputContractViolationError(handler_id, checked.violations)

        result = InvocationResult(
            handler_id=handler_id,
            output=output,
            attempt=attempt,
            started_at=started_at,
            completed_at=utcnow(),
        )
        logger.debug(
            "invocation.complete",
            handler_id=handler_id,
            attempt=attempt,
            duration_ms=round(result.duration_ms, 2),
        )
        return result

    async def _call(
        self,
        implementation: HandlerImplementation,
        payload: Any,
        signal: InvocationSignal,
        timeout: float | None,
    ) -> Any:
        call = asyncio.ensure_future(self._run(implementation, payload, signal))
        waiters: set[asyncio.Future] = {call}
        cancel_waiter = None
        if signal.cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(signal.cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if call in done:
            return self._classify(call, signal.handler_id)

        call.cancel()
        call.add_done_callback(_consume_result)
        if cancel_waiter is not None and cancel_waiter in done:
            raise asyncio.CancelledError(f"invocation of {signal.handler_id} cancelled")
        raise InvocationTimeoutError(signal.handler_id, timeout or 0.0)

    @staticmethod
    async def _run(
        implementation: HandlerImplementation, payload: Any, signal: InvocationSignal
    ) -> Any:
        if inspect.iscoroutinefunction(implementation) or inspect.iscoroutinefunction(
            getattr(implementation, "__call__", None)
        ):
            return await implementation(payload, signal)
        result = await asyncio.to_thread(implementation, payload, signal)
        if inspect.isawaitable(result):
            result = await result
        return result

    @staticmethod
    def _classify(call: asyncio.Future, handler_id: str) -> Any:
        if call.cancelled():
            raise asyncio.CancelledError(f"invocation of {handler_id} cancelled")
        error = call.exception()
        if error is None:
            return call.result()
        if isinstance(error, HandlerExecutionError):
            raise error
        category = error.category if isinstance(error, WeaveError) else ErrorCategory.HANDLER
        raise HandlerExecutionError(
            f"Handler '{handler_id}' failed: {error}",
            handler_id=handler_id,
            retryable=is_retryable(error),
            category=category,
            cause=error,
        ) from error


__all__ = ["InvocationBoundary", "InvocationResult"]
