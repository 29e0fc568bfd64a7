"""
skillweave execution — the guarded call into opaque handlers.

MODULE MAP
──────────
1. implementations.py ─ ImplementationTable, InvocationSignal
2. invocation.py      ─ InvocationBoundary (validate → call → validate)
3. retry.py           ─ ExponentialBackoff and friends
"""

from skillweave.execution.implementations import (
    HandlerImplementation,
    ImplementationTable,
    InvocationSignal,
)
from skillweave.execution.invocation import InvocationBoundary, InvocationResult
from skillweave.execution.retry import (
    ConstantBackoff,
    ExponentialBackoff,
    NoRetry,
    RetryStrategy,
    backoff_from_settings,
)

__all__ = [
    "HandlerImplementation",
    "ImplementationTable",
    "InvocationSignal",
    "InvocationBoundary",
    "InvocationResult",
    "RetryStrategy",
    "ExponentialBackoff",
    "ConstantBackoff",
    "NoRetry",
    "backoff_from_settings",
]
