"""
skillweave — orchestration core for declarative skills and agents.

Handlers are described by declarative descriptors (capability tags plus
input/output schemas) and executed by opaque implementations.  Processes
chain handler outputs into later handler inputs as a dependency graph.

- skillweave.core:          errors, logging, settings
- skillweave.schema:        contract validation
- skillweave.registry:      descriptors, registry, resolver, loader
- skillweave.execution:     invocation boundary, implementations, retry
- skillweave.orchestration: processes, executor, results, snapshots
"""

__version__ = "0.1.0"

from skillweave.core.errors import WeaveError
from skillweave.execution import ImplementationTable, InvocationBoundary
from skillweave.orchestration import (
    FailurePolicy,
    HandlerRequest,
    ProcessDefinition,
    ProcessExecutor,
    ProcessResult,
    RunStatus,
    StepSpec,
    StepStatus,
)
from skillweave.registry import HandlerDescriptor, HandlerKind, HandlerRegistry, Resolver

__all__ = [
    "__version__",
    "WeaveError",
    "ImplementationTable",
    "InvocationBoundary",
    "FailurePolicy",
    "HandlerRequest",
    "ProcessDefinition",
    "ProcessExecutor",
    "ProcessResult",
    "RunStatus",
    "StepSpec",
    "StepStatus",
    "HandlerDescriptor",
    "HandlerKind",
    "HandlerRegistry",
    "Resolver",
]
