"""
Structured error types for skillweave.

Every failure the orchestration core can produce is a ``WeaveError``.
Errors carry a category, an explicit retry flag, a structured context and an
optional chained cause, so the executor can decide whether to retry a step
and the caller always receives a structured record instead of an opaque
exception string.

Manifesto:
    - **Typed hierarchy:** one subclass per failure the core distinguishes
    - **Explicit retry semantics:** each error knows if it is retryable
    - **Rich context:** handler, step, process and run ids travel with the error
    - **Error chaining:** the original exception is preserved as ``cause``

Architecture:
    ::

        WeaveError  (category, retryable, context, cause)
          ├── DescriptorError          (REGISTRY)
          │     ├── DuplicateIdError
          │     ├── InvalidDescriptorError
          │     └── KindChangeError
          ├── SchemaDefinitionError    (CONFIG)
          ├── ResolutionError          (RESOLUTION)
          │     ├── HandlerNotFoundError
          │     ├── AmbiguousCapabilityError
          │     └── NoCapabilityMatchError
          ├── ContractError            (CONTRACT)
          │     ├── InputValidationError
          │     └── OutputContractViolationError
          ├── HandlerExecutionError    (HANDLER, retryable per instance)
          │     ├── InvocationTimeoutError      (TIMEOUT, retryable)
          │     └── ImplementationNotBoundError
          ├── ProcessStructureError    (PROCESS)
          │     ├── CyclicDependencyError
          │     ├── UnknownStepReferenceError
          │     ├── ForwardStepReferenceError
          │     └── DuplicateStepError
          ├── TemplateResolutionError  (PROCESS)
          ├── ContextWriteError        (INTERNAL)
          ├── TransientError           (raised by handlers, retryable)
          └── FatalHandlerError        (raised by handlers, never retried)

Usage:
    from skillweave.core.errors import TransientError

    async def summarize(payload, signal):
        try:
            return await client.complete(payload["text"])
        except httpx.TimeoutException as e:
            raise TransientError("model endpoint timed out", cause=e)

Tags:
    error-handling, exception-hierarchy, retry-logic, skillweave

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from skillweave.schema.validator import Violation


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    REGISTRY = "REGISTRY"  # Descriptor registration problems
    CONFIG = "CONFIG"  # Malformed schemas, invalid settings
    RESOLUTION = "RESOLUTION"  # No / ambiguous handler for a request
    CONTRACT = "CONTRACT"  # Input or output schema violations
    HANDLER = "HANDLER"  # Opaque handler raised
    TIMEOUT = "TIMEOUT"  # Invocation exceeded its deadline
    PROCESS = "PROCESS"  # Invalid process structure or templates
    TRANSIENT = "TRANSIENT"  # Temporary upstream failure
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Only non-empty fields are serialized, so the context stays compact in
    logs and snapshot records.
    """

    handler_id: str | None = None
    step_id: str | None = None
    process_id: str | None = None
    run_id: str | None = None
    attempt: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key in ("handler_id", "step_id", "process_id", "run_id", "attempt"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class WeaveError(Exception):
    """
    Base exception for all skillweave errors.

    Subclasses set ``default_category`` and ``default_retryable``; both can
    be overridden per instance.

    Examples:
        >>> error = WeaveError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False
        >>> error.with_context(step_id="draft").context.step_id
        'draft'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> WeaveError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = repr(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# DESCRIPTOR / CONFIGURATION ERRORS
# =============================================================================


class DescriptorError(WeaveError):
    """A handler descriptor could not be registered."""

    default_category = ErrorCategory.REGISTRY


class DuplicateIdError(DescriptorError):
    """A descriptor with the same id is already registered."""

    def __init__(self, handler_id: str):
        self.handler_id = handler_id
        super().__init__(
            f"Handler already registered: {handler_id}",
            context=ErrorContext(handler_id=handler_id),
        )


class InvalidDescriptorError(DescriptorError):
    """Descriptor failed self-validation (schemas, capability tags, id)."""

    def __init__(self, handler_id: str, problems: Iterable[str]):
        self.handler_id = handler_id
        self.problems = list(problems)
        super().__init__(
            f"Invalid descriptor '{handler_id}': " + "; ".join(self.problems),
            context=ErrorContext(handler_id=handler_id),
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["problems"] = self.problems
        return result


class KindChangeError(DescriptorError):
    """A replacement descriptor tried to change the registered kind."""

    def __init__(self, handler_id: str, registered: str, attempted: str):
        self.handler_id = handler_id
        self.registered = registered
        self.attempted = attempted
        super().__init__(
            f"Cannot change kind of '{handler_id}' from {registered} to {attempted}",
            context=ErrorContext(handler_id=handler_id),
        )


class SchemaDefinitionError(WeaveError):
    """A schema document is itself malformed.

    Raised at load/registration time, never while validating values.
    """

    default_category = ErrorCategory.CONFIG

    def __init__(self, problems: Iterable[str], message: str | None = None):
        self.problems = list(problems)
        super().__init__(message or "Malformed schema: " + "; ".join(self.problems))


# =============================================================================
# RESOLUTION ERRORS
# =============================================================================


class ResolutionError(WeaveError):
    """No single handler satisfies a request."""

    default_category = ErrorCategory.RESOLUTION


class HandlerNotFoundError(ResolutionError):
    """A request named a handler id that is not registered."""

    def __init__(self, handler_id: str):
        self.handler_id = handler_id
        super().__init__(
            f"Handler not found: {handler_id}",
            context=ErrorContext(handler_id=handler_id),
        )


class AmbiguousCapabilityError(ResolutionError):
    """More than one handler equally satisfies a capability query."""

    def __init__(self, tags: Iterable[str], candidates: Iterable[str]):
        self.tags = sorted(tags)
        self.candidates = list(candidates)
        super().__init__(
            f"Capability query {self.tags} is ambiguous; candidates: "
            + ", ".join(self.candidates)
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["tags"] = self.tags
        result["candidates"] = self.candidates
        return result


class NoCapabilityMatchError(ResolutionError):
    """No registered handler declares all of the requested tags."""

    def __init__(self, tags: Iterable[str], kind: str | None = None):
        self.tags = sorted(tags)
        self.kind = kind
        suffix = f" (kind={kind})" if kind else ""
        super().__init__(f"No handler matches capabilities {self.tags}{suffix}")


# =============================================================================
# CONTRACT ERRORS
# =============================================================================


class ContractError(WeaveError):
    """A value crossing the invocation boundary broke a handler contract."""

    default_category = ErrorCategory.CONTRACT

    def __init__(
        self,
        message: str,
        *,
        handler_id: str,
        violations: Iterable[Violation] = (),
        **kwargs: Any,
    ):
        self.handler_id = handler_id
        self.violations = list(violations)
        kwargs.setdefault("context", ErrorContext(handler_id=handler_id))
        super().__init__(message, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["violations"] = [v.to_dict() for v in self.violations]
        return result


class InputValidationError(ContractError):
    """The context payload does not satisfy the handler's input schema."""

    def __init__(self, handler_id: str, violations: Iterable[Violation]):
        violations = list(violations)
        super().__init__(
            f"Input for '{handler_id}' violates its schema "
            f"({len(violations)} violation(s))",
            handler_id=handler_id,
            violations=violations,
        )


class OutputContractViolationError(ContractError):
    """The handler returned data that does not satisfy its output schema."""

    def __init__(self, handler_id: str, violations: Iterable[Violation]):
        violations = list(violations)
        super().__init__(
            f"Output of '{handler_id}' violates its schema "
            f"({len(violations)} violation(s))",
            handler_id=handler_id,
            violations=violations,
        )


# =============================================================================
# HANDLER EXECUTION ERRORS
# =============================================================================


class HandlerExecutionError(WeaveError):
    """The opaque handler signalled an error instead of returning.

    ``retryable`` comes from the classification supplied by the handler;
    unclassified failures are fatal.
    """

    default_category = ErrorCategory.HANDLER

    def __init__(
        self,
        message: str,
        *,
        handler_id: str,
        retryable: bool = False,
        **kwargs: Any,
    ):
        self.handler_id = handler_id
        kwargs.setdefault("context", ErrorContext(handler_id=handler_id))
        super().__init__(message, retryable=retryable, **kwargs)


class InvocationTimeoutError(HandlerExecutionError):
    """The handler did not settle before its deadline."""

    default_category = ErrorCategory.TIMEOUT

    def __init__(self, handler_id: str, timeout_seconds: float, *, retryable: bool = True):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Handler '{handler_id}' timed out after {timeout_seconds}s",
            handler_id=handler_id,
            retryable=retryable,
        )


class ImplementationNotBoundError(HandlerExecutionError):
    """A descriptor is registered but no implementation is bound to it."""

    def __init__(self, handler_id: str):
        super().__init__(
            f"No implementation bound for handler: {handler_id}",
            handler_id=handler_id,
            category=ErrorCategory.CONFIG,
        )


# =============================================================================
# PROCESS STRUCTURE ERRORS
# =============================================================================


class ProcessStructureError(WeaveError):
    """A process definition is structurally invalid."""

    default_category = ErrorCategory.PROCESS

    def __init__(self, message: str, *, process_id: str | None = None, **kwargs: Any):
        self.process_id = process_id
        kwargs.setdefault("context", ErrorContext(process_id=process_id))
        super().__init__(message, **kwargs)


class CyclicDependencyError(ProcessStructureError):
    """The step dependency graph contains a cycle."""

    def __init__(self, cycle: list[str], process_id: str | None = None):
        self.cycle = cycle
        super().__init__(
            "Cycle detected in step dependencies: " + " -> ".join(cycle),
            process_id=process_id,
        )


class UnknownStepReferenceError(ProcessStructureError):
    """A step depends on, or references, a step id that does not exist."""

    def __init__(self, step_id: str, missing: list[str], process_id: str | None = None):
        self.step_id = step_id
        self.missing = missing
        super().__init__(
            f"Step '{step_id}' references unknown steps: " + ", ".join(missing),
            process_id=process_id,
        )


class ForwardStepReferenceError(ProcessStructureError):
    """A template references a later-declared step without an explicit dependency."""

    def __init__(self, step_id: str, referenced: str, process_id: str | None = None):
        self.step_id = step_id
        self.referenced = referenced
        super().__init__(
            f"Step '{step_id}' references later step '{referenced}' "
            "without declaring it in depends_on",
            process_id=process_id,
        )


class DuplicateStepError(ProcessStructureError):
    """Two steps in one process share a step id."""

    def __init__(self, step_id: str, process_id: str | None = None):
        self.step_id = step_id
        super().__init__(f"Duplicate step id: {step_id}", process_id=process_id)


class TemplateResolutionError(WeaveError):
    """A template reference could not be resolved against the run context."""

    default_category = ErrorCategory.PROCESS

    def __init__(self, reference: str, reason: str):
        self.reference = reference
        self.reason = reason
        super().__init__(f"Cannot resolve ${{{reference}}}: {reason}")


class ContextWriteError(WeaveError):
    """A step output slot was written twice."""

    default_category = ErrorCategory.INTERNAL


# =============================================================================
# HANDLER-FACING CLASSIFICATION
# =============================================================================


class TransientError(WeaveError):
    """Raised by handler implementations for failures worth retrying."""

    default_category = ErrorCategory.TRANSIENT
    default_retryable = True


class FatalHandlerError(WeaveError):
    """Raised by handler implementations that reject a request outright."""

    default_category = ErrorCategory.HANDLER
    default_retryable = False


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Classification supplied by the error itself; unclassified means fatal."""
    if isinstance(error, WeaveError):
        return error.retryable
    flag = getattr(error, "retryable", None)
    return flag if isinstance(flag, bool) else False


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, WeaveError):
        return error.category
    return ErrorCategory.HANDLER


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "WeaveError",
    # Descriptor / config
    "DescriptorError",
    "DuplicateIdError",
    "InvalidDescriptorError",
    "KindChangeError",
    "SchemaDefinitionError",
    # Resolution
    "ResolutionError",
    "HandlerNotFoundError",
    "AmbiguousCapabilityError",
    "NoCapabilityMatchError",
    # Contract
    "ContractError",
    "InputValidationError",
    "OutputContractViolationError",
    # Handler execution
    "HandlerExecutionError",
    "InvocationTimeoutError",
    "ImplementationNotBoundError",
    # Process structure
    "ProcessStructureError",
    "CyclicDependencyError",
    "UnknownStepReferenceError",
    "ForwardStepReferenceError",
    "DuplicateStepError",
    "TemplateResolutionError",
    "ContextWriteError",
    # Handler-facing
    "TransientError",
    "FatalHandlerError",
    # Utilities
    "is_retryable",
    "categorize_error",
]
