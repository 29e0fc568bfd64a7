"""Step and run results — the structured outcome of a process run.

Manifesto:
    A caller never receives a bare exception for a step failure.  Every
    step settles into a ``StepResult`` with a terminal status, and failed
    or skipped steps carry a ``StepError`` naming the error kind and, for
    contract failures, the exact schema violations.  ``ProcessResult``
    collects them in declaration order.

ARCHITECTURE
────────────
::

    StepResult
      ├── .succeeded(step_id, output, ...)   → SUCCEEDED
      ├── .failed(step_id, error, ...)       → FAILED
      ├── .skipped(step_id, reason, error=)  → SKIPPED
      └── .cancelled(step_id, ...)           → CANCELLED

    StepError      ── kind, category, message, retryable, violations
    ProcessResult  ── run_id, process_id, status, steps{step_id: StepResult}

Tags:
    skillweave, orchestration, step-result, process-result

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from skillweave.core.errors import ErrorCategory, WeaveError, categorize_error, is_retryable


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    """Terminal status of a step."""

    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    CANCELLED = "CANCELLED"


class RunStatus(str, Enum):
    """Status of a process run."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.CANCELLED)


@dataclass(frozen=True)
class StepError:
    """Structured record of why a step did not succeed."""

    kind: str
    message: str
    category: ErrorCategory = ErrorCategory.INTERNAL
    retryable: bool = False
    violations: tuple[dict[str, Any], ...] = ()
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, error: BaseException) -> StepError:
        violations = tuple(v.to_dict() for v in getattr(error, "violations", ()) or ())
        details: dict[str, Any] = {}
        if isinstance(error, WeaveError):
            details = error.context.to_dict()
            for attr in ("candidates", "tags", "reference", "timeout_seconds"):
                if hasattr(error, attr):
                    details[attr] = getattr(error, attr)
            message = error.message
        else:
            message = str(error) or type(error).__name__
        return cls(
            kind=type(error).__name__,
            message=message,
            category=categorize_error(error),
            retryable=is_retryable(error),
            violations=violations,
            details=details,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "kind": self.kind,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.violations:
            data["violations"] = list(self.violations)
        if self.details:
            data["details"] = dict(self.details)
        return data


@dataclass(frozen=True)
class StepResult:
    """Terminal outcome of one step; ``output`` is set only when SUCCEEDED."""

    step_id: str
    status: StepStatus
    output: Any = None
    error: StepError | None = None
    attempts: int = 0
    handler_id: str | None = None
    skip_reason: str | None = None
    started_at: datetime | None = None
    completed_at: datetime = field(default_factory=utcnow)

    @classmethod
    def succeeded(
        cls,
        step_id: str,
        output: Any,
        *,
        attempts: int = 1,
        handler_id: str | None = None,
        started_at: datetime | None = None,
    ) -> StepResult:
        return cls(
            step_id=step_id,
            status=StepStatus.SUCCEEDED,
            output=output,
            attempts=attempts,
            handler_id=handler_id,
            started_at=started_at,
        )

    @classmethod
    def failed(
        cls,
        step_id: str,
        error: StepError | BaseException,
        *,
        attempts: int = 0,
        handler_id: str | None = None,
        started_at: datetime | None = None,
    ) -> StepResult:
        if isinstance(error, BaseException):
            error = StepError.from_exception(error)
        return cls(
            step_id=step_id,
            status=StepStatus.FAILED,
            error=error,
            attempts=attempts,
            handler_id=handler_id,
            started_at=started_at,
        )

    @classmethod
    def skipped(cls, step_id: str, reason: str, *, error: StepError | None = None) -> StepResult:
        return cls(step_id=step_id, status=StepStatus.SKIPPED, error=error, skip_reason=reason)

    @classmethod
    def cancelled(
        cls,
        step_id: str,
        *,
        attempts: int = 0,
        handler_id: str | None = None,
        started_at: datetime | None = None,
    ) -> StepResult:
        return cls(
            step_id=step_id,
            status=StepStatus.CANCELLED,
            attempts=attempts,
            handler_id=handler_id,
            started_at=started_at,
            skip_reason="run cancelled",
        )

    def as_skipped(self, reason: str) -> StepResult:
        """Re-label a failure as SKIPPED, keeping its error and attempt count."""
        return replace(self, status=StepStatus.SKIPPED, output=None, skip_reason=reason)

    @property
    def duration_ms(self) -> float | None:
        if self.started_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "step_id": self.step_id,
            "status": self.status.value,
            "attempts": self.attempts,
        }
        if self.status == StepStatus.SUCCEEDED:
            data["output"] = self.output
        if self.handler_id:
            data["handler_id"] = self.handler_id
        if self.error is not None:
            data["error"] = self.error.to_dict()
        if self.skip_reason:
            data["skip_reason"] = self.skip_reason
        if self.started_at is not None:
            data["started_at"] = self.started_at.isoformat()
        data["completed_at"] = self.completed_at.isoformat()
        return data


@dataclass
class ProcessResult:
    """Outcome of a whole run, steps listed in declaration order."""

    run_id: str
    process_id: str
    status: RunStatus
    steps: dict[str, StepResult] = field(default_factory=dict)
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None
    failed_step: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    @property
    def outputs(self) -> dict[str, Any]:
        """Outputs of every SUCCEEDED step."""
        return {
            step_id: result.output
            for step_id, result in self.steps.items()
            if result.status == StepStatus.SUCCEEDED
        }

    def step(self, step_id: str) -> StepResult:
        return self.steps[step_id]

    def statuses(self) -> dict[str, StepStatus]:
        return {step_id: result.status for step_id, result in self.steps.items()}

    def by_status(self, status: StepStatus) -> list[str]:
        return [step_id for step_id, result in self.steps.items() if result.status == status]

    @property
    def duration_ms(self) -> float | None:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "process_id": self.process_id,
            "status": self.status.value,
            "failed_step": self.failed_step,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "steps": [result.to_dict() for result in self.steps.values()],
        }


__all__ = [
    "StepStatus",
    "RunStatus",
    "StepError",
    "StepResult",
    "ProcessResult",
]
