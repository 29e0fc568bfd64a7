"""Execution context — the per-run, append-only store of step outputs.

Each run owns exactly one ``ExecutionContext``.  A step's validated output
is written once, when the step settles, and read by dependents when their
templates are rendered.  Writes happen-before reads structurally: a step is
only started after every step it references has settled.

Example:
    >>> ctx = ExecutionContext.create("adr-flow", {"title": "Use Postgres"})
    >>> ctx.record("draft", {"text": "..."})
    >>> ctx.render({"title": "${input.title}", "body": "${draft.text}"})
    {'title': 'Use Postgres', 'body': '...'}
    >>> ctx.record("draft", {})   # raises ContextWriteError
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any

from skillweave.core.errors import ContextWriteError, ErrorContext, TemplateResolutionError
from skillweave.orchestration.templates import ABSENT, TemplateRef, substitute, walk_path


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExecutionContext:
    """Run-scoped output store.

    Attributes:
        run_id: Unique run identifier.
        process_id: Id of the process definition being run.
        initial: The initial context the run was started with (``${input}``).
        started_at: When the run was created.
    """

    run_id: str
    process_id: str
    initial: Mapping[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=_utcnow)
    _outputs: dict[str, Any] = field(default_factory=dict, repr=False)
    _sentinels: set[str] = field(default_factory=set, repr=False)

    @classmethod
    def create(
        cls,
        process_id: str,
        initial: Mapping[str, Any] | None = None,
        run_id: str | None = None,
    ) -> ExecutionContext:
        return cls(
            run_id=run_id or str(uuid.uuid4()),
            process_id=process_id,
            initial=copy.deepcopy(dict(initial or {})),
        )

    # ── Writes ───────────────────────────────────────────────────

    def record(self, step_id: str, output: Any, *, sentinel: bool = False) -> None:
        """Store a step's output; each step id may be written once.

        ``sentinel`` marks the placeholder output of a failed step whose
        dependents run anyway; references into it resolve to absent.
        """
        if step_id in self._outputs:
            raise ContextWriteError(
                f"Output for step '{step_id}' already recorded",
                context=ErrorContext(step_id=step_id, run_id=self.run_id),
            )
        self._outputs[step_id] = copy.deepcopy(output)
        if sentinel:
            self._sentinels.add(step_id)

    # ── Reads ────────────────────────────────────────────────────

    def has_output(self, step_id: str) -> bool:
        return step_id in self._outputs

    def is_sentinel(self, step_id: str) -> bool:
        return step_id in self._sentinels

    def output(self, step_id: str, default: Any = None) -> Any:
        return self._outputs.get(step_id, default)

    @property
    def outputs(self) -> Mapping[str, Any]:
        return MappingProxyType(self._outputs)

    def resolve(self, ref: TemplateRef) -> Any:
        """Value behind ``ref``; raises :class:`TemplateResolutionError` when missing."""
        if ref.is_input:
            value = walk_path(self.initial, ref.path)
            if value is ABSENT:
                raise TemplateResolutionError(str(ref), "not present in the initial context")
            return copy.deepcopy(value)

        if ref.step_id not in self._outputs:
            raise TemplateResolutionError(str(ref), f"step '{ref.step_id}' has no output")
        value = walk_path(self._outputs[ref.step_id], ref.path)
        if value is ABSENT:
            if ref.step_id in self._sentinels:
                return ABSENT
            raise TemplateResolutionError(
                str(ref), f"path not found in output of step '{ref.step_id}'"
            )
        return copy.deepcopy(value)

    def render(self, template: Any) -> Any:
        """Substitute every reference in ``template`` against this context."""
        rendered = substitute(template, self.resolve)
        return None if rendered is ABSENT else rendered

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "process_id": self.process_id,
            "started_at": self.started_at.isoformat(),
            "initial": dict(self.initial),
            "outputs": dict(self._outputs),
            "sentinels": sorted(self._sentinels),
        }


__all__ = ["ExecutionContext"]
