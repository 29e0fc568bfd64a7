"""Process definitions — the blueprint the executor runs.

Manifesto:
    A process declares **what** to run and how outputs flow between steps;
the ``ProcessExecutor`` decides **how** to run it.  Each step names a
handler (by id or by capability tags), a context template wiring earlier
outputs into its input, explicit completion dependencies and a failure
policy.

ARCHITECTURE
────────────
::

    ProcessDefinition
      ├── id, description
      ├── defaults    ── ProcessDefaults(timeout_seconds, max_retries, max_in_flight)
      └── steps[]     ── StepSpec
            ├── step_id
            ├── request           HandlerRequest.by_id / .by_capability
            ├── context_template  dict with ${step.path} references (None = initial context)
            ├── depends_on        completion-only dependencies
            ├── on_failure        ABORT | SKIP | CONTINUE
            └── timeout_seconds / max_retries  (override process defaults)

Structural checks (duplicates, unknown references, cycles) live in
``planner.plan_process`` and run before any handler is invoked.

Example::

    definition = ProcessDefinition(
        id="adr-flow",
        steps=[
            StepSpec("draft", HandlerRequest.by_capability("adr", "drafting"),
                     context_template={"title": "${input.title}"}),
            StepSpec("review", HandlerRequest.by_id("adr-reviewer"),
                     context_template={"adr": "${draft.adr}"},
                     on_failure=FailurePolicy.SKIP),
        ],
    )

Tags:
    skillweave, orchestration, process, steps, DAG

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from skillweave.orchestration.templates import find_references, referenced_steps
from skillweave.registry.resolver import HandlerRequest


class FailurePolicy(str, Enum):
    """What a step's failure does to the rest of the run."""

    ABORT = "abort"  # Run fails; unstarted descendants are skipped
    SKIP = "skip"  # Step skipped; only dependents on its output are skipped
    CONTINUE = "continue"  # Step failed with an empty placeholder output

    @classmethod
    def parse(cls, value: str | FailurePolicy) -> FailurePolicy:
        if isinstance(value, FailurePolicy):
            return value
        return cls(str(value).strip().lower())


@dataclass(frozen=True)
class ProcessDefaults:
    """Per-process settings inherited by every step."""

    timeout_seconds: float | None = None
    max_retries: int | None = None
    max_in_flight: int | None = None

    def __post_init__(self) -> None:
        if self.max_in_flight is not None and self.max_in_flight < 1:
            raise ValueError(f"max_in_flight must be at least 1, got {self.max_in_flight}")

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass(frozen=True)
class StepSpec:
    """One node in a process graph."""

    step_id: str
    request: HandlerRequest
    context_template: Any = None
    depends_on: tuple[str, ...] = ()
    on_failure: FailurePolicy = FailurePolicy.ABORT
    timeout_seconds: float | None = None
    max_retries: int | None = None
    description: str = ""

    def __post_init__(self) -> None:
        deps = self.depends_on
        if isinstance(deps, str):
            deps = (deps,)
        object.__setattr__(self, "depends_on", tuple(deps))
        object.__setattr__(self, "on_failure", FailurePolicy.parse(self.on_failure))

    @property
    def output_dependencies(self) -> list[str]:
        """Steps whose outputs this step's template references."""
        if self.context_template is None:
            return []
        return referenced_steps(self.context_template)

    @property
    def all_dependencies(self) -> list[str]:
        """``depends_on`` ∪ template references, declaration order first."""
        deps = list(self.depends_on)
        for step_id in self.output_dependencies:
            if step_id not in deps:
                deps.append(step_id)
        return deps

    def references(self):
        return find_references(self.context_template) if self.context_template is not None else []

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.step_id, **self.request.to_dict()}
        if self.description:
            data["description"] = self.description
        if self.context_template is not None:
            data["context"] = self.context_template
        if self.depends_on:
            data["depends_on"] = list(self.depends_on)
        if self.on_failure != FailurePolicy.ABORT:
            data["on_failure"] = self.on_failure.value
        if self.timeout_seconds is not None:
            data["timeout_seconds"] = self.timeout_seconds
        if self.max_retries is not None:
            data["max_retries"] = self.max_retries
        return data


@dataclass(frozen=True)
class ProcessDefinition:
    """A named, dependency-ordered set of steps."""

    id: str
    steps: tuple[StepSpec, ...]
    description: str = ""
    defaults: ProcessDefaults = field(default_factory=ProcessDefaults)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))

    def __hash__(self) -> int:
        return hash((self.id, tuple(s.step_id for s in self.steps)))

    def get_step(self, step_id: str) -> StepSpec | None:
        for step in self.steps:
            if step.step_id == step_id:
                return step
        return None

    def step_ids(self) -> list[str]:
        return [step.step_id for step in self.steps]

    def step_index(self, step_id: str) -> int:
        for i, step in enumerate(self.steps):
            if step.step_id == step_id:
                return i
        raise ValueError(f"Step not found: {step_id}")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "steps": [s.to_dict() for s in self.steps]}
        if self.description:
            data["description"] = self.description
        defaults = self.defaults.to_dict()
        if defaults:
            data["defaults"] = defaults
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data

    def __repr__(self) -> str:
        return f"ProcessDefinition(id={self.id!r}, steps={len(self.steps)})"


__all__ = [
    "FailurePolicy",
    "HandlerRequest",
    "ProcessDefaults",
    "ProcessDefinition",
    "StepSpec",
]
