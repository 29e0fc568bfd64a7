"""Process planning — structural validation and topological levels.

``plan_process`` is run at the start of every run and by the CLI.  It
either returns a :class:`ProcessPlan` or raises a
:class:`~skillweave.core.errors.ProcessStructureError` before any handler
is invoked.

Checks, in order::

    1. duplicate step ids                    → DuplicateStepError
    2. reserved step id "input"              → ProcessStructureError
    3. unknown depends_on / template targets → UnknownStepReferenceError
    4. self references                       → CyclicDependencyError
    5. forward template reference without
       an explicit depends_on entry          → ForwardStepReferenceError
    6. cycles (Kahn's algorithm)             → CyclicDependencyError

Levels group steps that can run concurrently once earlier levels settle::

    draft ──► review ──► publish
      └─────► lint ─────┘

    levels = [["draft"], ["review", "lint"], ["publish"]]
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from skillweave.core.errors import (
    CyclicDependencyError,
    DuplicateStepError,
    ForwardStepReferenceError,
    ProcessStructureError,
    ResolutionError,
    UnknownStepReferenceError,
)
from skillweave.orchestration.process import ProcessDefinition
from skillweave.orchestration.templates import INPUT_ROOT
from skillweave.registry.resolver import Resolver


@dataclass(frozen=True)
class ProcessPlan:
    """Validated dependency structure of a process.

    Attributes:
        process_id: Process the plan belongs to.
        order: Topological order, ties broken by declaration order.
        levels: Steps grouped by longest-path depth.
        dependencies: step → every step it waits for.
        output_dependencies: step → steps whose outputs it references.
        dependents: step → steps waiting for it.
    """

    process_id: str
    order: tuple[str, ...]
    levels: tuple[tuple[str, ...], ...]
    dependencies: dict[str, tuple[str, ...]]
    output_dependencies: dict[str, tuple[str, ...]]
    dependents: dict[str, tuple[str, ...]]

    def roots(self) -> list[str]:
        return [s for s in self.order if not self.dependencies[s]]

    def descendants(self, step_id: str) -> list[str]:
        """Every step transitively waiting for ``step_id``, in plan order."""
        seen: set[str] = set()
        stack = list(self.dependents.get(step_id, ()))
        while stack:
            current = stack.pop()
            if current not in seen:
                seen.add(current)
                stack.extend(self.dependents.get(current, ()))
        return [s for s in self.order if s in seen]

    def to_dict(self) -> dict[str, Any]:
        return {
            "process_id": self.process_id,
            "order": list(self.order),
            "levels": [list(level) for level in self.levels],
            "dependencies": {k: list(v) for k, v in self.dependencies.items()},
            "output_dependencies": {k: list(v) for k, v in self.output_dependencies.items()},
        }


def _find_cycle(remaining: list[str], dependencies: dict[str, tuple[str, ...]]) -> list[str]:
    """Return one cycle among ``remaining`` as ``[a, b, ..., a]``."""
    candidates = set(remaining)
    for start in remaining:
        path: list[str] = []
        on_path: set[str] = set()
        current = start
        while current not in on_path:
            path.append(current)
            on_path.add(current)
            nxt = next((d for d in dependencies[current] if d in candidates), None)
            if nxt is None:
                break
            current = nxt
        else:
            cycle = path[path.index(current):] + [current]
            cycle.reverse()
            return cycle
    return remaining + remaining[:1]


def plan_process(definition: ProcessDefinition) -> ProcessPlan:
    """Validate ``definition`` and compute its execution structure.

    Raises:
        ProcessStructureError: Any structural problem, see module docstring.
    """
    pid = definition.id
    index: dict[str, int] = {}
    for i, step in enumerate(definition.steps):
        if step.step_id in index:
            raise DuplicateStepError(step.step_id, process_id=pid)
        if step.step_id == INPUT_ROOT:
            raise ProcessStructureError(
                f"Step id '{INPUT_ROOT}' is reserved for the initial context", process_id=pid
            )
        index[step.step_id] = i

    dependencies: dict[str, tuple[str, ...]] = {}
    output_dependencies: dict[str, tuple[str, ...]] = {}
    for step in definition.steps:
        referenced = step.output_dependencies
        missing = [d for d in [*step.depends_on, *referenced] if d not in index]
        if missing:
            raise UnknownStepReferenceError(step.step_id, sorted(set(missing)), process_id=pid)
        if step.step_id in step.depends_on or step.step_id in referenced:
            raise CyclicDependencyError([step.step_id, step.step_id], process_id=pid)
        for target in referenced:
            if index[target] > index[step.step_id] and target not in step.depends_on:
                raise ForwardStepReferenceError(step.step_id, target, process_id=pid)
        dependencies[step.step_id] = tuple(step.all_dependencies)
        output_dependencies[step.step_id] = tuple(referenced)

    dependents: dict[str, list[str]] = defaultdict(list)
    for step_id, deps in dependencies.items():
        for dep in deps:
            dependents[dep].append(step_id)

    # Kahn's algorithm, ready set ordered by declaration
    in_degree = {step_id: len(deps) for step_id, deps in dependencies.items()}
    depth: dict[str, int] = {}
    ready = sorted((s for s, d in in_degree.items() if d == 0), key=index.__getitem__)
    order: list[str] = []
    while ready:
        node = ready.pop(0)
        order.append(node)
        depth[node] = max((depth[d] + 1 for d in dependencies[node]), default=0)
        for child in dependents[node]:
            in_degree[child] -= 1
            if in_degree[child] == 0:
                ready.append(child)
                ready.sort(key=index.__getitem__)

    if len(order) != len(definition.steps):
        remaining = [s.step_id for s in definition.steps if s.step_id not in depth]
        raise CyclicDependencyError(_find_cycle(remaining, dependencies), process_id=pid)

    levels: dict[int, list[str]] = defaultdict(list)
    for step_id in order:
        levels[depth[step_id]].append(step_id)

    return ProcessPlan(
        process_id=pid,
        order=tuple(order),
        levels=tuple(tuple(sorted(levels[d], key=index.__getitem__)) for d in sorted(levels)),
        dependencies=dependencies,
        output_dependencies=output_dependencies,
        dependents={k: tuple(v) for k, v in dependents.items()},
    )


def resolution_report(definition: ProcessDefinition, resolver: Resolver) -> dict[str, dict[str, Any]]:
    """Resolve every step's request without running anything.

    Returns ``{step_id: {"handler_id": ...}}`` or ``{step_id: {"error": {...}}}``.
    Resolution at run time may differ if the registry changes in between.
    """
    report: dict[str, dict[str, Any]] = {}
    for step in definition.steps:
        try:
            report[step.step_id] = {"handler_id": resolver.resolve(step.request).id}
        except ResolutionError as e:
            report[step.step_id] = {"error": e.to_dict()}
    return report


__all__ = ["ProcessPlan", "plan_process", "resolution_report"]
