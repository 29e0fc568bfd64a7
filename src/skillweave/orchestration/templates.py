"""Context templates — wiring earlier step outputs into a later step's input.

A context template is plain data (dicts, lists, scalars).  Any string leaf
that is *exactly* a reference is replaced by the referenced value; every
other leaf is copied verbatim.  There is no string interpolation, so the
substituted value keeps its type and can be checked against the target
handler's input schema.

Reference syntax::

    ${input}                       the run's initial context
    ${input.title}                 a field of the initial context
    ${draft}                       the whole output of step "draft"
    ${draft.sections[0].heading}   nested fields and list indexes
    ${review.comments.2}           numeric segments index lists too

Examples:
    >>> template = {"title": "${input.title}", "draft": "${draft.text}", "mode": "strict"}
    >>> [ref.step_id for ref in find_references(template)]
    ['input', 'draft']

Tags:
    skillweave, orchestration, templates, substitution
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

#: Reserved reference root for the initial run context.
INPUT_ROOT = "input"

_REFERENCE = re.compile(r"^\$\{\s*([^}\s]+)\s*\}$")
_SEGMENT = re.compile(r"([^.\[\]]+)|\[(\d+)\]")


class _Absent:
    """Marker for a reference that resolved to nothing."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


@dataclass(frozen=True)
class TemplateRef:
    """A parsed ``${step_id.path}`` reference."""

    step_id: str
    path: tuple[str | int, ...] = ()
    raw: str = ""

    @property
    def is_input(self) -> bool:
        return self.step_id == INPUT_ROOT

    def __str__(self) -> str:
        return self.raw or self.step_id


def parse_reference(value: Any) -> TemplateRef | None:
    """Return a :class:`TemplateRef` when ``value`` is a whole-string reference."""
    if not isinstance(value, str):
        return None
    match = _REFERENCE.match(value.strip())
    if match is None:
        return None
    expression = match.group(1)
    segments: list[str | int] = []
    position = 0
    for part in _SEGMENT.finditer(expression):
        between = expression[position : part.start()]
        if between not in ("", "."):
            return None
        name, index = part.groups()
        if index is not None:
            segments.append(int(index))
        elif name.isdigit():
            segments.append(int(name))
        else:
            segments.append(name)
        position = part.end()
    if position != len(expression) or not segments or not isinstance(segments[0], str):
        return None
    return TemplateRef(step_id=segments[0], path=tuple(segments[1:]), raw=expression)


def find_references(template: Any) -> list[TemplateRef]:
    """All references in ``template``, in first-seen order, without duplicates."""
    found: list[TemplateRef] = []
    seen: set[TemplateRef] = set()

    def walk(node: Any) -> None:
        ref = parse_reference(node)
        if ref is not None:
            if ref not in seen:
                seen.add(ref)
                found.append(ref)
        elif isinstance(node, Mapping):
            for value in node.values():
                walk(value)
        elif isinstance(node, (list, tuple)):
            for item in node:
                walk(item)

    walk(template)
    return found


def referenced_steps(template: Any) -> list[str]:
    """Step ids referenced by ``template`` (``input`` excluded), first-seen order."""
    steps: list[str] = []
    for ref in find_references(template):
        if not ref.is_input and ref.step_id not in steps:
            steps.append(ref.step_id)
    return steps


def walk_path(value: Any, path: tuple[str | int, ...]) -> Any:
    """Follow ``path`` into ``value``; returns :data:`ABSENT` when it leads nowhere."""
    current = value
    for segment in path:
        if isinstance(current, Mapping):
            key = segment if segment in current else str(segment)
            if key not in current:
                return ABSENT
            current = current[key]
        elif isinstance(current, (list, tuple)) and isinstance(segment, int):
            if segment >= len(current):
                return ABSENT
            current = current[segment]
        else:
            return ABSENT
    return current


def substitute(template: Any, resolve: Callable[[TemplateRef], Any]) -> Any:
    """Return a new structure with every reference replaced via ``resolve``.

    ``resolve`` returns the referenced value, :data:`ABSENT` to drop the
    field (object members are removed, list items become ``None``), or
    raises ``TemplateResolutionError``.  The template is never mutated.
    """
    ref = parse_reference(template)
    if ref is not None:
        return resolve(ref)
    if isinstance(template, Mapping):
        result = {}
        for key, value in template.items():
            resolved = substitute(value, resolve)
            if resolved is not ABSENT:
                result[key] = resolved
        return result
    if isinstance(template, (list, tuple)):
        items = [substitute(item, resolve) for item in template]
        return [None if item is ABSENT else item for item in items]
    return template


__all__ = [
    "ABSENT",
    "INPUT_ROOT",
    "TemplateRef",
    "parse_reference",
    "find_references",
    "referenced_steps",
    "walk_path",
    "substitute",
]
