"""Handler descriptors — the declarative record behind every skill and agent.

A descriptor is pure data: identity, capability tags, contract schemas and
advisory cross-references.  Persona prose (``name``, ``description``,
``metadata``) is informational and never consulted by the resolver.

Examples:
    >>> d = HandlerDescriptor(
    ...     id="adr-drafter",
    ...     kind=HandlerKind.SKILL,
    ...     capability_tags=frozenset({"adr", "drafting"}),
    ... )
    >>> d.has_capabilities(["adr"])
    True

Tags:
    skillweave, registry, descriptor, skill, agent
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from skillweave.schema.validator import check_schema

#: Schema that accepts any object; used when a descriptor declares no contract.
OPEN_OBJECT_SCHEMA: dict[str, Any] = {"type": "object"}


class HandlerKind(str, Enum):
    """The two flavours of handler a descriptor can declare."""

    SKILL = "skill"
    AGENT = "agent"

    @classmethod
    def parse(cls, value: str | HandlerKind) -> HandlerKind:
        if isinstance(value, HandlerKind):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"unknown handler kind: {value!r}") from None


@dataclass(frozen=True)
class HandlerDescriptor:
    """Immutable description of one skill or agent.

    Attributes:
        id: Unique identifier across the registry.
        kind: ``SKILL`` or ``AGENT``; fixed once registered.
        capability_tags: Tags the resolver matches capability queries against.
        input_schema: Contract for the context payload.
        output_schema: Contract for the handler result.
        target_processes: Process ids this handler is meant for (discovery only).
        related_handlers: Advisory cross-references; never used for substitution.
        name: Human-readable display name.
        description: Persona prose, documentation only.
        metadata: Free-form origin data (domain, specialization, source file).
    """

    id: str
    kind: HandlerKind
    capability_tags: frozenset[str]
    input_schema: Mapping[str, Any] = field(default_factory=lambda: dict(OPEN_OBJECT_SCHEMA))
    output_schema: Mapping[str, Any] = field(default_factory=lambda: dict(OPEN_OBJECT_SCHEMA))
    target_processes: frozenset[str] = frozenset()
    related_handlers: tuple[str, ...] = ()
    name: str = ""
    description: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Normalize loose inputs so equality and hashing of the set fields hold
        object.__setattr__(self, "kind", HandlerKind.parse(self.kind))
        object.__setattr__(self, "capability_tags", frozenset(self.capability_tags))
        object.__setattr__(self, "target_processes", frozenset(self.target_processes))
        object.__setattr__(self, "related_handlers", tuple(self.related_handlers))

    def __hash__(self) -> int:
        return hash((self.id, self.kind))

    def has_capabilities(self, tags: Iterable[str]) -> bool:
        """True when this descriptor declares every tag in ``tags``."""
        return self.capability_tags.issuperset(tags)

    def problems(self) -> list[str]:
        """Self-validation problems; empty when the descriptor is registrable."""
        problems: list[str] = []
        if not self.id or not self.id.strip():
            problems.append("id must be a non-empty string")
        if not self.capability_tags:
            problems.append("capability_tags must not be empty")
        elif any(not isinstance(t, str) or not t.strip() for t in self.capability_tags):
            problems.append("capability tags must be non-empty strings")
        problems.extend(f"input_schema {p}" for p in check_schema(self.input_schema))
        problems.extend(f"output_schema {p}" for p in check_schema(self.output_schema))
        if self.id in self.related_handlers:
            problems.append("a handler cannot list itself as related")
        return problems

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "description": self.description,
            "capability_tags": sorted(self.capability_tags),
            "input_schema": dict(self.input_schema),
            "output_schema": dict(self.output_schema),
            "target_processes": sorted(self.target_processes),
            "related_handlers": list(self.related_handlers),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HandlerDescriptor:
        return cls(
            id=data["id"],
            kind=HandlerKind.parse(data["kind"]),
            capability_tags=frozenset(data.get("capability_tags", ())),
            input_schema=data.get("input_schema") or dict(OPEN_OBJECT_SCHEMA),
            output_schema=data.get("output_schema") or dict(OPEN_OBJECT_SCHEMA),
            target_processes=frozenset(data.get("target_processes", ())),
            related_handlers=tuple(data.get("related_handlers", ())),
            name=data.get("name", ""),
            description=data.get("description", ""),
            metadata=dict(data.get("metadata") or {}),
        )


__all__ = ["HandlerKind", "HandlerDescriptor", "OPEN_OBJECT_SCHEMA"]
