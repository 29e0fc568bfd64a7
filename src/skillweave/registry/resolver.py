"""Resolver — turns a step's handler request into exactly one descriptor.

Resolution is by explicit id or by capability tags, never by prose.  When
several handlers satisfy a capability query equally well the resolver
refuses to pick one and raises :class:`AmbiguousCapabilityError`, so the
same registry content always yields the same outcome.

Tie-break for capability queries::

    candidates = descriptors whose capability_tags ⊇ query.tags
    (a) query.kind set and some candidates have it → keep only those
    (b) one candidate left                          → it wins
    (c) otherwise                                   → AmbiguousCapabilityError
    no candidates at all                            → NoCapabilityMatchError

Tags:
    skillweave, resolver, capability, registry
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from skillweave.core.errors import AmbiguousCapabilityError, NoCapabilityMatchError
from skillweave.core.logging import get_logger
from skillweave.registry.descriptor import HandlerDescriptor, HandlerKind
from skillweave.registry.handler_registry import HandlerRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class HandlerRequest:
    """What a step asks for: a concrete handler id or a capability query."""

    handler_id: str | None = None
    tags: frozenset[str] = frozenset()
    kind: HandlerKind | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", frozenset(self.tags))
        if self.kind is not None:
            object.__setattr__(self, "kind", HandlerKind.parse(self.kind))
        if self.handler_id is None and not self.tags:
            raise ValueError("HandlerRequest needs a handler_id or at least one tag")
        if self.handler_id is not None and self.tags:
            raise ValueError("HandlerRequest takes a handler_id or tags, not both")

    @classmethod
    def by_id(cls, handler_id: str) -> HandlerRequest:
        return cls(handler_id=handler_id)

    @classmethod
    def by_capability(
        cls, *tags: str, kind: HandlerKind | str | None = None
    ) -> HandlerRequest:
        return cls(tags=frozenset(tags), kind=kind)

    @property
    def is_capability_query(self) -> bool:
        return self.handler_id is None

    def describe(self) -> str:
        if self.handler_id is not None:
            return f"id={self.handler_id}"
        suffix = f" kind={self.kind.value}" if self.kind else ""
        return "tags=" + ",".join(sorted(self.tags)) + suffix

    def to_dict(self) -> dict:
        if self.handler_id is not None:
            return {"handler": self.handler_id}
        data: dict = {"capabilities": sorted(self.tags)}
        if self.kind is not None:
            data["kind"] = self.kind.value
        return data


class Resolver:
    """Resolves :class:`HandlerRequest` objects against a registry."""

    def __init__(self, registry: HandlerRegistry):
        self._registry = registry

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    def candidates(self, request: HandlerRequest) -> list[HandlerDescriptor]:
        """Every descriptor that satisfies ``request``, before tie-breaking."""
        if request.handler_id is not None:
            found = self._registry.get(request.handler_id)
            return [found] if found is not None else []
        return list(self._registry.lookup_by_capabilities(request.tags))

    def resolve(self, request: HandlerRequest) -> HandlerDescriptor:
        """Return the single descriptor selected for ``request``.

        Raises:
            HandlerNotFoundError: Id request for an unregistered handler.
            NoCapabilityMatchError: No descriptor declares all requested tags.
            AmbiguousCapabilityError: More than one equally valid descriptor.
        """
        if request.handler_id is not None:
            return self._registry.lookup_by_id(request.handler_id)

        matches = self.candidates(request)
        if not matches:
            raise NoCapabilityMatchError(
                request.tags, request.kind.value if request.kind else None
            )
        matches = _prefer_kind(matches, request.kind)
        if len(matches) > 1:
            raise AmbiguousCapabilityError(request.tags, [d.id for d in matches])

        chosen = matches[0]
        logger.debug("resolver.resolved", request=request.describe(), handler_id=chosen.id)
        return chosen


def _prefer_kind(
    matches: Iterable[HandlerDescriptor], kind: HandlerKind | None
) -> list[HandlerDescriptor]:
    matches = list(matches)
    if kind is None:
        return matches
    preferred = [d for d in matches if d.kind == kind]
    return preferred or matches


__all__ = ["HandlerRequest", "Resolver"]
