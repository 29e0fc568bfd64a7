"""Handler Registry — the indexed, concurrency-safe set of descriptors.

Manifesto:
Many process runs read the registry at once while descriptors are loaded
or replaced in the background.  Writers are serialized by a lock and
publish a brand-new immutable snapshot; readers grab whichever snapshot
is current and never see a half-applied registration.  A failed write
leaves the published snapshot untouched.

ARCHITECTURE
────────────
::

    HandlerRegistry
      ├── .register(descriptor)           ─ add (DuplicateIdError / InvalidDescriptorError)
      ├── .replace(descriptor)            ─ whole-descriptor update, kind is fixed
      ├── .unregister(id)                 ─ idempotent removal
      ├── .lookup_by_id(id)               ─ descriptor or HandlerNotFoundError
      ├── .get(id)                        ─ descriptor or None
      ├── .lookup_by_capability(tag)      ─ registration order
      ├── .lookup_by_process(process_id)  ─ descriptors targeting a process
      └── .stats()                        ─ counts per kind / tag

    _Snapshot (immutable, swapped atomically under the write lock)
      by_id   : id  → descriptor   (insertion ordered)
      by_tag  : tag → (id, ...)    (registration order)

    get_default_registry()     ─ module-level singleton
    reset_default_registry()   ─ clear for testing

Related modules:
    descriptor.py — HandlerDescriptor
    resolver.py   — request → descriptor
    loader.py     — descriptor files → register()

Tags:
    skillweave, registry, copy-on-write, thread-safety

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from skillweave.core.errors import (
    DuplicateIdError,
    HandlerNotFoundError,
    InvalidDescriptorError,
    KindChangeError,
)
from skillweave.core.logging import get_logger
from skillweave.registry.descriptor import HandlerDescriptor, HandlerKind

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Snapshot:
    by_id: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))
    by_tag: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def build(cls, descriptors: Iterable[HandlerDescriptor]) -> _Snapshot:
        by_id: dict[str, HandlerDescriptor] = {}
        by_tag: dict[str, list[str]] = {}
        for descriptor in descriptors:
            by_id[descriptor.id] = descriptor
            for tag in sorted(descriptor.capability_tags):
                by_tag.setdefault(tag, []).append(descriptor.id)
        return cls(
            by_id=MappingProxyType(by_id),
            by_tag=MappingProxyType({t: tuple(ids) for t, ids in by_tag.items()}),
        )


class HandlerRegistry:
    """Injectable, thread-safe registry of handler descriptors.

    Example:
        >>> registry = HandlerRegistry()
        >>> registry.register(drafter)
        >>> registry.lookup_by_id("adr-drafter") is drafter
        True
        >>> [d.id for d in registry.lookup_by_capability("drafting")]
        ['adr-drafter']
    """

    def __init__(self, descriptors: Iterable[HandlerDescriptor] = ()):
        self._lock = threading.Lock()
        self._snapshot = _Snapshot()
        for descriptor in descriptors:
            self.register(descriptor)

    # ── Writes ───────────────────────────────────────────────────

    def register(self, descriptor: HandlerDescriptor) -> None:
        """Add a descriptor.

        Raises:
            InvalidDescriptorError: Malformed schemas, empty capability tags or id.
            DuplicateIdError: A descriptor with the same id is already registered.
        """
        problems = descriptor.problems()
        if problems:
            raise InvalidDescriptorError(descriptor.id, problems)

        with self._lock:
            current = self._snapshot
            if descriptor.id in current.by_id:
                raise DuplicateIdError(descriptor.id)
            self._snapshot = _Snapshot.build([*current.by_id.values(), descriptor])

        logger.debug(
            "registry.registered",
            handler_id=descriptor.id,
            kind=descriptor.kind.value,
            tags=sorted(descriptor.capability_tags),
        )

    def register_all(self, descriptors: Iterable[HandlerDescriptor]) -> int:
        """Register several descriptors; stops at the first failure."""
        count = 0
        for descriptor in descriptors:
            self.register(descriptor)
            count += 1
        return count

    def replace(self, descriptor: HandlerDescriptor) -> HandlerDescriptor:
        """Swap in a new version of an existing descriptor.

        The registration position is kept, so capability lookups keep
        their order.  Returns the previous descriptor.

        Raises:
            HandlerNotFoundError: No descriptor with that id.
            KindChangeError: The new descriptor declares a different kind.
            InvalidDescriptorError: The new descriptor is malformed.
        """
        problems = descriptor.problems()
        if problems:
            raise InvalidDescriptorError(descriptor.id, problems)

        with self._lock:
            current = self._snapshot
            previous = current.by_id.get(descriptor.id)
            if previous is None:
                raise HandlerNotFoundError(descriptor.id)
            if previous.kind != descriptor.kind:
                raise KindChangeError(
                    descriptor.id, previous.kind.value, descriptor.kind.value
                )
            self._snapshot = _Snapshot.build(
                descriptor if d.id == descriptor.id else d
                for d in current.by_id.values()
            )

        logger.debug("registry.replaced", handler_id=descriptor.id)
        return previous

    def unregister(self, handler_id: str) -> bool:
        """Remove a descriptor. Returns False when it was not registered."""
        with self._lock:
            current = self._snapshot
            if handler_id not in current.by_id:
                return False
            self._snapshot = _Snapshot.build(
                d for d in current.by_id.values() if d.id != handler_id
            )

        logger.debug("registry.unregistered", handler_id=handler_id)
        return True

    def clear(self) -> None:
        """Remove all descriptors."""
        with self._lock:
            self._snapshot = _Snapshot()

    # ── Reads (lock-free, against the current snapshot) ──────────

    def lookup_by_id(self, handler_id: str) -> HandlerDescriptor:
        """Return the descriptor for ``handler_id``.

        Raises:
            HandlerNotFoundError: If it is not registered.
        """
        descriptor = self._snapshot.by_id.get(handler_id)
        if descriptor is None:
            raise HandlerNotFoundError(handler_id)
        return descriptor

    def get(self, handler_id: str) -> HandlerDescriptor | None:
        return self._snapshot.by_id.get(handler_id)

    def lookup_by_capability(self, tag: str) -> tuple[HandlerDescriptor, ...]:
        """All descriptors declaring ``tag``, in registration order."""
        snapshot = self._snapshot
        return tuple(snapshot.by_id[i] for i in snapshot.by_tag.get(tag, ()))

    def lookup_by_capabilities(self, tags: Iterable[str]) -> tuple[HandlerDescriptor, ...]:
        """All descriptors declaring every tag in ``tags``, in registration order."""
        wanted = frozenset(tags)
        snapshot = self._snapshot
        return tuple(d for d in snapshot.by_id.values() if d.has_capabilities(wanted))

    def lookup_by_process(self, process_id: str) -> tuple[HandlerDescriptor, ...]:
        """All descriptors listing ``process_id`` among their target processes."""
        return tuple(
            d for d in self._snapshot.by_id.values() if process_id in d.target_processes
        )

    def ids(self) -> list[str]:
        return list(self._snapshot.by_id)

    def descriptors(self, kind: HandlerKind | None = None) -> list[HandlerDescriptor]:
        values = self._snapshot.by_id.values()
        if kind is None:
            return list(values)
        return [d for d in values if d.kind == kind]

    def tags(self) -> list[str]:
        return sorted(self._snapshot.by_tag)

    def stats(self) -> dict[str, Any]:
        """Counts for dashboards and the CLI."""
        snapshot = self._snapshot
        by_kind = {k.value: 0 for k in HandlerKind}
        for descriptor in snapshot.by_id.values():
            by_kind[descriptor.kind.value] += 1
        return {
            "total": len(snapshot.by_id),
            "by_kind": by_kind,
            "tags": len(snapshot.by_tag),
            "shared_tags": sorted(t for t, ids in snapshot.by_tag.items() if len(ids) > 1),
        }

    def __len__(self) -> int:
        return len(self._snapshot.by_id)

    def __contains__(self, handler_id: object) -> bool:
        return handler_id in self._snapshot.by_id

    def __iter__(self):
        return iter(self._snapshot.by_id.values())

    def __repr__(self) -> str:
        return f"HandlerRegistry(handlers={len(self)})"


# =============================================================================
# Global registry (singleton)
# =============================================================================

_default_registry: HandlerRegistry | None = None
_default_lock = threading.Lock()


def get_default_registry() -> HandlerRegistry:
    """Get the process-wide default registry."""
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            _default_registry = HandlerRegistry()
        return _default_registry


def reset_default_registry() -> None:
    """Drop the default registry (for testing)."""
    global _default_registry
    with _default_lock:
        _default_registry = None


__all__ = ["HandlerRegistry", "get_default_registry", "reset_default_registry"]
