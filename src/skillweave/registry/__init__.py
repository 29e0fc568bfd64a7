"""
skillweave registry — descriptors, lookup and resolution.

MODULE MAP
──────────
1. descriptor.py        ─ HandlerDescriptor, HandlerKind
2. handler_registry.py  ─ copy-on-write HandlerRegistry
3. resolver.py          ─ HandlerRequest → one HandlerDescriptor
4. loader.py            ─ SKILL.md / AGENT.md front-matter loading
"""

from skillweave.registry.descriptor import HandlerDescriptor, HandlerKind
from skillweave.registry.handler_registry import (
    HandlerRegistry,
    get_default_registry,
    reset_default_registry,
)
from skillweave.registry.loader import (
    load_descriptor_file,
    load_descriptors,
    load_into_registry,
    parse_schema_stub,
)
from skillweave.registry.resolver import HandlerRequest, Resolver

__all__ = [
    "HandlerDescriptor",
    "HandlerKind",
    "HandlerRegistry",
    "get_default_registry",
    "reset_default_registry",
    "HandlerRequest",
    "Resolver",
    "load_descriptor_file",
    "load_descriptors",
    "load_into_registry",
    "parse_schema_stub",
]
