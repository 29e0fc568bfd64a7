"""Descriptor loader — SKILL.md / AGENT.md front-matter into descriptors.

Descriptor files are markdown with a YAML front-matter block.  Only the
front-matter is read; the markdown body is persona prose and stays out of
the core.

Front-matter shape::

    ---
    name: ADR Drafter
    description: Drafts architecture decision records.
    kind: skill                       # optional, derived from file name
    capabilities: [adr, drafting]
    target-processes: [architecture-review]
    related: [adr-reviewer]
    inputs:  "{ title: string, context?: string, options: string[] }"
    outputs: {type: object, required: [adr], properties: {adr: {type: string}}}
    metadata:
      id: adr-drafter                 # optional, derived from directory name
      domain: software-architecture
      specialization: decision-records
    ---

Layout conventions (used when id / kind / domain are missing)::

    .../domains/<domain>/<specialization>/skills/<id>/SKILL.md
    .../specializations/<specialization>/agents/<id>/AGENT.md

``*.handler.yaml`` files carry the same keys without the markdown wrapper.

Tags:
    skillweave, registry, loader, yaml, front-matter
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml

from skillweave.core.errors import InvalidDescriptorError, SchemaDefinitionError
from skillweave.core.logging import get_logger
from skillweave.registry.descriptor import OPEN_OBJECT_SCHEMA, HandlerDescriptor, HandlerKind
from skillweave.registry.handler_registry import HandlerRegistry

logger = get_logger(__name__)

DESCRIPTOR_FILENAMES = {"SKILL.md": HandlerKind.SKILL, "AGENT.md": HandlerKind.AGENT}
HANDLER_YAML_SUFFIX = ".handler.yaml"

_FRONT_MATTER = re.compile(r"\A---\s*\n(.*?)\n---\s*(?:\n|\Z)", re.DOTALL)

_STUB_TYPES = {
    "string": "string",
    "str": "string",
    "number": "number",
    "float": "number",
    "integer": "integer",
    "int": "integer",
    "boolean": "boolean",
    "bool": "boolean",
    "array": "array",
    "list": "array",
    "object": "object",
    "dict": "object",
    "null": "null",
}


# ---------------------------------------------------------------------------
# Schema stubs: "{ title: string, tags?: string[] }"
# ---------------------------------------------------------------------------


def _split_top_level(text: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in text:
        if char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    if current:
        parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def _stub_type(type_text: str) -> dict[str, Any]:
    type_text = type_text.strip()
    if type_text.startswith("{"):
        return parse_schema_stub(type_text)
    if type_text.endswith("[]"):
        return {"type": "array", "items": _stub_type(type_text[:-2])}
    mapped = _STUB_TYPES.get(type_text.lower())
    # Unknown names (Date, any, custom types) stay unconstrained
    return {"type": mapped} if mapped else {}


def parse_schema_stub(text: str) -> dict[str, Any]:
    """Parse the compact ``{ name: type, optional?: type }`` notation.

    Example:
        >>> parse_schema_stub("{ title: string, tags?: string[] }")
        {'type': 'object', 'properties': {'title': {'type': 'string'},
         'tags': {'type': 'array', 'items': {'type': 'string'}}}, 'required': ['title']}
    """
    body = text.strip()
    if not (body.startswith("{") and body.endswith("}")):
        raise SchemaDefinitionError([f"schema stub must be wrapped in braces: {text!r}"])
    body = body[1:-1].strip()

    properties: dict[str, Any] = {}
    required: list[str] = []
    for part in _split_top_level(body):
        name, sep, type_text = part.partition(":")
        if not sep:
            raise SchemaDefinitionError([f"expected 'name: type' in schema stub, got {part!r}"])
        name = name.strip()
        optional = name.endswith("?")
        name = name.rstrip("?").strip()
        properties[name] = _stub_type(type_text)
        if not optional:
            required.append(name)

    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _coerce_schema(value: Any, field_name: str, handler_id: str) -> dict[str, Any]:
    if value is None:
        return dict(OPEN_OBJECT_SCHEMA)
    if isinstance(value, str):
        try:
            return parse_schema_stub(value)
        except SchemaDefinitionError as e:
            raise InvalidDescriptorError(handler_id, [f"{field_name}: {p}" for p in e.problems]) from e
    if isinstance(value, Mapping):
        return dict(value)
    raise InvalidDescriptorError(
        handler_id, [f"{field_name} must be a schema mapping or stub string"]
    )


# ---------------------------------------------------------------------------
# Path conventions
# ---------------------------------------------------------------------------


def extract_domain_from_path(path: Path) -> str | None:
    parts = path.parts
    if "domains" in parts:
        index = parts.index("domains")
        if index + 1 < len(parts) - 1:
            return parts[index + 1]
    return None


def extract_specialization_from_path(path: Path) -> str | None:
    parts = path.parts
    if "domains" in parts:
        index = parts.index("domains")
        if index + 2 < len(parts) - 1 and parts[index + 2] not in ("agents", "skills"):
            return parts[index + 2]
    if "specializations" in parts:
        index = parts.index("specializations")
        if index + 1 < len(parts) - 1 and parts[index + 1] != "domains":
            return parts[index + 1]
    return None


def extract_id_from_path(path: Path) -> str:
    if path.name in DESCRIPTOR_FILENAMES:
        return path.parent.name
    if path.name.endswith(HANDLER_YAML_SUFFIX):
        return path.name[: -len(HANDLER_YAML_SUFFIX)]
    return path.stem


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Return ``(front_matter, body)``; raises ValueError when there is none."""
    text = text.lstrip("\ufeff")
    match = _FRONT_MATTER.match(text)
    if match is None:
        raise ValueError("missing YAML front-matter block")
    data = yaml.safe_load(match.group(1)) or {}
    if not isinstance(data, dict):
        raise ValueError("front-matter must be a mapping")
    return data, text[match.end():]


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v).strip() for v in value if str(v).strip()]


def descriptor_from_mapping(
    data: Mapping[str, Any],
    *,
    source: Path | None = None,
    default_kind: HandlerKind | None = None,
) -> HandlerDescriptor:
    """Build a descriptor from front-matter keys, filling gaps from ``source``."""
    metadata = dict(data.get("metadata") or {})
    handler_id = data.get("id") or metadata.get("id")
    if not handler_id and source is not None:
        handler_id = extract_id_from_path(source)
    handler_id = str(handler_id or "").strip()

    kind_value = data.get("kind") or default_kind
    if kind_value is None:
        raise InvalidDescriptorError(handler_id or "<unknown>", ["kind is required"])
    try:
        kind = HandlerKind.parse(kind_value)
    except ValueError as e:
        raise InvalidDescriptorError(handler_id or "<unknown>", [str(e)]) from e

    if source is not None:
        metadata.setdefault("source", str(source))
        domain = extract_domain_from_path(source)
        if domain and "domain" not in metadata:
            metadata["domain"] = domain
        specialization = extract_specialization_from_path(source)
        if specialization and "specialization" not in metadata:
            metadata["specialization"] = specialization
    metadata.pop("id", None)

    return HandlerDescriptor(
        id=handler_id,
        kind=kind,
        capability_tags=frozenset(_as_list(data.get("capabilities") or data.get("capability_tags"))),
        input_schema=_coerce_schema(data.get("inputs", data.get("input_schema")), "inputs", handler_id),
        output_schema=_coerce_schema(data.get("outputs", data.get("output_schema")), "outputs", handler_id),
        target_processes=frozenset(
            _as_list(data.get("target-processes") or data.get("target_processes"))
        ),
        related_handlers=tuple(_as_list(data.get("related") or data.get("related_handlers"))),
        name=str(data.get("name") or handler_id),
        description=str(data.get("description") or "").strip(),
        metadata=metadata,
    )


def load_descriptor_text(text: str, source: Path | None = None) -> HandlerDescriptor:
    """Parse descriptor text (front-matter markdown or a bare YAML mapping)."""
    default_kind = DESCRIPTOR_FILENAMES.get(source.name) if source is not None else None
    fallback_id = extract_id_from_path(source) if source is not None else "<unknown>"
    try:
        if text.lstrip("\ufeff").startswith("---"):
            data, _body = split_front_matter(text)
        else:
            data = yaml.safe_load(text) or {}
            if not isinstance(data, dict):
                raise ValueError("descriptor document must be a mapping")
    except (yaml.YAMLError, ValueError) as e:
        raise InvalidDescriptorError(fallback_id, [str(e)]) from e
    return descriptor_from_mapping(data, source=source, default_kind=default_kind)


def load_descriptor_file(path: str | Path) -> HandlerDescriptor:
    """Load one SKILL.md, AGENT.md or ``*.handler.yaml`` file."""
    path = Path(path)
    return load_descriptor_text(path.read_text(encoding="utf-8"), source=path)


def iter_descriptor_files(paths: Iterable[str | Path]) -> list[Path]:
    """Expand directories into descriptor files, sorted for stable ordering."""
    found: list[Path] = []
    for entry in paths:
        entry = Path(entry)
        if entry.is_dir():
            matches = [
                p
                for p in entry.rglob("*")
                if p.is_file()
                and (p.name in DESCRIPTOR_FILENAMES or p.name.endswith(HANDLER_YAML_SUFFIX))
            ]
            found.extend(sorted(matches))
        else:
            found.append(entry)
    return found


def load_descriptors(paths: Iterable[str | Path]) -> list[HandlerDescriptor]:
    """Load every descriptor under ``paths`` (files or directories)."""
    descriptors = []
    for path in iter_descriptor_files(paths):
        descriptors.append(load_descriptor_file(path))
    logger.debug("loader.loaded", count=len(descriptors))
    return descriptors


def load_into_registry(
    registry: HandlerRegistry, paths: Iterable[str | Path]
) -> list[HandlerDescriptor]:
    """Load descriptors and register them; returns what was registered."""
    descriptors = load_descriptors(paths)
    registry.register_all(descriptors)
    logger.info("registry.loaded", handlers=len(descriptors), total=len(registry))
    return descriptors


__all__ = [
    "parse_schema_stub",
    "split_front_matter",
    "descriptor_from_mapping",
    "load_descriptor_text",
    "load_descriptor_file",
    "load_descriptors",
    "load_into_registry",
    "iter_descriptor_files",
]
