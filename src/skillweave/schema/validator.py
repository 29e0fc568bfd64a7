"""Schema Validator — checks values against handler contract schemas.

Manifesto:
Every value that crosses an invocation boundary is checked against a
declared schema: the context going into a handler and the result coming
out of it.  Validation is a pure function that *reports* problems as data;
it never raises for a malformed value.  Only a malformed *schema* is an
error, and that is caught when a descriptor is registered.

ARCHITECTURE
────────────
::

    validate(schema, value)   → ValidationResult(violations=(...))
    check_schema(schema)      → list[str] of well-formedness problems
    ensure_schema(schema)     → raises SchemaDefinitionError

    Violation        ── path ("$.reviewers[1].email") + reason + message
    ViolationReason  ── MissingRequired, TypeMismatch, EnumViolation,
                        OutOfRange, UnexpectedField

Supported keywords (JSON-Schema shaped dicts)::

    type                 object | array | string | number | integer | boolean | null
                         (or a list of those)
    properties/required  object fields, nested to any depth
    additionalProperties false closes an object; a schema validates extras
    closed               alias for additionalProperties: false
    items                schema applied to every array element
    enum                 allowed literal values
    minimum/maximum, exclusiveMinimum/exclusiveMaximum
    minLength/maxLength, minItems/maxItems
    nullable             accept None in addition to the declared type

Example::

    schema = {
        "type": "object",
        "required": ["decision"],
        "properties": {
            "decision": {"type": "string", "minLength": 1},
            "priority": {"type": "string", "enum": ["low", "high"]},
        },
    }
    result = validate(schema, {"priority": "urgent"})
    result.ok                       # False
    [str(v) for v in result.violations]
    # ['$.decision: MissingRequired (required field is missing)',
    #  "$.priority: EnumViolation (value 'urgent' not in ['low', 'high'])"]

Tags:
    skillweave, schema, validation, contracts

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from skillweave.core.errors import SchemaDefinitionError

SCHEMA_TYPES = frozenset(
    {"object", "array", "string", "number", "integer", "boolean", "null"}
)

_NUMERIC_BOUNDS = ("minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum")
_COUNT_BOUNDS = ("minLength", "maxLength", "minItems", "maxItems")


class ViolationReason(str, Enum):
    """Why a value failed validation."""

    MISSING_REQUIRED = "MissingRequired"
    TYPE_MISMATCH = "TypeMismatch"
    ENUM_VIOLATION = "EnumViolation"
    OUT_OF_RANGE = "OutOfRange"
    UNEXPECTED_FIELD = "UnexpectedField"


@dataclass(frozen=True)
class Violation:
    """A single validation finding.

    Attributes:
        path: Field path from the root (``$`` is the root value).
        reason: Machine-readable reason.
        message: Human-readable detail.
    """

    path: str
    reason: ViolationReason
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "reason": self.reason.value, "message": self.message}

    def __str__(self) -> str:
        detail = f" ({self.message})" if self.message else ""
        return f"{self.path}: {self.reason.value}{detail}"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one value; empty ``violations`` means success."""

    violations: tuple[Violation, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.violations

    def __bool__(self) -> bool:
        return self.ok

    def paths(self) -> list[str]:
        return [v.path for v in self.violations]

    def by_reason(self, reason: ViolationReason) -> list[Violation]:
        return [v for v in self.violations if v.reason == reason]


# ---------------------------------------------------------------------------
# Value validation
# ---------------------------------------------------------------------------


def json_type(value: Any) -> str:
    """Return the schema type name of a Python value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return f"<{type(value).__name__}>"


def _matches_type(expected: str, actual: str) -> bool:
    if expected == actual:
        return True
    # integers are numbers
    return expected == "number" and actual == "integer"


def _declared_types(schema: Mapping[str, Any]) -> list[str] | None:
    declared = schema.get("type")
    if declared is None:
        if "properties" in schema or "required" in schema:
            return ["object"]
        if "items" in schema:
            return ["array"]
        return None
    if isinstance(declared, str):
        return [declared]
    return list(declared)


def _enum_contains(options: list[Any], value: Any) -> bool:
    # True == 1 in Python; compare schema types too
    actual = json_type(value)
    numeric = {"integer", "number"}
    for option in options:
        kind = json_type(option)
        if option == value and (kind == actual or {kind, actual} <= numeric):
            return True
    return False


def _is_closed(schema: Mapping[str, Any]) -> bool:
    return schema.get("closed") is True or schema.get("additionalProperties") is False


def _walk(schema: Mapping[str, Any], value: Any, path: str, out: list[Violation]) -> None:
    actual = json_type(value)

    if value is None and schema.get("nullable") is True:
        return

    types = _declared_types(schema)
    if types is not None and not any(_matches_type(t, actual) for t in types):
        out.append(
            Violation(
                path,
                ViolationReason.TYPE_MISMATCH,
                f"expected {' | '.join(types)}, got {actual}",
            )
        )
        return

    if "enum" in schema and not _enum_contains(schema["enum"], value):
        out.append(
            Violation(
                path,
                ViolationReason.ENUM_VIOLATION,
                f"value {value!r} not in {schema['enum']!r}",
            )
        )

    if actual in ("integer", "number"):
        _check_numeric_range(schema, value, path, out)
    elif actual == "string":
        _check_count(schema, len(value), "minLength", "maxLength", "length", path, out)
    elif actual == "array":
        _check_count(schema, len(value), "minItems", "maxItems", "item count", path, out)
        item_schema = schema.get("items")
        if isinstance(item_schema, Mapping):
            for index, item in enumerate(value):
                _walk(item_schema, item, f"{path}[{index}]", out)
    elif actual == "object":
        _walk_object(schema, value, path, out)


def _walk_object(
    schema: Mapping[str, Any], value: Mapping[str, Any], path: str, out: list[Violation]
) -> None:
    properties: Mapping[str, Any] = schema.get("properties") or {}

    for name in schema.get("required") or ():
        if name not in value:
            out.append(
                Violation(
                    f"{path}.{name}",
                    ViolationReason.MISSING_REQUIRED,
                    "required field is missing",
                )
            )

    extras = schema.get("additionalProperties")
    closed = _is_closed(schema)
    for name, field_value in value.items():
        field_path = f"{path}.{name}"
        if name in properties:
            _walk(properties[name], field_value, field_path, out)
        elif closed:
            out.append(
                Violation(field_path, ViolationReason.UNEXPECTED_FIELD, "object is closed")
            )
        elif isinstance(extras, Mapping):
            _walk(extras, field_value, field_path, out)


def _check_numeric_range(
    schema: Mapping[str, Any], value: float, path: str, out: list[Violation]
) -> None:
    problems = []
    if "minimum" in schema and value < schema["minimum"]:
        problems.append(f"{value} < minimum {schema['minimum']}")
    if "maximum" in schema and value > schema["maximum"]:
        problems.append(f"{value} > maximum {schema['maximum']}")
    if "exclusiveMinimum" in schema and value <= schema["exclusiveMinimum"]:
        problems.append(f"{value} <= exclusiveMinimum {schema['exclusiveMinimum']}")
    if "exclusiveMaximum" in schema and value >= schema["exclusiveMaximum"]:
        problems.append(f"{value} >= exclusiveMaximum {schema['exclusiveMaximum']}")
    for problem in problems:
        out.append(Violation(path, ViolationReason.OUT_OF_RANGE, problem))


def _check_count(
    schema: Mapping[str, Any],
    count: int,
    low_key: str,
    high_key: str,
    label: str,
    path: str,
    out: list[Violation],
) -> None:
    if low_key in schema and count < schema[low_key]:
        out.append(
            Violation(path, ViolationReason.OUT_OF_RANGE, f"{label} {count} < {low_key} {schema[low_key]}")
        )
    if high_key in schema and count > schema[high_key]:
        out.append(
            Violation(path, ViolationReason.OUT_OF_RANGE, f"{label} {count} > {high_key} {schema[high_key]}")
        )


def validate(schema: Mapping[str, Any], value: Any) -> ValidationResult:
    """Validate ``value`` against ``schema``.

    The schema is assumed well-formed (see :func:`ensure_schema`); the
    value may be anything.  Never raises for malformed values.
    """
    violations: list[Violation] = []
    _walk(schema, value, "$", violations)
    return ValidationResult(tuple(violations))


# ---------------------------------------------------------------------------
# Schema well-formedness
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check(schema: Any, path: str, problems: list[str]) -> None:
    if not isinstance(schema, Mapping):
        problems.append(f"{path}: schema must be a mapping, got {json_type(schema)}")
        return

    declared = schema.get("type")
    if declared is not None:
        names = [declared] if isinstance(declared, str) else declared
        if not isinstance(names, list) or not names:
            problems.append(f"{path}: 'type' must be a string or non-empty list")
        else:
            for name in names:
                if name not in SCHEMA_TYPES:
                    problems.append(f"{path}: unknown type {name!r}")

    properties = schema.get("properties")
    if properties is not None:
        if not isinstance(properties, Mapping):
            problems.append(f"{path}: 'properties' must be a mapping")
        else:
            for name, sub in properties.items():
                _check(sub, f"{path}.{name}", problems)

    required = schema.get("required")
    if required is not None and (
        not isinstance(required, list) or not all(isinstance(r, str) for r in required)
    ):
        problems.append(f"{path}: 'required' must be a list of field names")

    extras = schema.get("additionalProperties")
    if extras is not None and not isinstance(extras, bool):
        _check(extras, f"{path}.<additional>", problems)

    for flag in ("closed", "nullable"):
        if flag in schema and not isinstance(schema[flag], bool):
            problems.append(f"{path}: '{flag}' must be a boolean")

    if "items" in schema:
        _check(schema["items"], f"{path}[]", problems)

    if "enum" in schema and (not isinstance(schema["enum"], list) or not schema["enum"]):
        problems.append(f"{path}: 'enum' must be a non-empty list")

    for key in _NUMERIC_BOUNDS:
        if key in schema and not _is_number(schema[key]):
            problems.append(f"{path}: '{key}' must be a number")
    if (
        _is_number(schema.get("minimum"))
        and _is_number(schema.get("maximum"))
        and schema["minimum"] > schema["maximum"]
    ):
        problems.append(f"{path}: 'minimum' is greater than 'maximum'")

    for key in _COUNT_BOUNDS:
        if key in schema and (
            not isinstance(schema[key], int) or isinstance(schema[key], bool) or schema[key] < 0
        ):
            problems.append(f"{path}: '{key}' must be a non-negative integer")


def check_schema(schema: Any) -> list[str]:
    """Return a list of well-formedness problems (empty when valid)."""
    problems: list[str] = []
    _check(schema, "$", problems)
    return problems


def ensure_schema(schema: Any) -> None:
    """Raise :class:`SchemaDefinitionError` if ``schema`` is malformed."""
    problems = check_schema(schema)
    if problems:
        raise SchemaDefinitionError(problems)


__all__ = [
    "SCHEMA_TYPES",
    "ViolationReason",
    "Violation",
    "ValidationResult",
    "validate",
    "check_schema",
    "ensure_schema",
    "json_type",
]
