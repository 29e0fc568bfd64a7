"""
skillweave schema — contract schemas for handler inputs and outputs.

MODULE MAP
──────────
1. validator.py ─ validate(), check_schema(), Violation, ValidationResult
"""

from skillweave.schema.validator import (
    ValidationResult,
    Violation,
    ViolationReason,
    check_schema,
    ensure_schema,
    validate,
)

__all__ = [
    "ValidationResult",
    "Violation",
    "ViolationReason",
    "check_schema",
    "ensure_schema",
    "validate",
]
