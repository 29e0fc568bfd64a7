"""
skillweave core — errors, logging and settings shared by every layer.

MODULE MAP
──────────
1. errors.py    ─ WeaveError hierarchy + retry classification
2. logging.py   ─ structlog configuration and context binding
3. settings.py  ─ pydantic-settings ``WeaveSettings``
"""

from skillweave.core.errors import (
    ErrorCategory,
    ErrorContext,
    WeaveError,
    is_retryable,
)
from skillweave.core.logging import LogContext, configure_logging, get_logger
from skillweave.core.settings import WeaveSettings, get_settings

__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "WeaveError",
    "is_retryable",
    "LogContext",
    "configure_logging",
    "get_logger",
    "WeaveSettings",
    "get_settings",
]
