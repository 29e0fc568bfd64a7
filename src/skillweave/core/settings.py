"""Runtime settings for skillweave.

Settings are read from ``SKILLWEAVE_*`` environment variables and an
optional ``.env`` file.  Values here are process-wide defaults; a
``ProcessDefinition`` or an individual ``StepSpec`` can override the
timeout and retry bound for its own steps.

Examples:
    >>> from skillweave.core.settings import WeaveSettings
    >>> WeaveSettings(max_in_flight=2).max_in_flight
    2

    $ SKILLWEAVE_MAX_RETRIES=5 skillweave process plan adr.yaml

Tags:
    settings, configuration, pydantic, environment, skillweave
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WeaveSettings(BaseSettings):
    """Settings shared by the registry, the invocation boundary and the executor.

    Fields
    ──────
    log_level               : structlog log level
    log_json                : JSON logs (None = auto-detect from tty)
    max_in_flight           : bound on concurrent invocations per run (None = unbounded)
    default_timeout_seconds : per-invocation timeout when neither step nor process sets one
    max_retries             : retries for retryable failures when not overridden
    retry_base_delay        : first backoff delay in seconds
    retry_max_delay         : backoff cap in seconds
    retry_timeouts          : whether timed-out invocations count as retryable
    snapshot_path           : JSONL file receiving step snapshots (None = disabled)
    descriptor_paths        : files/directories scanned for handler descriptors
    """

    model_config = SettingsConfigDict(
        env_prefix="SKILLWEAVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None

    # ── Execution ────────────────────────────────────────────────
    max_in_flight: int | None = Field(default=None, ge=1)
    default_timeout_seconds: float | None = Field(default=None, gt=0)
    max_retries: int = Field(default=2, ge=0)
    retry_base_delay: float = Field(default=0.5, ge=0)
    retry_max_delay: float = Field(default=30.0, ge=0)
    retry_timeouts: bool = True

    # ── Storage ──────────────────────────────────────────────────
    snapshot_path: Path | None = None
    descriptor_paths: list[Path] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> WeaveSettings:
    """Return the cached process-wide settings."""
    return WeaveSettings()


def reset_settings() -> None:
    """Drop the cached settings (for tests)."""
    get_settings.cache_clear()


__all__ = ["WeaveSettings", "get_settings", "reset_settings"]
