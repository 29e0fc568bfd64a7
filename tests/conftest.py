"""
Shared pytest fixtures and configuration for skillweave tests.

This module provides:
- Settings / default-registry / structlog cleanup for test isolation
- A descriptor factory and an empty, isolated registry
- An executor wired with an instant, recorded ``sleep``

Usage:
    Fixtures are auto-discovered by pytest.

    def test_something(registry, implementations, executor_factory):
        ...
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import structlog

from skillweave.core.logging import clear_context
from skillweave.core.settings import WeaveSettings, reset_settings
from skillweave.execution.implementations import ImplementationTable
from skillweave.execution.retry import ConstantBackoff
from skillweave.orchestration.executor import ProcessExecutor
from skillweave.registry.descriptor import HandlerDescriptor, HandlerKind
from skillweave.registry.handler_registry import HandlerRegistry, reset_default_registry


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if test_path.parts and test_path.parts[0] in ("cli", "orchestration"):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_globals(monkeypatch: pytest.MonkeyPatch):
    """Fresh settings, default registry and log context for every test."""
    for name in list(os.environ):
        if name.startswith("SKILLWEAVE_"):
            monkeypatch.delenv(name, raising=False)
    reset_settings()
    reset_default_registry()
    yield
    reset_settings()
    reset_default_registry()
    clear_context()
    structlog.reset_defaults()


# =============================================================================
# Descriptors and Registry
# =============================================================================


def _descriptor(
    handler_id: str,
    *tags: str,
    kind: HandlerKind | str = HandlerKind.SKILL,
    input_schema: dict[str, Any] | None = None,
    output_schema: dict[str, Any] | None = None,
    **kwargs: Any,
) -> HandlerDescriptor:
    return HandlerDescriptor(
        id=handler_id,
        kind=kind,
        capability_tags=frozenset(tags or (handler_id,)),
        input_schema=input_schema or {"type": "object"},
        output_schema=output_schema or {"type": "object"},
        **kwargs,
    )


@pytest.fixture
def make_descriptor() -> Callable[..., HandlerDescriptor]:
    """Factory: ``make_descriptor("adr-drafter", "adr", "drafting", kind="agent")``."""
    return _descriptor


@pytest.fixture
def value_schema() -> dict[str, Any]:
    """Output contract ``{value: integer}`` (required)."""
    return {
        "type": "object",
        "required": ["value"],
        "properties": {"value": {"type": "integer"}},
    }


@pytest.fixture
def registry() -> HandlerRegistry:
    """Empty, isolated registry."""
    return HandlerRegistry()


@pytest.fixture
def implementations() -> ImplementationTable:
    return ImplementationTable()


# =============================================================================
# Executor
# =============================================================================


class RecordingSleep:
    """Async ``sleep`` replacement that returns immediately and records delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def executor_factory(
    registry: HandlerRegistry,
    implementations: ImplementationTable,
    recording_sleep: RecordingSleep,
) -> Callable[..., ProcessExecutor]:
    """Build executors over the shared registry/implementations.

    Defaults: explicit ``WeaveSettings()``, zero-delay constant backoff with
    two retries, and an instant recorded sleep.
    """

    def factory(**kwargs: Any) -> ProcessExecutor:
        kwargs.setdefault("settings", WeaveSettings())
        kwargs.setdefault("retry_strategy", ConstantBackoff(max_retries=2, delay=0.0))
        kwargs.setdefault("sleep", recording_sleep)
        return ProcessExecutor(registry, implementations, **kwargs)

    return factory
