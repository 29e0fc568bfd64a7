"""
Structured logging for skillweave.

Every module logs through structlog with dotted event names
(``run.start``, ``step.retry``, ``registry.registered``) and keyword fields.
Run-scoped identifiers are bound on contextvars, so each event emitted
while a process run is active carries that run's ``run_id`` and
``process_id`` even when several runs share one event loop.

Processor chain::

    TimeStamper(iso) → merge_contextvars → add_log_level → add_logger_name
      → service.name → drop None fields
      → JSON (ECS names: @timestamp, log.level)   when not a tty
      → ConsoleRenderer                           on a tty

Level and format default to :class:`~skillweave.core.settings.WeaveSettings`
(``SKILLWEAVE_LOG_LEVEL``, ``SKILLWEAVE_LOG_JSON``).

Examples:
    >>> from skillweave.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.info("registry.loaded", handlers=12)

Tags:
    logging, structlog, observability, skillweave

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from skillweave.core.settings import get_settings

_service_name = "skillweave"


def _add_service_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service.name", _service_name)
    return event_dict


def _drop_none_fields(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Omit keyword fields that were passed as ``None`` (e.g. ``error_kind``)."""
    for key in [k for k, v in event_dict.items() if v is None]:
        del event_dict[key]
    return event_dict


def _ecs_field_names(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    return event_dict


def configure_logging(
    level: str | None = None,
    json_format: bool | None = None,
    service: str = "skillweave",
    *,
    stream: TextIO | None = None,
    timestamps: bool = True,
) -> None:
    """Install the skillweave processor chain.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL; defaults to
            ``SKILLWEAVE_LOG_LEVEL``.
        json_format: JSON lines when True, coloured console when False.
            ``None`` uses ``SKILLWEAVE_LOG_JSON`` and otherwise picks JSON
            whenever ``stream`` is not a terminal.
        service: Value of the ``service.name`` field.
        stream: Destination; ``sys.stderr`` at call time by default.
        timestamps: Add an ISO-8601 UTC timestamp to every event.
    """
    global _service_name
    _service_name = service

    settings = get_settings()
    level_no = getattr(logging, (level or settings.log_level).upper())
    stream = stream or sys.stderr
    if json_format is None:
        json_format = settings.log_json
    if json_format is None:
        json_format = not stream.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service_name,
        _drop_none_fields,
    ]
    if timestamps:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if json_format:
        processors += [
            _ecs_field_names,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors += [
            structlog.dev.set_exc_info,
            structlog.dev.ConsoleRenderer(colors=stream.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )
    # Route stdlib loggers (third-party libraries) to the same stream
    logging.basicConfig(format="%(message)s", stream=stream, level=level_no)


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**fields: Any) -> None:
    """Attach ``fields`` to every later event of the current task."""
    structlog.contextvars.bind_contextvars(**fields)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind fields for the duration of a ``with`` / ``async with`` block.

    On exit the fields are removed, and any values they shadowed are
    restored, so a step-level ``LogContext(step_id=...)`` nested inside a
    run-level one leaves ``run_id`` intact.  Each asyncio task works on its
    own copy of the context variables.

    Example:
        async with LogContext(run_id=run_id, process_id="adr-flow"):
            logger.info("run.start")
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._scope: Any = None

    def __enter__(self) -> LogContext:
        self._scope = structlog.contextvars.bound_contextvars(**self.fields)
        self._scope.__enter__()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        scope, self._scope = self._scope, None
        scope.__exit__(*exc_info)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.__exit__(*exc_info)


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
