"""
CLI utility helpers — output formatting and registry loading.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from skillweave.core.errors import WeaveError
from skillweave.core.settings import get_settings
from skillweave.registry.handler_registry import HandlerRegistry
from skillweave.registry.loader import load_into_registry

console = Console()
err_console = Console(stderr=True)


# ── Registry helper ──────────────────────────────────────────────────────


def load_registry(paths: list[Path] | None = None) -> HandlerRegistry:
    """Build a registry from ``paths`` or ``SKILLWEAVE_DESCRIPTOR_PATHS``."""
    registry = HandlerRegistry()
    sources = paths or get_settings().descriptor_paths
    if sources:
        load_into_registry(registry, sources)
    return registry


@contextmanager
def cli_errors() -> Iterator[None]:
    """Turn library errors into a red message and exit code 1."""
    try:
        yield
    except WeaveError as e:
        err_console.print(f"[bold red]Error[/bold red] ({type(e).__name__}): {e.message}")
        raise typer.Exit(code=1) from e
    except ValidationError as e:
        err_console.print(f"[bold red]Invalid document[/bold red]: {e.error_count()} error(s)")
        for item in e.errors():
            loc = ".".join(str(p) for p in item["loc"])
            err_console.print(f"  [cyan]{loc}[/cyan]: {item['msg']}")
        raise typer.Exit(code=1) from e
    except (OSError, ValueError) as e:
        err_console.print(f"[bold red]Error[/bold red]: {e}")
        raise typer.Exit(code=1) from e


# ── Output helpers ───────────────────────────────────────────────────────


def _as_mapping(obj: Any) -> dict[str, Any]:
    # Descriptors, plans and results all expose to_dict()
    return obj.to_dict() if hasattr(obj, "to_dict") else dict(obj)


def output_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def output_rows(rows: list[dict[str, Any]], *, as_json: bool = False, title: str = "") -> None:
    """Render a list of flat dicts as a table (or JSON)."""
    if as_json:
        output_json(rows)
        return
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(_cell(v) for v in row.values()))
    console.print(table)


def output_mapping(data: Any, *, as_json: bool = False, title: str = "") -> None:
    """Render a single object as key-value pairs (or JSON)."""
    data = _as_mapping(data)
    if as_json:
        output_json(data)
        return
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {_cell(v)}")


def _cell(value: Any) -> str:
    if isinstance(value, (list, tuple, set, frozenset)):
        return ", ".join(str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return str(value)
