"""
CLI: ``skillweave handlers`` — inspect descriptors and resolution.
"""

from __future__ import annotations

from pathlib import Path

import typer

from skillweave.cli.utils import cli_errors, console, load_registry, output_json, output_mapping, output_rows
from skillweave.registry.descriptor import HandlerKind
from skillweave.registry.resolver import HandlerRequest, Resolver

app = typer.Typer(no_args_is_help=True)

PathsOption = typer.Option(
    None, "--path", "-p", help="Descriptor file or directory (repeatable)."
)


@app.command("list")
def list_handlers(
    paths: list[Path] | None = PathsOption,
    kind: HandlerKind | None = typer.Option(None, "--kind", "-k", help="skill or agent"),
    capability: str | None = typer.Option(None, "--capability", "-c", help="Filter by tag"),
    process: str | None = typer.Option(None, "--process", help="Filter by target process"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List registered handlers."""
    with cli_errors():
        registry = load_registry(paths)
        if capability:
            descriptors = list(registry.lookup_by_capability(capability))
        elif process:
            descriptors = list(registry.lookup_by_process(process))
        else:
            descriptors = registry.descriptors()
        if kind is not None:
            descriptors = [d for d in descriptors if d.kind == kind]

    rows = [
        {
            "id": d.id,
            "kind": d.kind.value,
            "capabilities": sorted(d.capability_tags),
            "processes": sorted(d.target_processes),
        }
        for d in descriptors
    ]
    output_rows(rows, as_json=json_out, title="Handlers")


@app.command("show")
def show_handler(
    handler_id: str = typer.Argument(..., help="Handler id"),
    paths: list[Path] | None = PathsOption,
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show one descriptor, including its schemas."""
    with cli_errors():
        descriptor = load_registry(paths).lookup_by_id(handler_id)
    output_mapping(descriptor, as_json=json_out, title=f"Handler: {handler_id}")


@app.command("resolve")
def resolve_handler(
    tags: list[str] = typer.Argument(..., help="Capability tags the handler must declare"),
    paths: list[Path] | None = PathsOption,
    kind: HandlerKind | None = typer.Option(None, "--kind", "-k", help="Preferred kind"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Resolve a capability query the way a process step would."""
    with cli_errors():
        resolver = Resolver(load_registry(paths))
        request = HandlerRequest.by_capability(*tags, kind=kind)
        candidates = [d.id for d in resolver.candidates(request)]
        descriptor = resolver.resolve(request)

    if json_out:
        output_json({"handler_id": descriptor.id, "candidates": candidates})
        return
    console.print(f"[green]✓[/green] {request.describe()} → [bold]{descriptor.id}[/bold]")


@app.command("stats")
def handler_stats(
    paths: list[Path] | None = PathsOption,
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Counts per kind and shared capability tags."""
    with cli_errors():
        stats = load_registry(paths).stats()
    output_mapping(stats, as_json=json_out, title="Registry")
