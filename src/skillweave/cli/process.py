"""
CLI: ``skillweave process`` — validate and plan Process YAML documents.
"""

from __future__ import annotations

from pathlib import Path

import typer

from skillweave.cli.utils import cli_errors, console, load_registry, output_json, output_rows
from skillweave.orchestration.planner import plan_process, resolution_report
from skillweave.orchestration.process_yaml import load_process_yaml
from skillweave.registry.resolver import Resolver

app = typer.Typer(no_args_is_help=True)


@app.command("validate")
def validate_process(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Process YAML file"),
    paths: list[Path] | None = typer.Option(
        None, "--path", "-p", help="Descriptor paths; also resolve every step when given."
    ),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Check structure (and, with --path, handler resolution) of a process."""
    with cli_errors():
        definition = load_process_yaml(file)
        report = resolution_report(definition, Resolver(load_registry(paths))) if paths else {}

    unresolved = {k: v for k, v in report.items() if "error" in v}
    if json_out:
        output_json(
            {
                "process_id": definition.id,
                "valid": not unresolved,
                "steps": len(definition.steps),
                "resolution": report,
            }
        )
    else:
        for step_id, entry in report.items():
            if "error" in entry:
                console.print(f"  [red]✗[/red] {step_id}: {entry['error']['message']}")
            else:
                console.print(f"  [green]✓[/green] {step_id} → {entry['handler_id']}")
        if not unresolved:
            console.print(
                f"[green]✓[/green] {definition.id}: {len(definition.steps)} steps, structure OK"
            )
    if unresolved:
        raise typer.Exit(code=1)


@app.command("plan")
def plan(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Process YAML file"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show dependency levels: steps on one level may run concurrently."""
    with cli_errors():
        definition = load_process_yaml(file)
        process_plan = plan_process(definition)

    if json_out:
        output_json(process_plan.to_dict())
        return
    rows = [
        {
            "level": level,
            "step": step_id,
            "waits_for": list(process_plan.dependencies[step_id]),
            "uses_output_of": list(process_plan.output_dependencies[step_id]),
        }
        for level, steps in enumerate(process_plan.levels)
        for step_id in steps
    ]
    output_rows(rows, title=f"Plan: {definition.id}")
