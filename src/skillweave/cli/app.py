"""
Root Typer application for the skillweave CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from skillweave.core.logging import configure_logging

app = Typer(
    name="skillweave",
    help="skillweave — registry, resolver and process executor for skills and agents.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("skillweave")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"skillweave {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(  # noqa: UP007
        None, "--log-level", help="Log level for stderr output (default: SKILLWEAVE_LOG_LEVEL)."
    ),
) -> None:
    """skillweave CLI — inspect handlers, validate and plan processes."""
    configure_logging(level=log_level)


# ── Sub-command registration ─────────────────────────────────────────────

from skillweave.cli.handlers import app as handlers_app  # noqa: E402
from skillweave.cli.process import app as process_app  # noqa: E402

app.add_typer(handlers_app, name="handlers", help="Handler descriptors and resolution.")
app.add_typer(process_app, name="process", help="Process definitions.")


if __name__ == "__main__":
    app()
