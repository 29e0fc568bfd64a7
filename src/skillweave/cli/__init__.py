"""
CLI layer for skillweave.

Provides a Typer application with sub-commands that delegate to the
registry and orchestration layers.  This package handles only terminal
transport: argument parsing, coloured output, and table formatting.

Entry point::

    skillweave --help
"""

from skillweave.cli.app import app

__all__ = ["app"]
