"""manifold command-line interface."""

from __future__ import annotations

from typing import Optional

import typer

from manifold_cli import __version__
from manifold_cli.cli.commands import register_commands
from manifold_cli.cli.helpers import console, get_config
from manifold_cli.logging_setup import configure_logging

app = typer.Typer(
    name="manifold",
    help="Versioned spec documents with gated workflow, reviews and git sync.",
    no_args_is_help=True,
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"manifold {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (overrides config)"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """Manifold: specs you can patch, advance, review and sync."""
    level = "DEBUG" if verbose else log_level or get_config().log_level
    configure_logging(level)


register_commands(app)


__all__ = ["app", "main"]
