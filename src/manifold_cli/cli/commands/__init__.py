"""Command modules for the manifold CLI."""

from __future__ import annotations

import typer

from . import agent, conflicts, review, serve, specs, sync, workflow


def register_commands(app: typer.Typer) -> None:
    """Attach all manifold commands to the root Typer app."""
    app.command()(specs.init)
    app.command()(specs.new)
    app.command(name="list")(specs.list_specs)
    app.command()(specs.show)
    app.command()(specs.search)
    app.command()(specs.validate)
    app.command()(specs.patch)
    app.command()(serve.serve)
    app.add_typer(workflow.app, name="workflow")
    app.add_typer(sync.app, name="sync")
    app.add_typer(conflicts.app, name="conflicts")
    app.add_typer(review.app, name="review")
    app.add_typer(agent.app, name="agent")


__all__ = ["register_commands"]
