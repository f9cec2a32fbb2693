"""Workflow commands: advance, status, history."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import typer
from rich.table import Table

from manifold_cli import operations
from manifold_cli.cli.helpers import console, fail, get_config, get_store, parse_stage, print_json
from manifold_cli.core import can_advance, next_stage
from manifold_cli.errors import ManifoldError, SpecNotFoundError, WorkflowError
from manifold_cli.models import WorkflowStage

app = typer.Typer(
    name="workflow",
    help="Move specs through requirements → design → tasks → approval → implemented",
    no_args_is_help=True,
)


def _format_ts(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


@app.command("advance")
def advance(
    spec_id: str = typer.Argument(..., help="Spec id"),
    to: Optional[str] = typer.Option(None, "--to", help="Target stage (default: next stage)"),
) -> None:
    """Advance a spec to the next stage once its content rules pass."""
    config = get_config()
    target = parse_stage(to)
    store = get_store()
    try:
        previous = store.load(spec_id).stage
        spec = operations.advance_spec(store, spec_id, target, actor=config.actor)
    except WorkflowError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)
    except ManifoldError as exc:
        fail(str(exc))
    console.print(
        f"[green]✓[/green] [cyan]{spec_id}[/cyan]: {previous.value} → [magenta]{spec.stage.value}[/magenta]"
    )


@app.command("status")
def status(
    spec_id: str = typer.Argument(..., help="Spec id"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Show the current stage and whether the spec can advance."""
    try:
        spec = get_store().load(spec_id)
    except SpecNotFoundError as exc:
        fail(str(exc))

    upcoming = next_stage(spec.stage)
    blocker: Optional[str] = None
    try:
        can_advance(spec)
    except WorkflowError as exc:
        blocker = str(exc)

    if json_output:
        print_json(
            {
                "spec_id": spec_id,
                "stage": spec.stage.value,
                "stages_completed": [s.value for s in spec.stages_completed],
                "next_stage": upcoming.value if upcoming else None,
                "can_advance": blocker is None,
                "blocker": blocker,
            }
        )
        return

    console.print(f"[bold]{spec.name}[/bold] ([cyan]{spec_id}[/cyan])")
    for stage in WorkflowStage:
        if stage == spec.stage:
            marker = "[magenta]●[/magenta]"
        elif stage in spec.stages_completed:
            marker = "[green]✓[/green]"
        else:
            marker = "[dim]○[/dim]"
        console.print(f"  {marker} {stage.value}")
    if upcoming is None:
        console.print("\n[green]Workflow complete[/green]")
    elif blocker is None:
        console.print(f"\n[green]Ready to advance to {upcoming.value}[/green]")
    else:
        console.print(f"\n[yellow]Blocked:[/yellow] {blocker}")


@app.command("history")
def history(
    spec_id: str = typer.Argument(..., help="Spec id"),
    events: bool = typer.Option(False, "--events", help="Show workflow events instead of patches"),
    kind: Optional[str] = typer.Option(None, "--kind", help="Filter events by kind"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Show the patch history (or the workflow event log) of a spec."""
    store = get_store()
    try:
        spec = store.load(spec_id)
    except SpecNotFoundError as exc:
        fail(str(exc))

    if events:
        records = store.read_events(spec_id, kind=kind)
        if json_output:
            print_json([r.to_record() for r in records])
            return
        table = Table(title=f"Events for {spec_id}", show_header=True)
        table.add_column("When")
        table.add_column("Actor", style="cyan")
        table.add_column("Stage", style="magenta")
        table.add_column("Event")
        for record in records:
            table.add_row(
                record.timestamp.strftime("%Y-%m-%d %H:%M"), record.actor, record.stage, record.event
            )
        console.print(table)
        return

    patches = spec.history.patches
    if json_output:
        print_json([p.to_dict() for p in patches])
        return
    table = Table(title=f"History for {spec_id}", show_header=True)
    table.add_column("When")
    table.add_column("Actor", style="cyan")
    table.add_column("Op", style="magenta")
    table.add_column("Path")
    table.add_column("Summary")
    for entry in patches:
        table.add_row(_format_ts(entry.timestamp), entry.actor, entry.op, entry.path, entry.summary)
    console.print(table)
