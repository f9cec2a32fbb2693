"""Conflict commands: list, show, resolve."""

from __future__ import annotations

import json
from typing import Any, Optional

import typer
from rich.table import Table

from manifold_cli.cli.helpers import console, fail, get_config, get_store, print_json
from manifold_cli.collaboration.conflicts import MISSING, format_conflict
from manifold_cli.collaboration.models import Conflict, ResolutionStrategy
from manifold_cli.collaboration.service import resolve_stored_conflict
from manifold_cli.errors import ConflictNotFoundError, ManifoldError
from manifold_cli.storage.files import FileSpecStore

app = typer.Typer(
    name="conflicts",
    help="Inspect and resolve sync conflicts",
    no_args_is_help=True,
)


def _lookup(store: FileSpecStore, conflict_id: str) -> Conflict:
    """Find a conflict by id or by a unique id prefix."""
    try:
        return store.get_conflict(conflict_id)
    except ConflictNotFoundError:
        matches = [c for c in store.list_conflicts() if c.id.startswith(conflict_id)]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            fail(f"Ambiguous conflict id prefix: {conflict_id}")
        raise


def _short(value: Any, width: int = 40) -> str:
    if value is None:
        return "(deleted)"
    text = value if isinstance(value, str) else json.dumps(value, sort_keys=True)
    return text if len(text) <= width else text[: width - 1] + "…"


@app.command("list")
def list_conflicts(
    spec_id: Optional[str] = typer.Option(None, "--spec", help="Only conflicts of this spec"),
    include_resolved: bool = typer.Option(False, "--all", help="Include resolved conflicts"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """List unresolved conflicts."""
    store = get_store()
    if spec_id:
        conflicts = store.load_conflicts(spec_id, include_resolved=include_resolved)
    else:
        conflicts = store.list_conflicts()
    if json_output:
        print_json([c.to_dict() for c in conflicts])
        return
    if not conflicts:
        console.print("[green]No conflicts[/green]")
        return
    table = Table(title=f"Conflicts ({len(conflicts)})", show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Spec")
    table.add_column("Field", style="magenta")
    table.add_column("Local")
    table.add_column("Remote")
    table.add_column("Status")
    for conflict in conflicts:
        table.add_row(
            conflict.id[:8],
            conflict.spec_id,
            conflict.field_path,
            _short(conflict.local_value),
            _short(conflict.remote_value),
            conflict.status.value,
        )
    console.print(table)


@app.command("show")
def show(conflict_id: str = typer.Argument(..., help="Conflict id (or unique prefix)")) -> None:
    """Show both sides of a conflict."""
    try:
        conflict = _lookup(get_store(), conflict_id)
    except ConflictNotFoundError as exc:
        fail(str(exc))
    console.print(f"[cyan]{conflict.id}[/cyan] ({conflict.spec_id}, {conflict.status.value})")
    console.print(format_conflict(conflict), markup=False, highlight=False)
    if conflict.base_value is not None:
        console.print(f"  Base:   {_short(conflict.base_value, 200)}", markup=False, highlight=False)


@app.command("resolve")
def resolve(
    conflict_id: str = typer.Argument(..., help="Conflict id (or unique prefix)"),
    strategy: ResolutionStrategy = typer.Option(..., "--strategy", "-s", help="ours, theirs, manual or merge"),
    value: Optional[str] = typer.Option(
        None, "--value", help="JSON value for the manual strategy ('null' deletes)"
    ),
) -> None:
    """Resolve a conflict and write the result into the local spec."""
    config = get_config()
    manual: Any = MISSING
    if value is not None:
        try:
            manual = json.loads(value)
        except json.JSONDecodeError as exc:
            fail(f"--value must be valid JSON: {exc}")

    store = get_store()
    try:
        conflict = _lookup(store, conflict_id)
        resolve_stored_conflict(store, conflict.id, strategy, manual, actor=config.actor)
    except ManifoldError as exc:
        fail(str(exc))

    remaining = store.load_conflicts(conflict.spec_id)
    console.print(
        f"[green]✓[/green] Resolved '{conflict.field_path}' in [cyan]{conflict.spec_id}[/cyan] ({strategy.value})"
    )
    if remaining:
        console.print(f"  {len(remaining)} conflict(s) left for this spec")
    else:
        console.print("  No conflicts left. Run 'manifold sync pull' to finish the sync.")
