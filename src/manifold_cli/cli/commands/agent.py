"""Agent commands: periodic background reconciliation."""

from __future__ import annotations

import time
from typing import List, Optional

import typer

from manifold_cli.agents import reconciliation_task, start_agent
from manifold_cli.cli.helpers import console, fail, get_config, get_paths, get_store, get_sync_manager
from manifold_cli.collaboration.http_source import HttpSnapshotSource
from manifold_cli.collaboration.models import SyncStatus
from manifold_cli.collaboration.sync import SnapshotSource

app = typer.Typer(
    name="agent",
    help="Background agents",
    no_args_is_help=True,
)


def _snapshot_source(url: Optional[str], token: Optional[str]) -> SnapshotSource:
    if url:
        return HttpSnapshotSource(url, token=token)
    config = get_config()
    manager = get_sync_manager(config, get_paths())
    if not (manager.repo_path / ".git").exists():
        fail("No --url given and the sync repository is not initialized. Run 'manifold sync init' first.")
    return manager


@app.command("run")
def run(
    spec_ids: Optional[List[str]] = typer.Argument(None, help="Specs to reconcile (default: all local specs)"),
    interval: float = typer.Option(60.0, "--interval", "-i", help="Seconds between runs"),
    url: Optional[str] = typer.Option(None, "--url", help="HTTP snapshot server (default: git sync remote)"),
    token: Optional[str] = typer.Option(None, "--token", envvar="MANIFOLD_SYNC_TOKEN", help="Bearer token"),
    once: bool = typer.Option(False, "--once", help="Run a single reconciliation and exit"),
) -> None:
    """Reconcile specs against a remote every INTERVAL seconds until interrupted."""
    source = _snapshot_source(url, token)
    targets = list(spec_ids) if spec_ids else [s.spec_id for s in get_store().list_specs()]
    if not targets:
        console.print("[yellow]No specs to reconcile[/yellow]")
        return
    task = reconciliation_task(targets, source, actor=get_config().actor)

    if once:
        results = task(get_store())
        for result in results:
            color = "red" if result.status == SyncStatus.CONFLICTED else "green"
            console.print(f"  [cyan]{result.spec_id}[/cyan]: [{color}]{result.status.value}[/{color}]")
        if any(r.status == SyncStatus.CONFLICTED for r in results):
            raise typer.Exit(1)
        return

    try:
        handle = start_agent("reconcile", interval, task, get_store)
    except ValueError as exc:
        fail(str(exc))
    console.print(f"[green]✓[/green] Reconciling {len(targets)} spec(s) every {interval}s. Press Ctrl+C to stop.")
    try:
        while handle.is_running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopping agent...[/dim]")
    finally:
        handle.stop(timeout=interval + 5)
    console.print(f"Agent stopped after {handle.runs} run(s), {len(handle.errors)} error(s)")
