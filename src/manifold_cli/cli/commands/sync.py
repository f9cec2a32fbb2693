"""Sync commands: share specs through a git remote."""

from __future__ import annotations

from typing import List, Optional

import typer
from rich.table import Table

from manifold_cli.cli.helpers import console, fail, get_config, get_paths, get_store, get_sync_manager
from manifold_cli.collaboration.git_ops import git_available
from manifold_cli.collaboration.models import SyncStatus
from manifold_cli.collaboration.service import ReconcileResult, content_hash, reconcile_spec, record_sync
from manifold_cli.collaboration.sync import NO_CHANGES, GitSyncManager
from manifold_cli.config import save_config
from manifold_cli.errors import ManifoldError, SyncError

app = typer.Typer(
    name="sync",
    help="Share specs through a git remote and reconcile remote changes",
    no_args_is_help=True,
)


def _manager(remote_url: Optional[str] = None) -> GitSyncManager:
    if not git_available():
        fail("git is not installed or not on PATH")
    manager = get_sync_manager(get_config(), get_paths(), remote_url=remote_url)
    if remote_url is None and not (manager.repo_path / ".git").exists():
        fail("Sync repository not initialized. Run 'manifold sync init' first.")
    return manager


@app.command("init")
def init(
    remote: Optional[str] = typer.Option(None, "--remote", "-r", help="Remote repository URL"),
) -> None:
    """Create the sync repository and optionally configure its remote."""
    if not git_available():
        fail("git is not installed or not on PATH")
    paths = get_paths()
    config = get_config(paths)
    manager = get_sync_manager(config, paths, remote_url=remote)
    try:
        manager.init()
    except SyncError as exc:
        fail(str(exc))
    if remote and remote != config.sync.remote:
        config.sync.remote = remote
        paths.ensure_dirs()
        save_config(config, paths)
    console.print(f"[green]✓[/green] Sync repository ready at {manager.repo_path}")
    if remote:
        console.print(f"  Remote: {remote}")


@app.command("push")
def push(
    spec_ids: Optional[List[str]] = typer.Argument(None, help="Specs to push (default: all)"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Commit message"),
) -> None:
    """Export local specs, commit and push them to the remote."""
    manager = _manager()
    store = get_store()
    try:
        specs = [store.load(spec_id) for spec_id in spec_ids] if spec_ids else store.list_specs()
        if not specs:
            console.print("[yellow]No specs to push[/yellow]")
            return
        manager.fetch_remote()
        if manager.remote_ahead():
            fail("Remote has changes that are not merged locally. Run 'manifold sync pull' first.")
        files = [manager.export_spec(spec) for spec in specs]
        commit = manager.commit(message or f"Update {len(specs)} spec(s)", files)
        manager.push()
    except ManifoldError as exc:
        fail(str(exc))

    for spec in specs:
        record_sync(store, spec, SyncStatus.SYNCED, manager.remote_ref)
    if commit == NO_CHANGES:
        console.print("[dim]No changes to commit; remote is up to date[/dim]")
    else:
        console.print(f"[green]✓[/green] Pushed {len(specs)} spec(s) ({commit[:8]})")


def _print_results(results: list[ReconcileResult]) -> None:
    table = Table(title="Sync results", show_header=True)
    table.add_column("Spec", style="cyan")
    table.add_column("Status")
    table.add_column("Details")
    for result in results:
        if result.status == SyncStatus.CONFLICTED:
            status = "[red]conflicted[/red]"
            details = ", ".join(c.field_path for c in result.conflicts)
        elif result.inserted:
            status = "[green]imported[/green]"
            details = ""
        else:
            status = "[green]synced[/green]"
            details = "merged remote changes" if result.changed else "up to date"
        table.add_row(result.spec_id, status, details)
    console.print(table)


@app.command("pull")
def pull(
    spec_ids: Optional[List[str]] = typer.Argument(None, help="Specs to pull (default: all remote specs)"),
) -> None:
    """Fetch remote specs and reconcile them with the local copies."""
    config = get_config()
    manager = _manager()
    store = get_store()
    try:
        manager.fetch_remote()
        if not manager.has_remote_branch():
            console.print("[yellow]Remote has no specs yet[/yellow]")
            return
        targets = list(spec_ids) if spec_ids else manager.list_remote_specs()
        results = [
            reconcile_spec(
                store, spec_id, manager.fetch(spec_id), actor=config.actor, remote_branch=manager.remote_ref
            )
            for spec_id in targets
        ]
        conflicted = [r for r in results if r.status == SyncStatus.CONFLICTED]
        # The remote only becomes the merge base once every spec reconciled cleanly.
        if not conflicted:
            for result in results:
                manager.record_merge(store.load(result.spec_id))
    except ManifoldError as exc:
        fail(str(exc))

    if not results:
        console.print("[dim]No remote specs[/dim]")
        return
    _print_results(results)
    if conflicted:
        total = sum(len(r.conflicts) for r in conflicted)
        console.print(
            f"\n[yellow]{total} conflict(s) need resolution.[/yellow] "
            "Run 'manifold conflicts list', resolve them, then pull again."
        )
        raise typer.Exit(1)


@app.command("status")
def status() -> None:
    """Show the sync state of every local spec."""
    store = get_store()
    specs = store.list_specs()
    if not specs:
        console.print("[yellow]No specs found[/yellow]")
        return
    table = Table(title="Sync status", show_header=True)
    table.add_column("Spec", style="cyan")
    table.add_column("Status")
    table.add_column("Remote")
    for spec in specs:
        metadata = store.load_sync_metadata(spec.spec_id)
        if metadata is None:
            state = SyncStatus.UNSYNCED
        elif metadata.sync_status == SyncStatus.SYNCED and metadata.last_sync_hash != content_hash(spec):
            state = SyncStatus.MODIFIED
        else:
            state = metadata.sync_status
        color = {"synced": "green", "modified": "yellow", "conflicted": "red"}.get(state.value, "dim")
        table.add_row(
            spec.spec_id,
            f"[{color}]{state.value}[/{color}]",
            (metadata.remote_branch if metadata else None) or "-",
        )
    console.print(table)


@app.command("diff")
def diff(spec_id: str = typer.Argument(..., help="Spec id")) -> None:
    """Show the difference between the local spec and the remote copy."""
    manager = _manager()
    try:
        spec = get_store().load(spec_id)
        manager.fetch_remote()
        manager.export_spec(spec)
        output = manager.diff(spec_id)
    except ManifoldError as exc:
        fail(str(exc))
    if not output:
        console.print("[green]No differences[/green]")
        return
    console.print(output, markup=False, highlight=False)
