"""Shared helpers for manifold CLI commands."""

from __future__ import annotations

import json
from typing import Any, NoReturn, Optional

import typer
from rich.console import Console

from manifold_cli.collaboration.sync import GitSyncManager, SyncConfig
from manifold_cli.config import Config, ManifoldPaths, load_config
from manifold_cli.errors import ConfigError
from manifold_cli.models import Boundary, WorkflowStage
from manifold_cli.storage.files import FileSpecStore

console = Console()


def fail(message: str, code: int = 1) -> NoReturn:
    """Print an error and exit with ``code``."""
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(code)


def get_paths() -> ManifoldPaths:
    return ManifoldPaths.default()


def get_config(paths: Optional[ManifoldPaths] = None) -> Config:
    try:
        return load_config(paths or get_paths())
    except ConfigError as exc:
        fail(str(exc))


def get_store(paths: Optional[ManifoldPaths] = None) -> FileSpecStore:
    return FileSpecStore(paths or get_paths())


def get_sync_manager(
    config: Config,
    paths: Optional[ManifoldPaths] = None,
    remote_url: Optional[str] = None,
) -> GitSyncManager:
    paths = paths or get_paths()
    return GitSyncManager(
        SyncConfig(
            repo_path=paths.sync_repo,
            remote_url=remote_url or config.sync.remote,
            branch=config.sync.branch,
            commit_author=config.sync.author,
            commit_email=config.sync.email,
        )
    )


def parse_boundary(value: Optional[str]) -> Optional[Boundary]:
    if value is None:
        return None
    try:
        return Boundary.parse(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def parse_stage(value: Optional[str]) -> Optional[WorkflowStage]:
    if value is None:
        return None
    try:
        return WorkflowStage.parse(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def print_json(data: Any) -> None:
    """Write JSON to stdout without Rich markup processing."""
    typer.echo(json.dumps(data, indent=2, default=str))
