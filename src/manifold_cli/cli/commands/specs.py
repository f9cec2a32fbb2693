"""Spec commands: init, new, list, show, search, validate, patch."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from rich.panel import Panel
from rich.table import Table

from manifold_cli import operations
from manifold_cli.cli.helpers import (
    console,
    fail,
    get_config,
    get_paths,
    get_store,
    parse_boundary,
    parse_stage,
    print_json,
)
from manifold_cli.config import Config, save_config
from manifold_cli.errors import ManifoldError, SpecNotFoundError
from manifold_cli.models import SpecData
from manifold_cli.validators import check_spec, validate_spec


def init(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config.toml"),
) -> None:
    """Create the ~/.manifold directory layout and a default config."""
    paths = get_paths()
    paths.ensure_dirs()
    if paths.config.exists() and not force:
        console.print(f"[yellow]Config already exists:[/yellow] {paths.config}")
    else:
        save_config(Config(), paths)
        console.print(f"[green]✓[/green] Wrote {paths.config}")
    console.print(f"[green]✓[/green] Manifold initialized at {paths.root}")


def new(
    name: str = typer.Argument(..., help="Human-readable spec name"),
    project: str = typer.Option(..., "--project", "-p", help="Project name (kebab-case)"),
    boundary: Optional[str] = typer.Option(
        None, "--boundary", "-b", help="personal, work or company (default from config)"
    ),
    spec_id: Optional[str] = typer.Option(None, "--id", help="Explicit spec id"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Create a new spec at the requirements stage."""
    config = get_config()
    chosen = parse_boundary(boundary) or config.default_boundary
    store = get_store()
    try:
        spec = operations.create_spec(
            store, project, name, chosen, actor=config.actor, spec_id=spec_id
        )
    except ManifoldError as exc:
        fail(str(exc))

    if json_output:
        print_json({"spec_id": spec.spec_id, "boundary": chosen.value, "stage": spec.stage.value})
        return
    console.print(f"[green]✓[/green] Created spec [cyan]{spec.spec_id}[/cyan]")
    console.print(f"  Name: {spec.name}")
    console.print(f"  Boundary: {chosen.value}")


def _summary_rows(specs: list[SpecData]) -> list[dict[str, Any]]:
    return [
        {
            "spec_id": s.spec_id,
            "project": s.project,
            "name": s.name,
            "boundary": s.boundary.value,
            "stage": s.stage.value,
            "updated_at": s.history.updated_at,
        }
        for s in specs
    ]


def _print_spec_table(specs: list[SpecData], title: str) -> None:
    table = Table(title=title, show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Project")
    table.add_column("Name", style="green")
    table.add_column("Boundary")
    table.add_column("Stage", style="magenta")
    for spec in specs:
        table.add_row(spec.spec_id, spec.project, spec.name, spec.boundary.value, spec.stage.value)
    console.print(table)


def list_specs(
    boundary: Optional[str] = typer.Option(None, "--boundary", "-b"),
    stage: Optional[str] = typer.Option(None, "--stage", "-s"),
    project: Optional[str] = typer.Option(None, "--project", "-p"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """List specs, most recently updated first."""
    specs = get_store().list_specs(
        boundary=parse_boundary(boundary), stage=parse_stage(stage), project=project
    )
    if json_output:
        print_json(_summary_rows(specs))
        return
    if not specs:
        console.print("[yellow]No specs found[/yellow]")
        return
    _print_spec_table(specs, f"Specs ({len(specs)})")


def _render_spec(spec: SpecData) -> None:
    header = [
        f"[cyan]Project:[/cyan] {spec.project}",
        f"[cyan]Boundary:[/cyan] {spec.boundary.value}",
        f"[cyan]Stage:[/cyan] {spec.stage.value}",
    ]
    if spec.stages_completed:
        header.append(
            f"[cyan]Completed:[/cyan] {', '.join(s.value for s in spec.stages_completed)}"
        )
    console.print(Panel("\n".join(header), title=f"{spec.name} ({spec.spec_id})", border_style="cyan"))

    if spec.requirements:
        console.print("\n[bold]Requirements[/bold]")
        for req in spec.requirements:
            console.print(f"  • [cyan]{req.id}[/cyan] {req.title} [dim]({req.priority.value})[/dim]")
            if req.shall:
                console.print(f"      {req.shall}", markup=False)
            for scenario in req.scenarios:
                console.print(f"      - {scenario.id}: {scenario.name}", markup=False)
    if spec.decisions:
        console.print("\n[bold]Decisions[/bold]")
        for dec in spec.decisions:
            console.print(f"  • [cyan]{dec.id}[/cyan] {dec.title} [dim]{dec.date}[/dim]")
    if spec.tasks:
        console.print("\n[bold]Tasks[/bold]")
        for task in spec.tasks:
            refs = ", ".join(task.requirement_ids) or "none"
            console.print(
                f"  • [cyan]{task.id}[/cyan] {task.title} [dim]({task.status.value}; {refs})[/dim]"
            )


def show(
    spec_id: str = typer.Argument(..., help="Spec id"),
    json_output: bool = typer.Option(False, "--json", help="Output the full JSON document"),
) -> None:
    """Show a spec."""
    try:
        spec = get_store().load(spec_id)
    except SpecNotFoundError as exc:
        fail(str(exc))
    if json_output:
        print_json(spec.to_dict())
        return
    _render_spec(spec)


def search(
    query: str = typer.Argument(..., help="Search terms (all must match)"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Full-text search over names, requirements, tasks and decisions."""
    specs = get_store().search(query)
    if json_output:
        print_json(_summary_rows(specs))
        return
    if not specs:
        console.print(f"[yellow]No specs match '{query}'[/yellow]")
        return
    _print_spec_table(specs, f"Results for '{query}' ({len(specs)})")


def validate(
    spec_id: str = typer.Argument(..., help="Spec id"),
    lint: bool = typer.Option(True, "--lint/--no-lint", help="Include lint warnings"),
    strict: bool = typer.Option(False, "--strict", help="Treat warnings as errors"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Validate a spec's identifiers and content."""
    try:
        spec = get_store().load(spec_id)
    except SpecNotFoundError as exc:
        fail(str(exc))

    result = check_spec(spec) if lint else validate_spec(spec)
    ok = result.passed and not (strict and result.warnings)
    if json_output:
        print_json(
            {"spec_id": spec_id, "passed": ok, "errors": result.errors, "warnings": result.warnings}
        )
    else:
        console.print(result.format_report(), markup=False)
        if ok:
            console.print("[green]✓[/green] Validation passed")
        else:
            console.print("[red]✗[/red] Validation failed")
    if not ok:
        raise typer.Exit(1)


def _read_patch(patch_file: Optional[Path], inline: Optional[str]) -> tuple[list[Any], Optional[str]]:
    if inline is not None:
        text = inline
        source = "--inline"
    elif patch_file is None or str(patch_file) == "-":
        text = sys.stdin.read()
        source = "stdin"
    else:
        try:
            text = patch_file.read_text(encoding="utf-8")
        except OSError as exc:
            fail(f"Cannot read {patch_file}: {exc}")
        source = str(patch_file)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        fail(f"Invalid JSON in {source}: {exc}")

    # Either a bare operation list or {"patch": [...], "summary": "..."}
    if isinstance(data, dict):
        summary = data.get("summary")
        data = data.get("patch")
    else:
        summary = None
    if not isinstance(data, list):
        fail(f"Patch in {source} must be a JSON array of operations")
    return data, summary if isinstance(summary, str) else None


def patch(
    spec_id: str = typer.Argument(..., help="Spec id"),
    patch_file: Optional[Path] = typer.Argument(
        None, help="JSON patch file ('-' or omitted reads stdin)"
    ),
    inline: Optional[str] = typer.Option(None, "--inline", "-i", help="Inline JSON patch"),
    summary: Optional[str] = typer.Option(None, "--summary", "-m", help="Change summary"),
) -> None:
    """Apply a JSON Patch (RFC 6902) to a spec."""
    config = get_config()
    ops, file_summary = _read_patch(patch_file, inline)
    try:
        spec = operations.patch_spec(
            get_store(), spec_id, ops, actor=config.actor, summary=summary or file_summary
        )
    except ManifoldError as exc:
        fail(str(exc))

    entry = spec.history.patches[-1]
    console.print(f"[green]✓[/green] Applied {len(ops)} operation(s) to [cyan]{spec_id}[/cyan]")
    console.print(f"  {entry.summary}", markup=False)
