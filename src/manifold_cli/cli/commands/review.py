"""Review commands: request, approve, reject, cancel, list."""

from __future__ import annotations

from typing import Optional

import typer

from manifold_cli import operations
from manifold_cli.cli.helpers import console, fail, get_config, get_store, print_json
from manifold_cli.collaboration.reviews import format_review, is_approved, review_stats
from manifold_cli.errors import ManifoldError, SpecNotFoundError

app = typer.Typer(
    name="review",
    help="Request and record reviews of a spec",
    no_args_is_help=True,
)


@app.command("request")
def request(
    spec_id: str = typer.Argument(..., help="Spec id"),
    reviewer: str = typer.Option(..., "--reviewer", "-r", help="Who should review"),
    requester: Optional[str] = typer.Option(None, "--as", help="Requester (default: configured actor)"),
) -> None:
    """Ask someone to review a spec."""
    actor = requester or get_config().actor
    try:
        review = operations.request_review(get_store(), spec_id, actor, reviewer)
    except ManifoldError as exc:
        fail(str(exc))
    console.print(f"[green]✓[/green] Review [cyan]{review.id}[/cyan] requested from {reviewer}")


@app.command("approve")
def approve(
    review_id: str = typer.Argument(..., help="Review id"),
    comment: Optional[str] = typer.Option(None, "--comment", "-c"),
    reviewer: Optional[str] = typer.Option(None, "--as", help="Reviewer (default: configured actor)"),
) -> None:
    """Approve a pending review."""
    actor = reviewer or get_config().actor
    try:
        review = operations.approve_review(get_store(), review_id, actor, comment)
    except ManifoldError as exc:
        fail(str(exc))
    console.print(f"[green]✓[/green] Approved review [cyan]{review.id}[/cyan] for {review.spec_id}")


@app.command("reject")
def reject(
    review_id: str = typer.Argument(..., help="Review id"),
    comment: str = typer.Option(..., "--comment", "-c", help="Why the spec is rejected"),
    reviewer: Optional[str] = typer.Option(None, "--as", help="Reviewer (default: configured actor)"),
) -> None:
    """Reject a pending review (a comment is required)."""
    actor = reviewer or get_config().actor
    try:
        review = operations.reject_review(get_store(), review_id, actor, comment)
    except ManifoldError as exc:
        fail(str(exc))
    console.print(f"[red]✗[/red] Rejected review [cyan]{review.id}[/cyan] for {review.spec_id}")


@app.command("cancel")
def cancel(
    review_id: str = typer.Argument(..., help="Review id"),
    requester: Optional[str] = typer.Option(None, "--as", help="Requester (default: configured actor)"),
) -> None:
    """Cancel a review you requested."""
    actor = requester or get_config().actor
    try:
        review = operations.cancel_review(get_store(), review_id, actor)
    except ManifoldError as exc:
        fail(str(exc))
    console.print(f"[green]✓[/green] Cancelled review [cyan]{review.id}[/cyan]")


@app.command("list")
def list_reviews(
    spec_id: str = typer.Argument(..., help="Spec id"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """List the reviews of a spec."""
    store = get_store()
    if not store.exists(spec_id):
        fail(str(SpecNotFoundError(spec_id)))
    reviews = store.load_reviews(spec_id)
    if json_output:
        print_json(
            {"spec_id": spec_id, "approved": is_approved(reviews), "reviews": [r.to_dict() for r in reviews]}
        )
        return
    if not reviews:
        console.print(f"[yellow]No reviews for {spec_id}[/yellow]")
        return
    for review in reviews:
        console.print(format_review(review), markup=False, highlight=False)
        console.print()
    console.print(review_stats(reviews).format(), markup=False)
