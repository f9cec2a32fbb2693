"""Review requests: create, approve, reject, cancel and summarize."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from manifold_cli.collaboration.models import Review, ReviewStatus
from manifold_cli.errors import ReviewError
from manifold_cli.models import now_ts

STATUS_ICONS = {
    ReviewStatus.PENDING: "⏳",
    ReviewStatus.APPROVED: "✅",
    ReviewStatus.REJECTED: "❌",
    ReviewStatus.CANCELLED: "🚫",
}


def create_review(spec_id: str, requester: str, reviewer: str) -> Review:
    """Open a pending review of ``spec_id`` assigned to ``reviewer``."""
    return Review(
        id=str(uuid.uuid4()),
        spec_id=spec_id,
        requester=requester,
        reviewer=reviewer,
        requested_at=now_ts(),
    )


def _ensure_pending(review: Review) -> None:
    if review.status is not ReviewStatus.PENDING:
        raise ReviewError("Review is not in pending state")


def approve(review: Review, reviewer: str, comment: Optional[str] = None) -> None:
    _ensure_pending(review)
    if reviewer != review.reviewer:
        raise ReviewError("Only the assigned reviewer can approve")
    review.status = ReviewStatus.APPROVED
    review.comment = comment
    review.reviewed_at = now_ts()


def reject(review: Review, reviewer: str, comment: str) -> None:
    """Reject a pending review. A reason is mandatory."""
    _ensure_pending(review)
    if reviewer != review.reviewer:
        raise ReviewError("Only the assigned reviewer can reject")
    if not comment or not comment.strip():
        raise ReviewError("Rejecting a review requires a comment")
    review.status = ReviewStatus.REJECTED
    review.comment = comment
    review.reviewed_at = now_ts()


def cancel(review: Review, requester: str) -> None:
    _ensure_pending(review)
    if requester != review.requester:
        raise ReviewError("Only the requester can cancel")
    review.status = ReviewStatus.CANCELLED
    review.reviewed_at = now_ts()


def has_pending_reviews(reviews: Iterable[Review]) -> bool:
    return any(review.status is ReviewStatus.PENDING for review in reviews)


def is_approved(reviews: Iterable[Review]) -> bool:
    """True when there is at least one review and every review is approved."""
    reviews = list(reviews)
    return bool(reviews) and all(review.status is ReviewStatus.APPROVED for review in reviews)


@dataclass
class ReviewStats:
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    cancelled: int = 0

    def format(self) -> str:
        return (
            f"Total: {self.total} | ⏳ Pending: {self.pending} | ✅ Approved: {self.approved} "
            f"| ❌ Rejected: {self.rejected} | 🚫 Cancelled: {self.cancelled}"
        )


def review_stats(reviews: Iterable[Review]) -> ReviewStats:
    stats = ReviewStats()
    for review in reviews:
        stats.total += 1
        setattr(stats, review.status.value, getattr(stats, review.status.value) + 1)
    return stats


def _format_ts(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


def format_review(review: Review) -> str:
    lines = [
        f"{STATUS_ICONS[review.status]} Review {review.id} - {review.status.value}",
        f"  Spec: {review.spec_id}",
        f"  Requester: {review.requester}",
        f"  Reviewer: {review.reviewer}",
        f"  Requested: {_format_ts(review.requested_at)}",
    ]
    if review.reviewed_at is not None:
        lines.append(f"  Reviewed: {_format_ts(review.reviewed_at)}")
    if review.comment:
        lines.append(f"  Comment: {review.comment}")
    return "\n".join(lines)
