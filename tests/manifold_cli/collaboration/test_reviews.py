"""Tests for review rules."""

import pytest

from manifold_cli.collaboration.models import Review, ReviewStatus
from manifold_cli.collaboration.reviews import (
    approve,
    cancel,
    create_review,
    format_review,
    has_pending_reviews,
    is_approved,
    reject,
    review_stats,
)
from manifold_cli.errors import ReviewError


@pytest.fixture
def review():
    return create_review("brave-falcon-auth", "alice", "bob")


def test_create_review_is_pending(review):
    assert review.status is ReviewStatus.PENDING
    assert review.reviewed_at is None
    assert has_pending_reviews([review])


def test_approve(review):
    approve(review, "bob", "Looks good")
    assert review.status is ReviewStatus.APPROVED
    assert review.comment == "Looks good"
    assert review.reviewed_at is not None
    assert is_approved([review])


def test_only_assigned_reviewer_can_approve(review):
    with pytest.raises(ReviewError, match="Only the assigned reviewer can approve"):
        approve(review, "mallory")


def test_reject_requires_comment(review):
    with pytest.raises(ReviewError, match="requires a comment"):
        reject(review, "bob", "  ")
    reject(review, "bob", "Missing scenarios")
    assert review.status is ReviewStatus.REJECTED


def test_only_pending_reviews_change(review):
    approve(review, "bob")
    with pytest.raises(ReviewError, match="not in pending state"):
        reject(review, "bob", "changed my mind")


def test_only_requester_can_cancel(review):
    with pytest.raises(ReviewError, match="Only the requester can cancel"):
        cancel(review, "bob")
    cancel(review, "alice")
    assert review.status is ReviewStatus.CANCELLED


def test_is_approved_needs_all_approved(review):
    other = create_review(review.spec_id, "alice", "carol")
    approve(review, "bob")
    assert not is_approved([review, other])
    assert not is_approved([])


def test_review_stats(review):
    other = create_review(review.spec_id, "alice", "carol")
    reject(other, "carol", "no")
    stats = review_stats([review, other])
    assert (stats.total, stats.pending, stats.rejected) == (2, 1, 1)
    assert "Total: 2" in stats.format()


def test_format_review():
    review = Review(
        id="r-1",
        spec_id="brave-falcon-auth",
        requester="alice",
        reviewer="bob",
        requested_at=0,
        status=ReviewStatus.REJECTED,
        comment="Needs work",
        reviewed_at=60,
    )
    assert format_review(review).splitlines() == [
        "❌ Review r-1 - rejected",
        "  Spec: brave-falcon-auth",
        "  Requester: alice",
        "  Reviewer: bob",
        "  Requested: 1970-01-01 00:00",
        "  Reviewed: 1970-01-01 00:01",
        "  Comment: Needs work",
    ]
