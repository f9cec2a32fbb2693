"""Store-backed spec use-cases shared by the CLI, the tool dispatcher and agents.

Each use-case loads from a ``SpecStore``, runs the pure engine, persists the
result and appends an audit event. Rejected stage transitions are logged as
``validation_failed`` events (distinct from ``transition`` events) before the
error is re-raised.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Iterable, Optional

from manifold_cli.collaboration import reviews as review_rules
from manifold_cli.collaboration.models import Review
from manifold_cli.core.identifiers import generate_spec_id
from manifold_cli.core.patching import apply_patch
from manifold_cli.core.workflow import (
    WorkflowEvent,
    advance_stage,
    apply_transition,
    can_advance,
)
from manifold_cli.errors import WorkflowError
from manifold_cli.events.models import WorkflowEventRecord
from manifold_cli.models import Boundary, SpecData, WorkflowStage
from manifold_cli.storage.base import SpecStore

logger = logging.getLogger(__name__)

ID_ATTEMPTS = 20


def create_spec(
    store: SpecStore,
    project: str,
    name: str,
    boundary: Boundary = Boundary.PERSONAL,
    actor: str = "user",
    spec_id: Optional[str] = None,
) -> SpecData:
    """Create and insert a new spec at the ``requirements`` stage."""
    if spec_id is None:
        for _ in range(ID_ATTEMPTS):
            spec_id = generate_spec_id(project)
            if not store.exists(spec_id):
                break
        else:
            spec_id = f"{spec_id}-{uuid.uuid4().hex[:4]}"
    spec = SpecData.new(spec_id, project, name, boundary, actor=actor)
    store.insert(spec)
    store.append_event(
        WorkflowEventRecord(spec_id=spec_id, stage=spec.stage.value, event="created:" + name, actor=actor)
    )
    logger.info("Created spec %s", spec_id)
    return spec


def patch_spec(
    store: SpecStore,
    spec_id: str,
    operations: Iterable[Any],
    actor: str = "user",
    summary: Optional[str] = None,
) -> SpecData:
    operations = list(operations)
    spec = store.load(spec_id)
    patched = apply_patch(spec, operations, actor=actor, summary=summary)
    store.save(patched)
    store.append_event(
        WorkflowEventRecord(
            spec_id=spec_id,
            stage=patched.stage.value,
            event=f"patched:{len(operations)}",
            actor=actor,
            details={"summary": patched.history.patches[-1].summary},
        )
    )
    return patched


def advance_spec(
    store: SpecStore,
    spec_id: str,
    target: Optional[WorkflowStage] = None,
    actor: str = "user",
) -> SpecData:
    """Advance ``spec_id`` to ``target`` (default: the next stage).

    Raises:
        WorkflowError: The transition is rejected (also logged as an event)
    """
    spec = store.load(spec_id)
    try:
        if target is None:
            target = can_advance(spec)
        transition = advance_stage(spec, target)
    except WorkflowError as exc:
        store.append_event(
            WorkflowEventRecord(
                spec_id=spec_id,
                stage=spec.stage.value,
                event=str(WorkflowEvent.validation_failed(str(exc))),
                actor=actor,
                details={"from": exc.from_stage, "to": exc.to_stage, "error": type(exc).__name__},
            )
        )
        logger.warning("Rejected transition for %s: %s", spec_id, exc)
        raise

    advanced = apply_transition(spec, transition, actor=actor)
    store.save(advanced)
    store.append_event(
        WorkflowEventRecord(
            spec_id=spec_id,
            stage=transition.from_stage.value,
            event=str(WorkflowEvent.completed(transition.from_stage)),
            actor=actor,
        )
    )
    store.append_event(
        WorkflowEventRecord(
            spec_id=spec_id, stage=advanced.stage.value, event=str(transition.event), actor=actor
        )
    )
    logger.info("%s advanced to %s", spec_id, advanced.stage.value)
    return advanced


# ============================================================================
# Reviews
# ============================================================================


def request_review(store: SpecStore, spec_id: str, requester: str, reviewer: str) -> Review:
    spec = store.load(spec_id)
    review = review_rules.create_review(spec_id, requester, reviewer)
    store.save_review(review)
    store.append_event(
        WorkflowEventRecord(
            spec_id=spec_id,
            stage=spec.stage.value,
            event=f"review_requested:{reviewer}",
            actor=requester,
            details={"review_id": review.id},
        )
    )
    return review


def approve_review(store: SpecStore, review_id: str, reviewer: str, comment: Optional[str] = None) -> Review:
    review = store.get_review(review_id)
    review_rules.approve(review, reviewer, comment)
    store.save_review(review)
    spec = store.load(review.spec_id)
    store.append_event(
        WorkflowEventRecord(
            spec_id=review.spec_id,
            stage=spec.stage.value,
            event=str(WorkflowEvent.approved(reviewer)),
            actor=reviewer,
            details={"review_id": review.id},
        )
    )
    return review


def reject_review(store: SpecStore, review_id: str, reviewer: str, comment: str) -> Review:
    review = store.get_review(review_id)
    review_rules.reject(review, reviewer, comment)
    store.save_review(review)
    spec = store.load(review.spec_id)
    store.append_event(
        WorkflowEventRecord(
            spec_id=review.spec_id,
            stage=spec.stage.value,
            event=str(WorkflowEvent.rejected(comment)),
            actor=reviewer,
            details={"review_id": review.id},
        )
    )
    return review


def cancel_review(store: SpecStore, review_id: str, requester: str) -> Review:
    review = store.get_review(review_id)
    review_rules.cancel(review, requester)
    store.save_review(review)
    return review
