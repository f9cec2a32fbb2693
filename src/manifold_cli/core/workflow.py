"""Forward-only workflow state machine.

Stages advance one step at a time, and each edge is gated by a content
predicate (requirements need a SHALL statement before design starts, and
so on). ``advance_stage`` only decides; ``apply_transition`` produces the
advanced document.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from manifold_cli.errors import (
    AlreadyAtStageError,
    BackwardTransitionError,
    InvalidTransitionError,
    StageValidationError,
)
from manifold_cli.models import SpecData, WorkflowStage

logger = logging.getLogger(__name__)


# ============================================================================
# Events
# ============================================================================


class WorkflowEventKind(str, Enum):
    TRANSITION = "transition"
    VALIDATION_FAILED = "validation_failed"
    COMPLETED = "completed"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class WorkflowEvent:
    """Typed workflow event with a ``kind:arg[:arg]`` string form."""

    kind: WorkflowEventKind
    args: tuple[str, ...]

    @classmethod
    def transition(cls, from_stage: WorkflowStage, to_stage: WorkflowStage) -> "WorkflowEvent":
        return cls(WorkflowEventKind.TRANSITION, (from_stage.value, to_stage.value))

    @classmethod
    def validation_failed(cls, message: str) -> "WorkflowEvent":
        return cls(WorkflowEventKind.VALIDATION_FAILED, (message,))

    @classmethod
    def completed(cls, stage: WorkflowStage) -> "WorkflowEvent":
        return cls(WorkflowEventKind.COMPLETED, (stage.value,))

    @classmethod
    def approved(cls, approver: str) -> "WorkflowEvent":
        return cls(WorkflowEventKind.APPROVED, (approver,))

    @classmethod
    def rejected(cls, reason: str) -> "WorkflowEvent":
        return cls(WorkflowEventKind.REJECTED, (reason,))

    @classmethod
    def parse(cls, value: str) -> "WorkflowEvent":
        kind_text, _, rest = value.partition(":")
        try:
            kind = WorkflowEventKind(kind_text)
        except ValueError:
            raise ValueError(f"Unknown workflow event: {value}") from None
        if kind is WorkflowEventKind.TRANSITION:
            from_stage, sep, to_stage = rest.partition(":")
            if not sep:
                raise ValueError(f"Malformed transition event: {value}")
            return cls(kind, (from_stage, to_stage))
        return cls(kind, (rest,))

    def __str__(self) -> str:
        return ":".join((self.kind.value, *self.args))


@dataclass(frozen=True)
class WorkflowTransition:
    """A validated, not yet applied, stage change."""

    from_stage: WorkflowStage
    to_stage: WorkflowStage
    event: WorkflowEvent


# ============================================================================
# Edge predicates
# ============================================================================


def _requirements_to_design(spec: SpecData) -> Optional[str]:
    if not spec.requirements:
        return "Cannot advance to design: no requirements defined"
    if not any(requirement.shall.strip() for requirement in spec.requirements):
        return "Cannot advance to design: no SHALL statements defined"
    return None


def _design_to_tasks(spec: SpecData) -> Optional[str]:
    if not spec.decisions:
        return "Cannot advance to tasks: no design decisions documented"
    return None


def _tasks_to_approval(spec: SpecData) -> Optional[str]:
    if not spec.tasks:
        return "Cannot advance to approval: no tasks defined"
    for task in spec.tasks:
        if not task.requirement_ids:
            return f"Task {task.id} has no requirement traceability"
    return None


def _approval_to_implemented(spec: SpecData) -> Optional[str]:
    # Manual approval gate; no content predicate.
    return None


STAGE_GATES: dict[tuple[WorkflowStage, WorkflowStage], Callable[[SpecData], Optional[str]]] = {
    (WorkflowStage.REQUIREMENTS, WorkflowStage.DESIGN): _requirements_to_design,
    (WorkflowStage.DESIGN, WorkflowStage.TASKS): _design_to_tasks,
    (WorkflowStage.TASKS, WorkflowStage.APPROVAL): _tasks_to_approval,
    (WorkflowStage.APPROVAL, WorkflowStage.IMPLEMENTED): _approval_to_implemented,
}


def validate_transition(spec: SpecData, from_stage: WorkflowStage, to_stage: WorkflowStage) -> None:
    """Check the edge predicate for ``from_stage -> to_stage``.

    Raises:
        InvalidTransitionError: If the stages are not adjacent
        StageValidationError: If the content does not satisfy the gate
    """
    gate = STAGE_GATES.get((from_stage, to_stage))
    if gate is None:
        raise InvalidTransitionError(
            from_stage.value, to_stage.value, "Must advance through stages sequentially"
        )
    reason = gate(spec)
    if reason is not None:
        raise StageValidationError(from_stage.value, to_stage.value, reason)


# ============================================================================
# Public operations
# ============================================================================


def next_stage(stage: WorkflowStage) -> Optional[WorkflowStage]:
    """Return the stage after ``stage``, or None at the final stage."""
    stages = list(WorkflowStage)
    position = stages.index(stage)
    return stages[position + 1] if position + 1 < len(stages) else None


def advance_stage(spec: SpecData, target: WorkflowStage) -> WorkflowTransition:
    """Decide whether ``spec`` may move to ``target``.

    Pure: the document is not modified. Use ``apply_transition`` to get the
    advanced document.

    Raises:
        AlreadyAtStageError: target equals the current stage
        BackwardTransitionError: target is before the current stage
        InvalidTransitionError: target skips a stage
        StageValidationError: the edge predicate does not hold
    """
    current = spec.stage
    if current == target:
        raise AlreadyAtStageError(target.value)
    if target.ordinal < current.ordinal:
        raise BackwardTransitionError(current.value, target.value)
    validate_transition(spec, current, target)
    return WorkflowTransition(current, target, WorkflowEvent.transition(current, target))


def can_advance(spec: SpecData) -> WorkflowStage:
    """Return the stage ``spec`` would auto-advance to.

    Raises:
        StageValidationError: At the final stage, or when the gate fails
    """
    target = next_stage(spec.stage)
    if target is None:
        raise StageValidationError(
            spec.stage.value, spec.stage.value, "Already at final stage (implemented)"
        )
    validate_transition(spec, spec.stage, target)
    return target


def apply_transition(spec: SpecData, transition: WorkflowTransition, actor: str = "user") -> SpecData:
    """Return a copy of ``spec`` advanced along ``transition``."""
    advanced = copy.deepcopy(spec)
    if transition.from_stage not in advanced.stages_completed:
        advanced.stages_completed.append(transition.from_stage)
    advanced.stage = transition.to_stage
    advanced.record(
        actor,
        "advance",
        "/stage",
        f"Advanced from {transition.from_stage.value} to {transition.to_stage.value}",
    )
    logger.debug("%s: %s", spec.spec_id, transition.event)
    return advanced
