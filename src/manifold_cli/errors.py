"""Exception hierarchy shared by the engine, the stores and the CLI.

Every public operation either succeeds completely or raises one of these
with its inputs left untouched. Storage-level "not found" errors are raised
by the store implementations, never by the pure core.
"""

from __future__ import annotations


class ManifoldError(Exception):
    """Base class for all manifold errors."""


# ============================================================================
# Shape errors (patch engine)
# ============================================================================


class PatchError(ManifoldError):
    """A patch batch was rejected; the document is unchanged.

    Attributes:
        path: JSON pointer of the offending operation (if known)
        field: Offending field name (if the error is a whitelist violation)
    """

    def __init__(self, message: str, path: str | None = None, field: str | None = None):
        super().__init__(message)
        self.path = path
        self.field = field


# ============================================================================
# Transition errors (workflow state machine)
# ============================================================================


class WorkflowError(ManifoldError):
    """Base class for rejected stage transitions."""

    def __init__(self, message: str, from_stage: str, to_stage: str):
        super().__init__(message)
        self.from_stage = from_stage
        self.to_stage = to_stage


class AlreadyAtStageError(WorkflowError):
    def __init__(self, stage: str):
        super().__init__(f"Already at stage: {stage}", stage, stage)


class BackwardTransitionError(WorkflowError):
    def __init__(self, from_stage: str, to_stage: str):
        super().__init__(f"Cannot go backwards from {from_stage} to {to_stage}", from_stage, to_stage)


class InvalidTransitionError(WorkflowError):
    def __init__(self, from_stage: str, to_stage: str, reason: str):
        super().__init__(
            f"Invalid transition from {from_stage} to {to_stage}: {reason}", from_stage, to_stage
        )
        self.reason = reason


class StageValidationError(WorkflowError):
    """A stage gate predicate does not hold for the current content."""

    def __init__(self, from_stage: str, to_stage: str, reason: str):
        super().__init__(f"Validation failed: {reason}", from_stage, to_stage)
        self.reason = reason


# ============================================================================
# Resolution errors
# ============================================================================


class ResolutionError(ManifoldError):
    """A conflict could not be resolved with the requested strategy."""


# ============================================================================
# Collaborator errors
# ============================================================================


class SpecNotFoundError(ManifoldError):
    def __init__(self, spec_id: str):
        super().__init__(f"Spec not found: {spec_id}")
        self.spec_id = spec_id


class SpecExistsError(ManifoldError):
    def __init__(self, spec_id: str):
        super().__init__(f"Spec already exists: {spec_id}")
        self.spec_id = spec_id


class ConflictNotFoundError(ManifoldError):
    def __init__(self, conflict_id: str):
        super().__init__(f"Conflict not found: {conflict_id}")
        self.conflict_id = conflict_id


class ReviewNotFoundError(ManifoldError):
    def __init__(self, review_id: str):
        super().__init__(f"Review not found: {review_id}")
        self.review_id = review_id


class ReviewError(ManifoldError):
    """Illegal review state change (wrong actor or not pending)."""


class SyncError(ManifoldError):
    """Git or HTTP exchange with a remote peer failed."""


class ConfigError(ManifoldError):
    """Configuration file is unreadable or invalid."""
