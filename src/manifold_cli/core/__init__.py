"""Pure document engine: patching, workflow gating and id generation."""

from __future__ import annotations

from .identifiers import generate_spec_id
from .patching import PatchOperation, apply_patch, validate_operations
from .workflow import (
    WorkflowEvent,
    WorkflowEventKind,
    WorkflowTransition,
    advance_stage,
    apply_transition,
    can_advance,
    next_stage,
)

__all__ = [
    "PatchOperation",
    "WorkflowEvent",
    "WorkflowEventKind",
    "WorkflowTransition",
    "advance_stage",
    "apply_patch",
    "apply_transition",
    "can_advance",
    "generate_spec_id",
    "next_stage",
    "validate_operations",
]
