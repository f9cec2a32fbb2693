"""Validation helpers for manifold specs.

- ``spec_validation`` – structural errors (id conventions, empty fields) and
  lint warnings (traceability, SHALL/MUST wording, acceptance criteria)
"""

from __future__ import annotations

from .spec_validation import (
    ValidationIssue,
    ValidationResult,
    check_spec,
    lint_spec,
    validate_spec,
)

__all__ = ["ValidationIssue", "ValidationResult", "check_spec", "lint_spec", "validate_spec"]
