"""Structural validation and lint checks for spec documents.

``validate_spec`` reports errors that make a spec unfit for sharing:

* empty identity fields (``spec_id``, ``project``, ``name``)
* ids that do not follow the ``req-N`` / ``sc-N`` / ``task-N`` / ``dec-N``
  conventions
* items with empty titles, statements or names

``lint_spec`` reports softer warnings (missing scenarios, requirements that
never say SHALL or MUST, tasks without acceptance criteria, and so on).
Neither function raises; both return a report.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Literal

from manifold_cli.models import SpecData

SLUG_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")
REQUIREMENT_ID_PATTERN = re.compile(r"^req-[0-9]+$", re.IGNORECASE)
SCENARIO_ID_PATTERN = re.compile(r"^sc-[0-9]+$", re.IGNORECASE)
TASK_ID_PATTERN = re.compile(r"^task-[0-9]+$", re.IGNORECASE)
DECISION_ID_PATTERN = re.compile(r"^dec-[0-9]+$", re.IGNORECASE)


@dataclass
class ValidationIssue:
    """Single validation finding."""

    check: str
    issue_type: Literal["error", "warning"]
    message: str


@dataclass
class ValidationResult:
    """Result of validating (and optionally linting) one spec."""

    spec_id: str
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> List[str]:
        return [issue.message for issue in self.issues if issue.issue_type == "error"]

    @property
    def warnings(self) -> List[str]:
        return [issue.message for issue in self.issues if issue.issue_type == "warning"]

    @property
    def passed(self) -> bool:
        """Return True if no errors (warnings are acceptable)."""
        return not self.errors

    def format_report(self) -> str:
        output = [
            f"Validation: {self.spec_id}",
            f"Errors: {len(self.errors)}",
            f"Warnings: {len(self.warnings)}",
        ]
        if not self.issues:
            output.append("All checks passed.")
            return "\n".join(output)
        for issue in self.issues:
            output.append(f"  {issue.issue_type.upper()} [{issue.check}] {issue.message}")
        return "\n".join(output)


def _check_pattern(result: ValidationResult, value: str, label: str, pattern: re.Pattern) -> None:
    if not pattern.match(value):
        result.issues.append(
            ValidationIssue(
                "id-pattern",
                "error",
                f"{label} '{value}' doesn't match required pattern {pattern.pattern}",
            )
        )


def validate_spec(spec: SpecData) -> ValidationResult:
    """Run structural checks and return every error found."""
    result = ValidationResult(spec_id=spec.spec_id)

    def error(check: str, message: str) -> None:
        result.issues.append(ValidationIssue(check, "error", message))

    for label, value in (("spec_id", spec.spec_id), ("project", spec.project), ("name", spec.name)):
        if not value.strip():
            error("required", f"{label} is required")

    if spec.spec_id:
        _check_pattern(result, spec.spec_id, "spec_id", SLUG_PATTERN)
    if spec.project:
        _check_pattern(result, spec.project, "project", SLUG_PATTERN)

    for requirement in spec.requirements:
        _check_pattern(result, requirement.id, "requirement id", REQUIREMENT_ID_PATTERN)
        if not requirement.title.strip():
            error("empty-field", f"Requirement {requirement.id} has empty title")
        if not requirement.shall.strip():
            error("empty-field", f"Requirement {requirement.id} has empty 'shall' statement")
        for scenario in requirement.scenarios:
            _check_pattern(result, scenario.id, "scenario id", SCENARIO_ID_PATTERN)
            if not scenario.name.strip():
                error("empty-field", f"Scenario {scenario.id} has empty name")

    for task in spec.tasks:
        _check_pattern(result, task.id, "task id", TASK_ID_PATTERN)
        if not task.title.strip():
            error("empty-field", f"Task {task.id} has empty title")

    for decision in spec.decisions:
        _check_pattern(result, decision.id, "decision id", DECISION_ID_PATTERN)
        if not decision.title.strip():
            error("empty-field", f"Decision {decision.id} has empty title")

    return result


def lint_spec(spec: SpecData) -> List[str]:
    """Return lint warnings for common authoring mistakes."""
    warnings: List[str] = []

    if not spec.requirements:
        warnings.append("Spec has no requirements defined")

    for requirement in spec.requirements:
        if not requirement.scenarios:
            warnings.append(f"{requirement.id}: No scenarios defined")
        statement = requirement.shall.upper()
        if "SHALL" not in statement and "MUST" not in statement:
            warnings.append(f"{requirement.id}: Requirement doesn't use SHALL or MUST")
        for scenario in requirement.scenarios:
            if not scenario.given:
                warnings.append(f"{requirement.id}/{scenario.id}: Empty 'given' preconditions")
            if not scenario.then:
                warnings.append(f"{requirement.id}/{scenario.id}: Empty 'then' outcomes")

    known_requirements = {requirement.id for requirement in spec.requirements}
    for task in spec.tasks:
        if not task.requirement_ids:
            warnings.append(f"{task.id}: Task doesn't reference any requirements")
        for requirement_id in task.requirement_ids:
            if requirement_id not in known_requirements:
                warnings.append(f"{task.id}: References non-existent requirement {requirement_id}")
        if not task.acceptance:
            warnings.append(f"{task.id}: No acceptance criteria defined")

    for label, items in (
        ("requirement", spec.requirements),
        ("task", spec.tasks),
        ("decision", spec.decisions),
    ):
        seen: set[str] = set()
        for item in items:
            if item.id in seen:
                warnings.append(f"Duplicate {label} ID: {item.id}")
            seen.add(item.id)

    return warnings


def check_spec(spec: SpecData) -> ValidationResult:
    """Validate and lint in one report (lint findings become warnings)."""
    result = validate_spec(spec)
    result.issues.extend(ValidationIssue("lint", "warning", message) for message in lint_spec(spec))
    return result
