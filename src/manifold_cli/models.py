"""Canonical spec document model.

A spec serializes to the JSON object stored on disk and exchanged with
remote peers::

    {
      "$schema": "manifold://core/v1",
      "spec_id": "...", "project": "...", "boundary": "personal",
      "name": "...", "stage": "requirements", "stages_completed": [],
      "requirements": [...], "tasks": [...], "decisions": [...],
      "history": {"created_at": 0, "updated_at": 0, "patches": [...]}
    }

Decoding is strict: a missing required field, a wrong type or an unknown
enum literal raises ``ValueError``. Unknown keys are rejected by the patch
engine before decoding ever sees them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

SCHEMA_URI = "manifold://core/v1"


def now_ts() -> int:
    """Current UTC time as unix seconds."""
    return int(datetime.now(timezone.utc).timestamp())


# ============================================================================
# Enums
# ============================================================================


class Boundary(str, Enum):
    """Isolation boundary of a spec."""

    PERSONAL = "personal"
    WORK = "work"
    COMPANY = "company"

    @classmethod
    def parse(cls, value: str) -> "Boundary":
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Invalid boundary: {value}. Use: personal, work, company") from None


class WorkflowStage(str, Enum):
    """Workflow stages, declared in lifecycle order."""

    REQUIREMENTS = "requirements"
    DESIGN = "design"
    TASKS = "tasks"
    APPROVAL = "approval"
    IMPLEMENTED = "implemented"

    @property
    def ordinal(self) -> int:
        return list(WorkflowStage).index(self)

    @classmethod
    def parse(cls, value: str) -> "WorkflowStage":
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(
                f"Invalid stage: {value}. Use: requirements, design, tasks, approval, implemented"
            ) from None


class Priority(str, Enum):
    """MoSCoW priority."""

    MUST = "must"
    SHOULD = "should"
    COULD = "could"
    WONT = "wont"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


# ============================================================================
# Decoding helpers
# ============================================================================


def _require(data: dict[str, Any], key: str, owner: str) -> Any:
    if not isinstance(data, dict):
        raise ValueError(f"{owner} must be an object, got {type(data).__name__}")
    if key not in data:
        raise ValueError(f"{owner} is missing required field '{key}'")
    return data[key]


def _str(data: dict[str, Any], key: str, owner: str) -> str:
    value = _require(data, key, owner)
    if not isinstance(value, str):
        raise ValueError(f"{owner}.{key} must be a string")
    return value


def _opt_str(data: dict[str, Any], key: str, owner: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{owner}.{key} must be a string or null")
    return value


def _str_list(data: dict[str, Any], key: str, owner: str, required: bool = False) -> list[str]:
    value = _require(data, key, owner) if required else data.get(key, [])
    if value is None and not required:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{owner}.{key} must be a list of strings")
    return list(value)


def _int(data: dict[str, Any], key: str, owner: str) -> int:
    value = _require(data, key, owner)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{owner}.{key} must be an integer")
    return value


def _enum(enum_cls, data: dict[str, Any], key: str, owner: str, default=None):
    if key not in data and default is not None:
        return default
    value = _require(data, key, owner)
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"{owner}.{key}: invalid value {value!r} (allowed: {allowed})") from None


def _item_list(data: dict[str, Any], key: str, item_cls) -> list:
    value = data.get(key, [])
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"'{key}' must be a list")
    return [item_cls.from_dict(item) for item in value]


# ============================================================================
# Items
# ============================================================================


@dataclass
class Scenario:
    """GIVEN/WHEN/THEN scenario attached to a requirement."""

    id: str
    name: str
    given: list[str]
    when: str
    then: list[str]
    edge_cases: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "given": list(self.given),
            "when": self.when,
            "then": list(self.then),
            "edge_cases": list(self.edge_cases),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Scenario":
        owner = f"scenario {data.get('id', '?') if isinstance(data, dict) else '?'}"
        return cls(
            id=_str(data, "id", owner),
            name=_str(data, "name", owner),
            given=_str_list(data, "given", owner, required=True),
            when=_str(data, "when", owner),
            then=_str_list(data, "then", owner, required=True),
            edge_cases=_str_list(data, "edge_cases", owner),
        )


@dataclass
class Requirement:
    """A requirement with its normative SHALL statement."""

    id: str
    capability: str
    title: str
    shall: str
    rationale: Optional[str] = None
    priority: Priority = Priority.SHOULD
    tags: list[str] = field(default_factory=list)
    scenarios: list[Scenario] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "capability": self.capability,
            "title": self.title,
            "shall": self.shall,
        }
        if self.rationale is not None:
            data["rationale"] = self.rationale
        data["priority"] = self.priority.value
        data["tags"] = list(self.tags)
        data["scenarios"] = [scenario.to_dict() for scenario in self.scenarios]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Requirement":
        owner = f"requirement {data.get('id', '?') if isinstance(data, dict) else '?'}"
        return cls(
            id=_str(data, "id", owner),
            capability=_str(data, "capability", owner),
            title=_str(data, "title", owner),
            shall=_str(data, "shall", owner),
            rationale=_opt_str(data, "rationale", owner),
            priority=_enum(Priority, data, "priority", owner, default=Priority.SHOULD),
            tags=_str_list(data, "tags", owner),
            scenarios=_item_list(data, "scenarios", Scenario),
        )


@dataclass
class Task:
    """A task with explicit requirement traceability."""

    id: str
    requirement_ids: list[str]
    title: str
    description: str
    status: TaskStatus
    assignee: Optional[str] = None
    acceptance: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "requirement_ids": list(self.requirement_ids),
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
        }
        if self.assignee is not None:
            data["assignee"] = self.assignee
        data["acceptance"] = list(self.acceptance)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        owner = f"task {data.get('id', '?') if isinstance(data, dict) else '?'}"
        return cls(
            id=_str(data, "id", owner),
            requirement_ids=_str_list(data, "requirement_ids", owner, required=True),
            title=_str(data, "title", owner),
            description=_str(data, "description", owner),
            status=_enum(TaskStatus, data, "status", owner),
            assignee=_opt_str(data, "assignee", owner),
            acceptance=_str_list(data, "acceptance", owner),
        )


@dataclass
class Decision:
    """A design decision with rationale."""

    id: str
    title: str
    context: str
    decision: str
    rationale: str
    date: str
    alternatives_rejected: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "context": self.context,
            "decision": self.decision,
            "rationale": self.rationale,
            "alternatives_rejected": list(self.alternatives_rejected),
            "date": self.date,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Decision":
        owner = f"decision {data.get('id', '?') if isinstance(data, dict) else '?'}"
        return cls(
            id=_str(data, "id", owner),
            title=_str(data, "title", owner),
            context=_str(data, "context", owner),
            decision=_str(data, "decision", owner),
            rationale=_str(data, "rationale", owner),
            date=_str(data, "date", owner),
            alternatives_rejected=_str_list(data, "alternatives_rejected", owner),
        )


# Allowed keys per item shape (patch engine whitelist).
SCENARIO_FIELDS = frozenset(f.name for f in fields(Scenario))
REQUIREMENT_FIELDS = frozenset(f.name for f in fields(Requirement))
TASK_FIELDS = frozenset(f.name for f in fields(Task))
DECISION_FIELDS = frozenset(f.name for f in fields(Decision))

ITEM_COLLECTIONS = ("requirements", "tasks", "decisions")


# ============================================================================
# History
# ============================================================================


@dataclass
class PatchEntry:
    """Single append-only history record."""

    timestamp: int
    actor: str
    op: str
    path: str
    summary: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "actor": self.actor,
            "op": self.op,
            "path": self.path,
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PatchEntry":
        owner = "patch entry"
        return cls(
            timestamp=_int(data, "timestamp", owner),
            actor=_str(data, "actor", owner),
            op=_str(data, "op", owner),
            path=_str(data, "path", owner),
            summary=_str(data, "summary", owner),
        )


@dataclass
class History:
    created_at: int
    updated_at: int
    patches: list[PatchEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "patches": [entry.to_dict() for entry in self.patches],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "History":
        owner = "history"
        return cls(
            created_at=_int(data, "created_at", owner),
            updated_at=_int(data, "updated_at", owner),
            patches=_item_list(data, "patches", PatchEntry),
        )


# ============================================================================
# Document
# ============================================================================


@dataclass
class SpecData:
    """The full canonical spec document."""

    spec_id: str
    project: str
    boundary: Boundary
    name: str
    stage: WorkflowStage
    history: History
    stages_completed: list[WorkflowStage] = field(default_factory=list)
    requirements: list[Requirement] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    decisions: list[Decision] = field(default_factory=list)
    schema: str = SCHEMA_URI

    @classmethod
    def new(
        cls,
        spec_id: str,
        project: str,
        name: str,
        boundary: Boundary,
        actor: str = "user",
    ) -> "SpecData":
        """Create a spec at the first stage with a single creation entry."""
        now = now_ts()
        return cls(
            spec_id=spec_id,
            project=project,
            boundary=boundary,
            name=name,
            stage=WorkflowStage.REQUIREMENTS,
            history=History(
                created_at=now,
                updated_at=now,
                patches=[PatchEntry(now, actor, "create", "/", f"Created spec: {name}")],
            ),
        )

    def get_requirement(self, item_id: str) -> Optional[Requirement]:
        return next((r for r in self.requirements if r.id == item_id), None)

    def get_task(self, item_id: str) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == item_id), None)

    def get_decision(self, item_id: str) -> Optional[Decision]:
        return next((d for d in self.decisions if d.id == item_id), None)

    def record(self, actor: str, op: str, path: str, summary: str) -> PatchEntry:
        """Append a history entry and bump ``updated_at``."""
        now = now_ts()
        entry = PatchEntry(now, actor, op, path, summary)
        self.history.patches.append(entry)
        self.history.updated_at = max(now, self.history.updated_at)
        return entry

    def to_dict(self) -> dict[str, Any]:
        return {
            "$schema": self.schema,
            "spec_id": self.spec_id,
            "project": self.project,
            "boundary": self.boundary.value,
            "name": self.name,
            "stage": self.stage.value,
            "stages_completed": [stage.value for stage in self.stages_completed],
            "requirements": [r.to_dict() for r in self.requirements],
            "tasks": [t.to_dict() for t in self.tasks],
            "decisions": [d.to_dict() for d in self.decisions],
            "history": self.history.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpecData":
        """Decode a serialized spec.

        Raises:
            ValueError: If the payload does not have the document shape
        """
        owner = "spec"
        stages = data.get("stages_completed", []) if isinstance(data, dict) else []
        if not isinstance(stages, list):
            raise ValueError("'stages_completed' must be a list")
        return cls(
            schema=str(data.get("$schema", SCHEMA_URI)) if isinstance(data, dict) else SCHEMA_URI,
            spec_id=_str(data, "spec_id", owner),
            project=_str(data, "project", owner),
            boundary=_enum(Boundary, data, "boundary", owner),
            name=_str(data, "name", owner),
            stage=_enum(WorkflowStage, data, "stage", owner),
            stages_completed=[_enum(WorkflowStage, {"stage": s}, "stage", owner) for s in stages],
            requirements=_item_list(data, "requirements", Requirement),
            tasks=_item_list(data, "tasks", Task),
            decisions=_item_list(data, "decisions", Decision),
            history=History.from_dict(_require(data, "history", owner)),
        )
