"""Storage collaborator interface."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from manifold_cli.collaboration.models import Conflict, ConflictStatus, Review, SyncMetadata
from manifold_cli.events.models import WorkflowEventRecord
from manifold_cli.models import Boundary, SpecData, WorkflowStage


@runtime_checkable
class SpecStore(Protocol):
    """Persistence for specs and everything hanging off them.

    ``load``/``get_*`` raise the matching ``*NotFoundError``; writes of one
    document replace it as a whole.
    """

    # Specs
    def load(self, spec_id: str) -> SpecData: ...

    def exists(self, spec_id: str) -> bool: ...

    def insert(self, spec: SpecData) -> None: ...

    def save(self, spec: SpecData) -> None: ...

    def delete(self, spec_id: str) -> None: ...

    def list_specs(
        self,
        boundary: Optional[Boundary] = None,
        stage: Optional[WorkflowStage] = None,
        project: Optional[str] = None,
    ) -> list[SpecData]: ...

    def search(self, query: str) -> list[SpecData]: ...

    # Conflicts
    def load_conflicts(self, spec_id: str, include_resolved: bool = False) -> list[Conflict]: ...

    def list_conflicts(self) -> list[Conflict]: ...

    def save_conflict(self, conflict: Conflict) -> None: ...

    def get_conflict(self, conflict_id: str) -> Conflict: ...

    def update_conflict_status(self, conflict_id: str, status: ConflictStatus) -> Conflict: ...

    # Audit log
    def append_event(self, record: WorkflowEventRecord) -> None: ...

    def read_events(self, spec_id: str, kind: Optional[str] = None) -> list[WorkflowEventRecord]: ...

    # Reviews
    def save_review(self, review: Review) -> None: ...

    def load_reviews(self, spec_id: str) -> list[Review]: ...

    def get_review(self, review_id: str) -> Review: ...

    # Sync metadata
    def save_sync_metadata(self, metadata: SyncMetadata) -> None: ...

    def load_sync_metadata(self, spec_id: str) -> Optional[SyncMetadata]: ...


def extract_searchable_content(spec: SpecData) -> str:
    """Flatten the human-readable text of a spec for substring search."""
    parts = [spec.name]
    for requirement in spec.requirements:
        parts.extend([requirement.id, requirement.title, requirement.shall])
        if requirement.rationale:
            parts.append(requirement.rationale)
        parts.extend(requirement.tags)
        for scenario in requirement.scenarios:
            parts.append(scenario.name)
            parts.extend(scenario.given)
            parts.append(scenario.when)
            parts.extend(scenario.then)
    for task in spec.tasks:
        parts.extend([task.id, task.title, task.description])
        parts.extend(task.acceptance)
    for decision in spec.decisions:
        parts.extend([decision.id, decision.title, decision.context, decision.decision, decision.rationale])
    return "\n".join(parts)


def matches_filters(
    spec: SpecData,
    boundary: Optional[Boundary] = None,
    stage: Optional[WorkflowStage] = None,
    project: Optional[str] = None,
) -> bool:
    if boundary is not None and spec.boundary is not boundary:
        return False
    if stage is not None and spec.stage is not stage:
        return False
    if project is not None and spec.project != project:
        return False
    return True


def matches_query(spec: SpecData, query: str) -> bool:
    """Case-insensitive match of every whitespace-separated term."""
    haystack = f"{spec.spec_id}\n{spec.project}\n{extract_searchable_content(spec)}".lower()
    return all(term in haystack for term in query.lower().split())
