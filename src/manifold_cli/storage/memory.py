"""In-process ``SpecStore`` for tests and embedding."""

from __future__ import annotations

import threading
from typing import Any, Optional

from manifold_cli.collaboration.models import Conflict, ConflictStatus, Review, SyncMetadata
from manifold_cli.errors import (
    ConflictNotFoundError,
    ReviewNotFoundError,
    SpecExistsError,
    SpecNotFoundError,
)
from manifold_cli.events.models import WorkflowEventRecord
from manifold_cli.models import Boundary, SpecData, WorkflowStage
from manifold_cli.storage.base import matches_filters, matches_query


class InMemorySpecStore:
    """Keeps serialized copies, so callers never share state with the store."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._specs: dict[str, dict[str, Any]] = {}
        self._conflicts: dict[str, dict[str, Any]] = {}
        self._events: list[dict[str, Any]] = []
        self._reviews: dict[str, dict[str, Any]] = {}
        self._sync: dict[str, dict[str, Any]] = {}

    def exists(self, spec_id: str) -> bool:
        return spec_id in self._specs

    def load(self, spec_id: str) -> SpecData:
        with self._lock:
            if spec_id not in self._specs:
                raise SpecNotFoundError(spec_id)
            return SpecData.from_dict(self._specs[spec_id])

    def insert(self, spec: SpecData) -> None:
        with self._lock:
            if spec.spec_id in self._specs:
                raise SpecExistsError(spec.spec_id)
            self._specs[spec.spec_id] = spec.to_dict()

    def save(self, spec: SpecData) -> None:
        with self._lock:
            if spec.spec_id not in self._specs:
                raise SpecNotFoundError(spec.spec_id)
            self._specs[spec.spec_id] = spec.to_dict()

    def delete(self, spec_id: str) -> None:
        with self._lock:
            if self._specs.pop(spec_id, None) is None:
                raise SpecNotFoundError(spec_id)

    def list_specs(
        self,
        boundary: Optional[Boundary] = None,
        stage: Optional[WorkflowStage] = None,
        project: Optional[str] = None,
    ) -> list[SpecData]:
        with self._lock:
            specs = [SpecData.from_dict(data) for data in self._specs.values()]
        specs = [s for s in specs if matches_filters(s, boundary, stage, project)]
        return sorted(specs, key=lambda s: s.history.updated_at, reverse=True)

    def search(self, query: str) -> list[SpecData]:
        return [spec for spec in self.list_specs() if matches_query(spec, query)]

    # Conflicts

    def load_conflicts(self, spec_id: str, include_resolved: bool = False) -> list[Conflict]:
        with self._lock:
            conflicts = [
                Conflict.from_dict(data)
                for data in self._conflicts.values()
                if data["spec_id"] == spec_id
            ]
        return conflicts if include_resolved else [c for c in conflicts if not c.is_resolved]

    def list_conflicts(self) -> list[Conflict]:
        with self._lock:
            conflicts = [Conflict.from_dict(data) for data in self._conflicts.values()]
        return [c for c in conflicts if not c.is_resolved]

    def save_conflict(self, conflict: Conflict) -> None:
        with self._lock:
            self._conflicts[conflict.id] = conflict.to_dict()

    def get_conflict(self, conflict_id: str) -> Conflict:
        with self._lock:
            if conflict_id not in self._conflicts:
                raise ConflictNotFoundError(conflict_id)
            return Conflict.from_dict(self._conflicts[conflict_id])

    def update_conflict_status(self, conflict_id: str, status: ConflictStatus) -> Conflict:
        with self._lock:
            conflict = self.get_conflict(conflict_id)
            conflict.mark_resolved(status)
            self._conflicts[conflict_id] = conflict.to_dict()
            return conflict

    # Audit log

    def append_event(self, record: WorkflowEventRecord) -> None:
        with self._lock:
            self._events.append(record.to_record())

    def read_events(self, spec_id: str, kind: Optional[str] = None) -> list[WorkflowEventRecord]:
        with self._lock:
            records = [WorkflowEventRecord.from_record(data) for data in self._events]
        return [
            r for r in records if r.spec_id == spec_id and (kind is None or r.kind == kind)
        ]

    # Reviews

    def save_review(self, review: Review) -> None:
        with self._lock:
            self._reviews[review.id] = review.to_dict()

    def load_reviews(self, spec_id: str) -> list[Review]:
        with self._lock:
            reviews = [Review.from_dict(d) for d in self._reviews.values() if d["spec_id"] == spec_id]
        return sorted(reviews, key=lambda r: r.requested_at)

    def get_review(self, review_id: str) -> Review:
        with self._lock:
            if review_id not in self._reviews:
                raise ReviewNotFoundError(review_id)
            return Review.from_dict(self._reviews[review_id])

    # Sync metadata

    def save_sync_metadata(self, metadata: SyncMetadata) -> None:
        with self._lock:
            self._sync[metadata.spec_id] = metadata.to_dict()

    def load_sync_metadata(self, spec_id: str) -> Optional[SyncMetadata]:
        with self._lock:
            data = self._sync.get(spec_id)
        return SyncMetadata.from_dict(data) if data is not None else None
