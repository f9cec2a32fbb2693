"""JSON-file store under ``~/.manifold``.

Documents are written atomically (temp file, fsync, rename) with 0600
permissions; the audit log is the locked JSONL store from
``manifold_cli.events.store``.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from manifold_cli.collaboration.models import Conflict, ConflictStatus, Review, SyncMetadata
from manifold_cli.config import ManifoldPaths
from manifold_cli.errors import (
    ConflictNotFoundError,
    ManifoldError,
    ReviewNotFoundError,
    SpecExistsError,
    SpecNotFoundError,
)
from manifold_cli.events import store as event_log
from manifold_cli.events.models import WorkflowEventRecord
from manifold_cli.models import Boundary, SpecData, WorkflowStage
from manifold_cli.storage.base import matches_filters, matches_query

logger = logging.getLogger(__name__)


def _atomic_write_json(path: Path, data: Any) -> None:
    """Write JSON to ``path`` via temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(path.suffix + ".tmp")
    with open(temp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    temp_path.replace(path)
    try:
        path.chmod(0o600)
    except PermissionError:
        logger.warning("⚠️  Could not set permissions on %s (continuing)", path)


def _read_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class FileSpecStore:
    """``SpecStore`` backed by JSON files in a ``ManifoldPaths`` layout."""

    def __init__(self, paths: Optional[ManifoldPaths] = None) -> None:
        self.paths = paths or ManifoldPaths.default()
        self.paths.ensure_dirs()

    # ------------------------------------------------------------------
    # Specs
    # ------------------------------------------------------------------

    def _spec_path(self, spec_id: str) -> Path:
        return self.paths.specs / f"{spec_id}.json"

    def exists(self, spec_id: str) -> bool:
        return self._spec_path(spec_id).exists()

    def load(self, spec_id: str) -> SpecData:
        path = self._spec_path(spec_id)
        if not path.exists():
            raise SpecNotFoundError(spec_id)
        try:
            return SpecData.from_dict(_read_json(path))
        except (json.JSONDecodeError, ValueError) as e:
            raise ManifoldError(f"Corrupted spec file {path}: {e}") from e

    def insert(self, spec: SpecData) -> None:
        if self.exists(spec.spec_id):
            raise SpecExistsError(spec.spec_id)
        _atomic_write_json(self._spec_path(spec.spec_id), spec.to_dict())

    def save(self, spec: SpecData) -> None:
        if not self.exists(spec.spec_id):
            raise SpecNotFoundError(spec.spec_id)
        _atomic_write_json(self._spec_path(spec.spec_id), spec.to_dict())

    def delete(self, spec_id: str) -> None:
        path = self._spec_path(spec_id)
        if not path.exists():
            raise SpecNotFoundError(spec_id)
        path.unlink()

    def _iter_specs(self):
        for path in sorted(self.paths.specs.glob("*.json")):
            try:
                yield SpecData.from_dict(_read_json(path))
            except (json.JSONDecodeError, ValueError) as e:
                logger.warning("⚠️  Skipping corrupted spec file %s: %s", path, e)

    def list_specs(
        self,
        boundary: Optional[Boundary] = None,
        stage: Optional[WorkflowStage] = None,
        project: Optional[str] = None,
    ) -> list[SpecData]:
        specs = [s for s in self._iter_specs() if matches_filters(s, boundary, stage, project)]
        return sorted(specs, key=lambda s: s.history.updated_at, reverse=True)

    def search(self, query: str) -> list[SpecData]:
        return [spec for spec in self._iter_specs() if matches_query(spec, query)]

    # ------------------------------------------------------------------
    # Conflicts
    # ------------------------------------------------------------------

    def _conflict_path(self, spec_id: str) -> Path:
        return self.paths.conflicts / f"{spec_id}.json"

    def _read_conflicts(self, path: Path) -> list[Conflict]:
        if not path.exists():
            return []
        try:
            return [Conflict.from_dict(item) for item in _read_json(path)]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ManifoldError(f"Corrupted conflict file {path}: {e}") from e

    def _write_conflicts(self, spec_id: str, conflicts: list[Conflict]) -> None:
        _atomic_write_json(self._conflict_path(spec_id), [c.to_dict() for c in conflicts])

    def load_conflicts(self, spec_id: str, include_resolved: bool = False) -> list[Conflict]:
        conflicts = self._read_conflicts(self._conflict_path(spec_id))
        if include_resolved:
            return conflicts
        return [c for c in conflicts if not c.is_resolved]

    def list_conflicts(self) -> list[Conflict]:
        active: list[Conflict] = []
        for path in sorted(self.paths.conflicts.glob("*.json")):
            active.extend(c for c in self._read_conflicts(path) if not c.is_resolved)
        return active

    def save_conflict(self, conflict: Conflict) -> None:
        conflicts = self.load_conflicts(conflict.spec_id, include_resolved=True)
        conflicts = [c for c in conflicts if c.id != conflict.id]
        conflicts.append(conflict)
        self._write_conflicts(conflict.spec_id, conflicts)

    def get_conflict(self, conflict_id: str) -> Conflict:
        for path in sorted(self.paths.conflicts.glob("*.json")):
            for conflict in self._read_conflicts(path):
                if conflict.id == conflict_id:
                    return conflict
        raise ConflictNotFoundError(conflict_id)

    def update_conflict_status(self, conflict_id: str, status: ConflictStatus) -> Conflict:
        conflict = self.get_conflict(conflict_id)
        conflict.mark_resolved(status)
        conflicts = self.load_conflicts(conflict.spec_id, include_resolved=True)
        self._write_conflicts(
            conflict.spec_id, [conflict if c.id == conflict_id else c for c in conflicts]
        )
        return conflict

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def append_event(self, record: WorkflowEventRecord) -> None:
        event_log.append_event(self.paths.events, record)

    def read_events(self, spec_id: str, kind: Optional[str] = None) -> list[WorkflowEventRecord]:
        return event_log.read_events(self.paths.events, spec_id, kind)

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    def _review_path(self, spec_id: str) -> Path:
        return self.paths.reviews / f"{spec_id}.json"

    def load_reviews(self, spec_id: str) -> list[Review]:
        path = self._review_path(spec_id)
        if not path.exists():
            return []
        try:
            return [Review.from_dict(item) for item in _read_json(path)]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ManifoldError(f"Corrupted review file {path}: {e}") from e

    def save_review(self, review: Review) -> None:
        reviews = [r for r in self.load_reviews(review.spec_id) if r.id != review.id]
        reviews.append(review)
        reviews.sort(key=lambda r: r.requested_at)
        _atomic_write_json(self._review_path(review.spec_id), [r.to_dict() for r in reviews])

    def get_review(self, review_id: str) -> Review:
        for path in sorted(self.paths.reviews.glob("*.json")):
            for review in self.load_reviews(path.stem):
                if review.id == review_id:
                    return review
        raise ReviewNotFoundError(review_id)

    # ------------------------------------------------------------------
    # Sync metadata
    # ------------------------------------------------------------------

    def _sync_path(self, spec_id: str) -> Path:
        return self.paths.sync / f"{spec_id}.json"

    def save_sync_metadata(self, metadata: SyncMetadata) -> None:
        _atomic_write_json(self._sync_path(metadata.spec_id), metadata.to_dict())

    def load_sync_metadata(self, spec_id: str) -> Optional[SyncMetadata]:
        path = self._sync_path(spec_id)
        if not path.exists():
            return None
        try:
            return SyncMetadata.from_dict(_read_json(path))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("⚠️  Corrupted sync metadata %s: %s", path, e)
            return None
