"""Tests for the JSON-file spec store."""

import json
import os
import stat
import sys
import uuid

import pytest

from manifold_cli.collaboration.models import (
    Conflict,
    ConflictStatus,
    SyncMetadata,
    SyncStatus,
)
from manifold_cli.collaboration.reviews import create_review
from manifold_cli.errors import (
    ConflictNotFoundError,
    ManifoldError,
    ResolutionError,
    ReviewNotFoundError,
    SpecExistsError,
    SpecNotFoundError,
)
from manifold_cli.events.models import WorkflowEventRecord
from manifold_cli.models import Boundary, SpecData, WorkflowStage
from manifold_cli.storage.base import SpecStore


def _conflict(spec_id: str, field_path: str = "name") -> Conflict:
    return Conflict(
        id=str(uuid.uuid4()),
        spec_id=spec_id,
        field_path=field_path,
        local_value="Local",
        remote_value="Remote",
        detected_at=1700000000,
    )


def test_implements_protocol(file_store):
    assert isinstance(file_store, SpecStore)


def test_creates_layout(file_store, manifold_paths):
    for directory in ("specs", "conflicts", "events", "reviews", "sync", "exports", "cache"):
        assert (manifold_paths.root / directory).is_dir()


def test_insert_load_round_trip(file_store, full_spec):
    file_store.insert(full_spec)
    assert file_store.exists(full_spec.spec_id)
    assert file_store.load(full_spec.spec_id).to_dict() == full_spec.to_dict()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
def test_spec_files_are_private(file_store, full_spec, manifold_paths):
    file_store.insert(full_spec)
    path = manifold_paths.specs / f"{full_spec.spec_id}.json"
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
    assert not path.with_suffix(".json.tmp").exists()


def test_insert_existing_fails(file_store, spec):
    file_store.insert(spec)
    with pytest.raises(SpecExistsError):
        file_store.insert(spec)


def test_save_and_delete_missing_fail(file_store, spec):
    with pytest.raises(SpecNotFoundError):
        file_store.save(spec)
    with pytest.raises(SpecNotFoundError):
        file_store.delete(spec.spec_id)
    with pytest.raises(SpecNotFoundError):
        file_store.load(spec.spec_id)


def test_corrupted_spec_file(file_store, manifold_paths):
    (manifold_paths.specs / "broken.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ManifoldError, match="Corrupted spec file"):
        file_store.load("broken")
    # Listing skips it instead of failing
    assert file_store.list_specs() == []


def test_list_filters_and_order(file_store):
    older = SpecData.new("old-spec", "auth", "Old", Boundary.WORK)
    older.history.updated_at -= 100
    newer = SpecData.new("new-spec", "billing", "New", Boundary.PERSONAL)
    newer.stage = WorkflowStage.DESIGN
    file_store.insert(older)
    file_store.insert(newer)

    assert [s.spec_id for s in file_store.list_specs()] == ["new-spec", "old-spec"]
    assert [s.spec_id for s in file_store.list_specs(boundary=Boundary.WORK)] == ["old-spec"]
    assert [s.spec_id for s in file_store.list_specs(stage=WorkflowStage.DESIGN)] == ["new-spec"]
    assert [s.spec_id for s in file_store.list_specs(project="auth")] == ["old-spec"]


def test_search_matches_every_term(file_store, full_spec):
    file_store.insert(full_spec)
    assert [s.spec_id for s in file_store.search("JWT signed")] == [full_spec.spec_id]
    assert file_store.search("JWT kerberos") == []


def test_conflicts(file_store, spec):
    first = _conflict(spec.spec_id)
    second = _conflict(spec.spec_id, "tasks/task-1")
    other = _conflict("other-spec")
    for conflict in (first, second, other):
        file_store.save_conflict(conflict)

    assert {c.id for c in file_store.load_conflicts(spec.spec_id)} == {first.id, second.id}
    assert len(file_store.list_conflicts()) == 3

    updated = file_store.update_conflict_status(first.id, ConflictStatus.RESOLVED_LOCAL)
    assert updated.status is ConflictStatus.RESOLVED_LOCAL
    assert [c.id for c in file_store.load_conflicts(spec.spec_id)] == [second.id]
    assert len(file_store.load_conflicts(spec.spec_id, include_resolved=True)) == 2
    assert file_store.get_conflict(first.id).is_resolved

    with pytest.raises(ResolutionError):
        file_store.update_conflict_status(first.id, ConflictStatus.RESOLVED_REMOTE)
    with pytest.raises(ConflictNotFoundError):
        file_store.get_conflict("missing")


def test_save_conflict_replaces_by_id(file_store, spec):
    conflict = _conflict(spec.spec_id)
    file_store.save_conflict(conflict)
    conflict.remote_value = "Changed"
    file_store.save_conflict(conflict)
    stored = file_store.load_conflicts(spec.spec_id)
    assert [c.remote_value for c in stored] == ["Changed"]


def test_corrupted_conflict_file(file_store, manifold_paths):
    (manifold_paths.conflicts / "x.json").write_text(json.dumps([{"id": "c"}]), encoding="utf-8")
    with pytest.raises(ManifoldError, match="Corrupted conflict file"):
        file_store.load_conflicts("x")


def test_reviews(file_store, spec):
    first = create_review(spec.spec_id, "alice", "bob")
    second = create_review(spec.spec_id, "alice", "carol")
    second.requested_at = first.requested_at + 10
    file_store.save_review(second)
    file_store.save_review(first)

    assert [r.id for r in file_store.load_reviews(spec.spec_id)] == [first.id, second.id]
    assert file_store.get_review(second.id).reviewer == "carol"
    with pytest.raises(ReviewNotFoundError):
        file_store.get_review("missing")


def test_sync_metadata(file_store, manifold_paths):
    assert file_store.load_sync_metadata("brave-falcon-auth") is None
    metadata = SyncMetadata("brave-falcon-auth", 1700000000, "abc", SyncStatus.SYNCED, "main")
    file_store.save_sync_metadata(metadata)
    assert file_store.load_sync_metadata("brave-falcon-auth") == metadata

    (manifold_paths.sync / "brave-falcon-auth.json").write_text("[]", encoding="utf-8")
    assert file_store.load_sync_metadata("brave-falcon-auth") is None


def test_events_go_to_per_spec_log(file_store, manifold_paths):
    record = WorkflowEventRecord(spec_id="brave-falcon-auth", stage="requirements", event="patched:/name")
    file_store.append_event(record)
    assert (manifold_paths.events / "brave-falcon-auth.jsonl").exists()
    assert [e.event_id for e in file_store.read_events("brave-falcon-auth")] == [record.event_id]
    assert file_store.read_events("brave-falcon-auth", kind="transition") == []
