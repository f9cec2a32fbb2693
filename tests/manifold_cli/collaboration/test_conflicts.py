"""Tests for conflict detection, merging and resolution."""

import pytest

from manifold_cli.collaboration.conflicts import (
    MISSING,
    apply_resolutions,
    detect_conflicts,
    format_conflict,
    resolve_conflict,
    three_way_merge,
)
from manifold_cli.collaboration.models import Conflict, ConflictStatus, ResolutionStrategy
from manifold_cli.errors import ResolutionError
from manifold_cli.models import SpecData, WorkflowStage


def _edit(spec: SpecData, **fields) -> SpecData:
    data = spec.to_dict()
    data.update(fields)
    return SpecData.from_dict(data)


def _conflict(field_path="name", local="A", remote="B", **extra) -> Conflict:
    return Conflict(
        id="c-1",
        spec_id="brave-falcon-auth",
        field_path=field_path,
        local_value=local,
        remote_value=remote,
        detected_at=1700000000,
        **extra,
    )


# ============================================================================
# Detection
# ============================================================================


def test_identical_documents_have_no_conflicts(full_spec):
    assert detect_conflicts(full_spec, full_spec) == []
    assert detect_conflicts(full_spec, full_spec, full_spec) == []


def test_scalar_difference_without_base_conflicts(spec):
    remote = _edit(spec, name="Auth (remote)")
    conflicts = detect_conflicts(spec, remote)
    assert len(conflicts) == 1
    conflict = conflicts[0]
    assert conflict.field_path == "name"
    assert conflict.local_value == "Authentication"
    assert conflict.remote_value == "Auth (remote)"
    assert conflict.base_value is None
    assert conflict.status is ConflictStatus.UNRESOLVED


def test_detection_is_symmetric_without_base(full_spec, make_requirement):
    local = _edit(full_spec, name="Local name")
    remote = _edit(
        full_spec, name="Remote name", requirements=[make_requirement(title="Remote title")]
    )
    forward = detect_conflicts(local, remote)
    backward = detect_conflicts(remote, local)

    assert [c.field_path for c in forward] == [c.field_path for c in backward]
    for f, b in zip(forward, backward):
        assert (f.local_value, f.remote_value) == (b.remote_value, b.local_value)


def test_one_sided_scalar_change_fast_forwards(spec):
    base = spec
    local = _edit(spec, name="Local rename")
    assert detect_conflicts(local, base, base) == []
    assert detect_conflicts(base, local, base) == []


def test_both_sided_scalar_change_conflicts(spec):
    local = _edit(spec, name="Local rename")
    remote = _edit(spec, name="Remote rename")
    conflicts = detect_conflicts(local, remote, spec)
    assert [c.field_path for c in conflicts] == ["name"]
    assert conflicts[0].base_value == "Authentication"


def test_stage_divergence_conflicts(full_spec):
    local = _edit(full_spec, stage="design")
    remote = _edit(full_spec, stage="tasks")
    conflicts = detect_conflicts(local, remote, full_spec)
    assert [(c.field_path, c.local_value, c.remote_value) for c in conflicts] == [
        ("stage", "design", "tasks")
    ]


def test_item_edited_on_both_sides(full_spec, make_requirement):
    local = _edit(full_spec, requirements=[make_requirement(title="Local")])
    remote = _edit(full_spec, requirements=[make_requirement(title="Remote")])
    conflicts = detect_conflicts(local, remote, full_spec)
    assert [c.field_path for c in conflicts] == ["requirements/req-1"]
    assert conflicts[0].local_value["title"] == "Local"
    assert conflicts[0].remote_value["title"] == "Remote"
    assert conflicts[0].base_value["id"] == "req-1"


def test_item_edited_on_one_side_fast_forwards(full_spec, make_task):
    remote = _edit(full_spec, tasks=[make_task(status="completed")])
    assert detect_conflicts(full_spec, remote, full_spec) == []


def test_new_items_on_both_sides_do_not_conflict(full_spec, make_decision):
    base_decisions = full_spec.to_dict()["decisions"]
    local = _edit(full_spec, decisions=base_decisions + [make_decision("dec-2")])
    remote = _edit(full_spec, decisions=base_decisions + [make_decision("dec-3")])
    assert detect_conflicts(local, remote, full_spec) == []


def test_same_new_item_with_different_content_conflicts(full_spec, make_decision):
    base_decisions = full_spec.to_dict()["decisions"]
    local = _edit(full_spec, decisions=base_decisions + [make_decision("dec-2", title="L")])
    remote = _edit(full_spec, decisions=base_decisions + [make_decision("dec-2", title="R")])
    assert [c.field_path for c in detect_conflicts(local, remote, full_spec)] == ["decisions/dec-2"]


def test_local_delete_of_untouched_item_fast_forwards(full_spec):
    local = _edit(full_spec, tasks=[])
    assert detect_conflicts(local, full_spec, full_spec) == []


def test_remote_delete_of_untouched_item_fast_forwards(full_spec):
    remote = _edit(full_spec, tasks=[])
    assert detect_conflicts(full_spec, remote, full_spec) == []


def test_local_delete_remote_edit_conflicts(full_spec, make_task):
    local = _edit(full_spec, tasks=[])
    remote = _edit(full_spec, tasks=[make_task(title="Edited remotely")])
    conflicts = detect_conflicts(local, remote, full_spec)
    assert len(conflicts) == 1
    assert conflicts[0].field_path == "tasks/task-1"
    assert conflicts[0].local_value is None
    assert conflicts[0].remote_value["title"] == "Edited remotely"


def test_remote_delete_local_edit_conflicts(full_spec, make_task):
    local = _edit(full_spec, tasks=[make_task(title="Edited locally")])
    remote = _edit(full_spec, tasks=[])
    conflicts = detect_conflicts(local, remote, full_spec)
    assert len(conflicts) == 1
    assert conflicts[0].local_value["title"] == "Edited locally"
    assert conflicts[0].remote_value is None


def test_conflict_order_and_shared_timestamp(full_spec, make_requirement, make_task, make_decision):
    local = _edit(
        full_spec,
        name="L",
        stage="design",
        requirements=[make_requirement(title="L")],
        tasks=[make_task(title="L")],
        decisions=[make_decision(title="L")],
    )
    remote = _edit(
        full_spec,
        name="R",
        stage="tasks",
        requirements=[make_requirement(title="R")],
        tasks=[make_task(title="R")],
        decisions=[make_decision(title="R")],
    )
    conflicts = detect_conflicts(local, remote, full_spec)
    assert [c.field_path for c in conflicts] == [
        "name",
        "stage",
        "requirements/req-1",
        "tasks/task-1",
        "decisions/dec-1",
    ]
    assert len({c.detected_at for c in conflicts}) == 1
    assert len({c.id for c in conflicts}) == len(conflicts)


def test_detection_does_not_mutate_inputs(full_spec):
    local = _edit(full_spec, name="L")
    before = (local.to_dict(), full_spec.to_dict())
    detect_conflicts(local, full_spec)
    assert (local.to_dict(), full_spec.to_dict()) == before


# ============================================================================
# Three-way merge
# ============================================================================


def test_merge_takes_one_sided_changes_from_both(full_spec, make_decision, make_task):
    base_decisions = full_spec.to_dict()["decisions"]
    local = _edit(full_spec, decisions=base_decisions + [make_decision("dec-2")])
    remote = _edit(full_spec, name="Renamed remotely", tasks=[make_task(status="completed")])

    merged = three_way_merge(local, remote, full_spec)

    assert merged.name == "Renamed remotely"
    assert [d.id for d in merged.decisions] == ["dec-1", "dec-2"]
    assert merged.tasks[0].status.value == "completed"


def test_merge_applies_one_sided_deletion(full_spec):
    remote = _edit(full_spec, decisions=[])
    assert three_way_merge(full_spec, remote, full_spec).decisions == []


def test_merge_takes_remote_stage_progress(full_spec):
    remote = _edit(full_spec, stage="design", stages_completed=["requirements"])
    merged = three_way_merge(full_spec, remote, full_spec)
    assert merged.stage == WorkflowStage.DESIGN
    assert merged.stages_completed == [WorkflowStage.REQUIREMENTS]


# ============================================================================
# Resolution
# ============================================================================


def test_resolve_ours_and_theirs():
    conflict = _conflict()
    assert resolve_conflict(conflict, ResolutionStrategy.OURS) == ("A", ConflictStatus.RESOLVED_LOCAL)
    assert resolve_conflict(conflict, "theirs") == ("B", ConflictStatus.RESOLVED_REMOTE)


def test_resolve_manual():
    conflict = _conflict()
    assert resolve_conflict(conflict, "manual", "C") == ("C", ConflictStatus.RESOLVED_MANUAL)
    assert resolve_conflict(conflict, "manual", None) == (None, ConflictStatus.RESOLVED_MANUAL)
    with pytest.raises(ResolutionError, match="requires a value"):
        resolve_conflict(conflict, "manual")


def test_merge_union_example():
    """Local [a, b] merged with remote [b', c] keeps local b and appends c."""
    local = [{"id": "a", "v": 1}, {"id": "b", "v": 1}]
    remote = [{"id": "b", "v": 2}, {"id": "c", "v": 1}]
    value, status = resolve_conflict(_conflict("requirements", local, remote), "merge")
    assert value == [{"id": "a", "v": 1}, {"id": "b", "v": 1}, {"id": "c", "v": 1}]
    assert status is ConflictStatus.RESOLVED_MANUAL


def test_merge_of_non_lists_is_rejected():
    with pytest.raises(ResolutionError, match="merge needs two lists"):
        resolve_conflict(_conflict(), "merge")


def test_unknown_strategy_is_rejected():
    with pytest.raises(ResolutionError, match="Unknown strategy"):
        resolve_conflict(_conflict(), "coin-flip")


def test_resolved_conflict_cannot_be_resolved_again():
    conflict = _conflict()
    conflict.mark_resolved(ConflictStatus.RESOLVED_LOCAL)
    with pytest.raises(ResolutionError, match="already resolved_local"):
        resolve_conflict(conflict, "theirs")
    with pytest.raises(ResolutionError):
        conflict.mark_resolved(ConflictStatus.RESOLVED_REMOTE)


def test_resolve_does_not_mutate_conflict():
    conflict = _conflict(base_value="Z")
    resolve_conflict(conflict, "ours")
    assert conflict.status is ConflictStatus.UNRESOLVED
    assert conflict.base_value == "Z"


def test_missing_sentinel_is_distinct_from_none():
    assert MISSING is not None
    assert not MISSING
    assert repr(MISSING) == "MISSING"


# ============================================================================
# Applying resolutions
# ============================================================================


def test_apply_resolution_replaces_item(full_spec, make_requirement):
    resolved = apply_resolutions(
        full_spec, [("requirements/req-1", make_requirement(title="Resolved"))]
    )
    assert resolved.requirements[0].title == "Resolved"
    assert full_spec.requirements[0].title == "Requirement req-1"


def test_apply_resolution_none_deletes_and_is_idempotent(full_spec):
    once = apply_resolutions(full_spec, [("tasks/task-1", None)])
    twice = apply_resolutions(once, [("tasks/task-1", None)])
    assert once.tasks == []
    assert once.to_dict() == twice.to_dict()


def test_apply_resolution_reinserts_deleted_item_idempotently(spec, make_task):
    once = apply_resolutions(spec, [("tasks/task-1", make_task())])
    twice = apply_resolutions(once, [("tasks/task-1", make_task())])
    assert [t.id for t in once.tasks] == ["task-1"]
    assert once.to_dict() == twice.to_dict()


def test_apply_resolution_scalar(spec):
    assert apply_resolutions(spec, [("name", "Resolved name")]).name == "Resolved name"


@pytest.mark.parametrize(
    "strategy, stage, completed",
    [
        ("theirs", WorkflowStage.TASKS, [WorkflowStage.REQUIREMENTS, WorkflowStage.DESIGN]),
        ("ours", WorkflowStage.APPROVAL, [WorkflowStage.REQUIREMENTS, WorkflowStage.DESIGN, WorkflowStage.TASKS]),
    ],
)
def test_stage_resolution_keeps_completed_stages_consistent(full_spec, strategy, stage, completed):
    base = _edit(full_spec, stage="design", stages_completed=["requirements"])
    local = _edit(full_spec, stage="approval", stages_completed=["requirements", "design", "tasks"])
    remote = _edit(full_spec, stage="tasks", stages_completed=["requirements", "design"])
    (conflict,) = detect_conflicts(local, remote, base)

    value, _status = resolve_conflict(conflict, strategy)
    resolved = apply_resolutions(three_way_merge(local, remote, base), [(conflict.field_path, value)])

    assert resolved.stage is stage
    assert resolved.stages_completed == completed
    assert stage not in resolved.stages_completed
    assert apply_resolutions(resolved, [("stage", value)]).to_dict() == resolved.to_dict()


def test_merge_keeps_edit_over_delete(full_spec, make_task):
    edited = _edit(full_spec, tasks=[make_task(title="Edited")])
    deleted = _edit(full_spec, tasks=[])
    assert [t.title for t in three_way_merge(deleted, edited, full_spec).tasks] == ["Edited"]
    assert [t.title for t in three_way_merge(edited, deleted, full_spec).tasks] == ["Edited"]


def test_apply_resolution_rejects_unknown_path(spec):
    with pytest.raises(ResolutionError, match="Cannot resolve field"):
        apply_resolutions(spec, [("history", {})])


def test_apply_resolution_rejects_mismatched_item(full_spec, make_requirement):
    with pytest.raises(ResolutionError, match="must be an item with id 'req-1'"):
        apply_resolutions(full_spec, [("requirements/req-1", make_requirement("req-2"))])


def test_apply_resolution_rejects_invalid_document(spec):
    with pytest.raises(ResolutionError, match="invalid"):
        apply_resolutions(spec, [("stage", "shipped")])


def test_format_conflict():
    text = format_conflict(_conflict("tasks/task-1", None, {"id": "task-1"}))
    assert text == (
        "Conflict in 'tasks/task-1'\n"
        "  Local:  (deleted)\n"
        "  Remote: (modified object)"
    )


def test_conflict_serialization_omits_missing_base():
    data = _conflict().to_dict()
    assert "base_value" not in data
    assert Conflict.from_dict(data).to_dict() == data
    assert _conflict(base_value="Z").to_dict()["base_value"] == "Z"
