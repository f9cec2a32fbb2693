"""Tests for the patch engine."""

import pytest

from manifold_cli.core.patching import (
    PatchOperation,
    apply_patch,
    parse_pointer,
    validate_operations,
)
from manifold_cli.errors import PatchError


def test_add_requirement_appends_and_records_history(spec, make_requirement):
    """A valid add returns a new document with one patch entry."""
    patched = apply_patch(
        spec,
        [{"op": "add", "path": "/requirements/-", "value": make_requirement()}],
        actor="alice",
        summary="Add login requirement",
    )

    assert [r.id for r in patched.requirements] == ["req-1"]
    assert len(patched.history.patches) == len(spec.history.patches) + 1
    entry = patched.history.patches[-1]
    assert entry.op == "patch"
    assert entry.path == "/"
    assert entry.actor == "alice"
    assert entry.summary == "Add login requirement"


def test_input_document_is_never_mutated(spec, make_requirement):
    before = spec.to_dict()
    apply_patch(spec, [{"op": "add", "path": "/requirements/-", "value": make_requirement()}])
    assert spec.to_dict() == before


def test_summary_is_derived_when_missing(spec, make_requirement):
    patched = apply_patch(spec, [{"op": "add", "path": "/requirements/-", "value": make_requirement()}])
    assert patched.history.patches[-1].summary.startswith("Applied 1 operation(s)")


def test_replace_nested_field(full_spec):
    patched = apply_patch(
        full_spec, [{"op": "replace", "path": "/requirements/0/title", "value": "New Title"}]
    )
    assert patched.requirements[0].title == "New Title"


def test_replace_name(spec):
    patched = apply_patch(spec, [{"op": "replace", "path": "/name", "value": "Auth v2"}])
    assert patched.name == "Auth v2"


def test_remove_decision(full_spec):
    patched = apply_patch(full_spec, [{"op": "remove", "path": "/decisions/0"}])
    assert patched.decisions == []


def test_add_scenario_to_requirement(full_spec, make_scenario):
    patched = apply_patch(
        full_spec,
        [{"op": "add", "path": "/requirements/0/scenarios/-", "value": make_scenario("sc-2")}],
    )
    assert [s.id for s in patched.requirements[0].scenarios] == ["sc-1", "sc-2"]


def test_move_and_copy(full_spec, make_requirement):
    spec = apply_patch(full_spec, [{"op": "add", "path": "/requirements/-", "value": make_requirement("req-2")}])

    moved = apply_patch(spec, [{"op": "move", "from": "/requirements/1", "path": "/requirements/0"}])
    assert [r.id for r in moved.requirements] == ["req-2", "req-1"]

    copied = apply_patch(
        spec,
        [
            {"op": "copy", "from": "/requirements/0/title", "path": "/requirements/1/title"},
        ],
    )
    assert copied.requirements[1].title == copied.requirements[0].title


def test_test_operation_guards_batch(full_spec):
    ok = apply_patch(
        full_spec,
        [
            {"op": "test", "path": "/requirements/0/id", "value": "req-1"},
            {"op": "replace", "path": "/requirements/0/title", "value": "Checked"},
        ],
    )
    assert ok.requirements[0].title == "Checked"

    with pytest.raises(PatchError, match="Test failed"):
        apply_patch(
            full_spec,
            [
                {"op": "test", "path": "/requirements/0/id", "value": "req-9"},
                {"op": "replace", "path": "/requirements/0/title", "value": "Unchecked"},
            ],
        )


# ============================================================================
# Field whitelist
# ============================================================================


def test_unknown_requirement_field_is_rejected(spec, make_requirement):
    value = make_requirement(bogus="x")
    with pytest.raises(PatchError) as exc_info:
        apply_patch(spec, [{"op": "add", "path": "/requirements/-", "value": value}])
    assert exc_info.value.field == "bogus"
    assert exc_info.value.path == "/requirements/-"


def test_unknown_nested_scenario_field_is_rejected(spec, make_requirement, make_scenario):
    value = make_requirement(scenarios=[make_scenario(weird=True)])
    with pytest.raises(PatchError) as exc_info:
        apply_patch(spec, [{"op": "add", "path": "/requirements/-", "value": value}])
    assert exc_info.value.field == "weird"


def test_unknown_field_path_is_rejected(full_spec):
    with pytest.raises(PatchError) as exc_info:
        apply_patch(full_spec, [{"op": "replace", "path": "/requirements/0/bogus", "value": 1}])
    assert exc_info.value.field == "bogus"


@pytest.mark.parametrize(
    "path, factory, shape",
    [
        ("/requirements/-", "make_requirement", "Requirement"),
        ("/requirements/0/scenarios/-", "make_scenario", "Scenario"),
        ("/tasks/-", "make_task", "Task"),
        ("/decisions/-", "make_decision", "Decision"),
    ],
)
def test_every_item_shape_rejects_unknown_fields(request, full_spec, path, factory, shape):
    before = full_spec.to_dict()
    value = request.getfixturevalue(factory)(bogus="x")
    with pytest.raises(PatchError, match=f"Unknown field 'bogus' for {shape}") as exc_info:
        apply_patch(full_spec, [{"op": "add", "path": path, "value": value}])
    assert (exc_info.value.path, exc_info.value.field) == (path, "bogus")
    assert full_spec.to_dict() == before


@pytest.mark.parametrize("token", ["²", "٣", "01", "-1", "+1", "1e2", " 1"])
def test_non_canonical_array_index_is_rejected(full_spec, make_task, token):
    for operation in (
        {"op": "add", "path": f"/tasks/{token}", "value": make_task("task-2")},
        {"op": "replace", "path": f"/requirements/{token}/title", "value": "x"},
        {"op": "remove", "path": f"/requirements/0/scenarios/{token}"},
    ):
        with pytest.raises(PatchError, match="Invalid array index") as exc_info:
            apply_patch(full_spec, [operation])
        assert exc_info.value.path == operation["path"]


def test_whole_collection_replace_checks_every_item(full_spec, make_task):
    with pytest.raises(PatchError):
        apply_patch(full_spec, [{"op": "replace", "path": "/tasks", "value": [make_task(extra=1)]}])


@pytest.mark.parametrize(
    "path",
    ["/stage", "/spec_id", "/history", "/history/patches/-", "/stages_completed/-", "/boundary", ""],
)
def test_immutable_roots_are_rejected(spec, path):
    with pytest.raises(PatchError):
        apply_patch(spec, [{"op": "replace", "path": path, "value": "x"}])


def test_move_from_immutable_root_is_rejected(spec):
    with pytest.raises(PatchError):
        apply_patch(spec, [{"op": "copy", "from": "/spec_id", "path": "/name"}])


def test_name_is_scalar(spec):
    with pytest.raises(PatchError, match="scalar"):
        apply_patch(spec, [{"op": "replace", "path": "/name/0", "value": "x"}])


# ============================================================================
# Atomicity
# ============================================================================


def test_bad_operation_late_in_batch_applies_nothing(spec, make_requirement):
    """Validation covers the whole batch before anything is applied."""
    operations = [
        {"op": "add", "path": "/requirements/-", "value": make_requirement()},
        {"op": "replace", "path": "/stage", "value": "implemented"},
    ]
    before = spec.to_dict()
    with pytest.raises(PatchError):
        apply_patch(spec, operations)
    assert spec.to_dict() == before


def test_apply_failure_leaves_input_untouched(spec, make_requirement):
    operations = [
        {"op": "add", "path": "/requirements/-", "value": make_requirement()},
        {"op": "remove", "path": "/requirements/5"},
    ]
    before = spec.to_dict()
    with pytest.raises(PatchError, match="does not exist"):
        apply_patch(spec, operations)
    assert spec.to_dict() == before


def test_duplicate_ids_are_rejected(spec, make_requirement):
    with pytest.raises(PatchError, match="Duplicate id 'req-1'"):
        apply_patch(
            spec,
            [
                {"op": "add", "path": "/requirements/-", "value": make_requirement()},
                {"op": "add", "path": "/requirements/-", "value": make_requirement()},
            ],
        )


def test_duplicate_scenario_ids_are_rejected(full_spec, make_scenario):
    with pytest.raises(PatchError, match="Duplicate scenario id"):
        apply_patch(
            full_spec,
            [{"op": "add", "path": "/requirements/0/scenarios/-", "value": make_scenario("sc-1")}],
        )


def test_invalid_enum_value_is_a_shape_error(spec, make_requirement):
    with pytest.raises(PatchError, match="invalid"):
        apply_patch(
            spec,
            [{"op": "add", "path": "/requirements/-", "value": make_requirement(priority="urgent")}],
        )


def test_missing_required_field_is_a_shape_error(spec, make_requirement):
    value = make_requirement()
    del value["shall"]
    with pytest.raises(PatchError, match="shall"):
        apply_patch(spec, [{"op": "add", "path": "/requirements/-", "value": value}])


def test_move_into_own_child_is_rejected(full_spec):
    with pytest.raises(PatchError, match="own child"):
        apply_patch(
            full_spec, [{"op": "move", "from": "/requirements/0", "path": "/requirements/0/scenarios/-"}]
        )


# ============================================================================
# Parsing
# ============================================================================


def test_empty_patch_is_rejected(spec):
    with pytest.raises(PatchError, match="empty"):
        apply_patch(spec, [])


@pytest.mark.parametrize(
    "raw, message",
    [
        ("not-an-object", "must be an object"),
        ({"op": "frobnicate", "path": "/name"}, "frobnicate"),
        ({"op": "add", "path": "/name"}, "requires a 'value'"),
        ({"op": "move", "path": "/name"}, "requires a 'from'"),
        ({"op": "remove", "path": 7}, "must be a string"),
    ],
)
def test_malformed_operations(raw, message):
    with pytest.raises(PatchError, match=message):
        validate_operations([raw])


def test_parse_pointer_unescapes():
    assert parse_pointer("/a~1b/c~0d") == ["a/b", "c~d"]
    assert parse_pointer("") == []


def test_parse_pointer_requires_leading_slash():
    with pytest.raises(PatchError):
        parse_pointer("requirements/0")


def test_operations_accept_parsed_instances(spec):
    patched = apply_patch(spec, [PatchOperation(op="replace", path="/name", value="Renamed")])
    assert patched.name == "Renamed"
