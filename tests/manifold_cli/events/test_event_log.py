"""Tests for the JSONL audit log."""

import json

from manifold_cli.events import WorkflowEventRecord, append_event, get_log_path, read_events


def _record(spec_id="brave-falcon-auth", event="transition:requirements:design", **extra):
    return WorkflowEventRecord(spec_id=spec_id, stage="design", event=event, **extra)


def test_append_and_read_in_order(tmp_path):
    first = _record()
    second = _record(event="validation_failed:No tasks defined")
    append_event(tmp_path, first)
    append_event(tmp_path, second)

    events = read_events(tmp_path, "brave-falcon-auth")
    assert [e.event_id for e in events] == [first.event_id, second.event_id]
    assert events[1].kind == "validation_failed"
    assert events[1].detail == "No tasks defined"


def test_one_line_per_event(tmp_path):
    append_event(tmp_path, _record(details={"actor_note": "x"}))
    lines = get_log_path(tmp_path, "brave-falcon-auth").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["details"] == {"actor_note": "x"}


def test_missing_log_is_empty(tmp_path):
    assert read_events(tmp_path, "nothing-here") == []


def test_filter_by_kind(tmp_path):
    append_event(tmp_path, _record())
    append_event(tmp_path, _record(event="patched:/tasks/-"))
    assert [e.kind for e in read_events(tmp_path, "brave-falcon-auth", kind="patched")] == ["patched"]


def test_skips_corrupted_and_foreign_lines(tmp_path, caplog):
    good = _record()
    append_event(tmp_path, good)
    log_path = get_log_path(tmp_path, "brave-falcon-auth")
    foreign = _record(spec_id="someone-else")
    with open(log_path, "a", encoding="utf-8") as f:
        f.write("{truncated\n")
        f.write("\n")
        f.write(json.dumps(foreign.to_record()) + "\n")

    events = read_events(tmp_path, "brave-falcon-auth")
    assert [e.event_id for e in events] == [good.event_id]
    assert "Skipping corrupted line 2" in caplog.text


def test_event_without_detail():
    record = _record(event="created")
    assert record.kind == "created"
    assert record.detail is None
