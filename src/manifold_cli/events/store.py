"""Append-only JSONL audit log, one file per spec."""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional

# Cross-platform file locking
if sys.platform == "win32":
    import msvcrt
else:
    import fcntl

from manifold_cli.events.models import WorkflowEventRecord

logger = logging.getLogger(__name__)


def _lock_file(file_handle) -> None:
    """Acquire exclusive lock on file (cross-platform)."""
    if sys.platform == "win32":
        msvcrt.locking(file_handle.fileno(), msvcrt.LK_LOCK, 1)
    else:
        fcntl.flock(file_handle.fileno(), fcntl.LOCK_EX)


def _unlock_file(file_handle) -> None:
    """Release lock on file (cross-platform)."""
    if sys.platform == "win32":
        msvcrt.locking(file_handle.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)


def get_log_path(events_dir: Path, spec_id: str) -> Path:
    """Get path to the spec's event log."""
    return events_dir / f"{spec_id}.jsonl"


def append_event(events_dir: Path, record: WorkflowEventRecord) -> None:
    """
    Append one event to the spec's log (locked, fsynced).

    Args:
        events_dir: Directory holding the per-spec logs
        record: Event to append

    Raises:
        PermissionError: If the log directory or file is not writable
        IOError: If the write keeps failing after a retry
    """
    log_path = get_log_path(events_dir, record.spec_id)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        raise PermissionError(
            f"Cannot create event directory {log_path.parent}. "
            f"Check permissions on the manifold home directory. Error: {e}"
        ) from e

    line = json.dumps(record.to_record(), separators=(",", ":")) + "\n"

    max_retries = 2
    for attempt in range(max_retries):
        try:
            with open(log_path, "a", encoding="utf-8") as f:
                _lock_file(f)
                try:
                    f.write(line)
                    f.flush()
                    os.fsync(f.fileno())
                finally:
                    _unlock_file(f)

            try:
                log_path.chmod(0o600)
            except PermissionError:
                logger.warning("⚠️  Could not set permissions on %s (continuing)", log_path)
            return

        except PermissionError as e:
            raise PermissionError(
                f"Cannot write to event log {log_path}. "
                f"Check file permissions and ownership. Error: {e}"
            ) from e

        except OSError as e:
            if attempt < max_retries - 1:
                time.sleep(0.1)
            else:
                raise IOError(
                    f"Failed to write event after {max_retries} attempts. "
                    f"Event ID: {record.event_id}. Last error: {e}"
                ) from e


def read_events(events_dir: Path, spec_id: str, kind: Optional[str] = None) -> list[WorkflowEventRecord]:
    """
    Read a spec's events in append order.

    Args:
        events_dir: Directory holding the per-spec logs
        spec_id: Spec identifier
        kind: Only return events of this kind (e.g. ``transition``)

    Returns:
        Parsed events; corrupted lines are skipped with a warning
    """
    log_path = get_log_path(events_dir, spec_id)
    if not log_path.exists():
        return []

    events = []
    with open(log_path, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = WorkflowEventRecord.from_record(json.loads(line))
            except (json.JSONDecodeError, ValueError) as e:
                logger.warning("⚠️  Skipping corrupted line %d in %s: %s", line_num, log_path, e)
                continue
            # Guard against logs copied between specs
            if record.spec_id != spec_id:
                continue
            if kind is None or record.kind == kind:
                events.append(record)
    return events
