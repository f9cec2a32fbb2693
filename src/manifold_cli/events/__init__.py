"""
Audit event log.

Storage Format:
- ~/.manifold/events/<spec_id>.jsonl (newline-delimited JSON, one file per spec)
- Event ids are monotonic ULIDs
"""

from .models import WorkflowEventRecord
from .store import append_event, get_log_path, read_events
from .ulid_utils import generate_event_id, validate_ulid_format

__all__ = [
    "WorkflowEventRecord",
    "append_event",
    "generate_event_id",
    "get_log_path",
    "read_events",
    "validate_ulid_format",
]
