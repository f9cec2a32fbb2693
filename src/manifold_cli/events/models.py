"""Audit event model for the per-spec workflow log."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from manifold_cli.events.ulid_utils import generate_event_id


class WorkflowEventRecord(BaseModel):
    """
    One audit event for a spec.

    ``event`` carries the string form of a workflow event, e.g.
    ``transition:requirements:design`` or ``validation_failed:<message>``.
    Non-workflow audit entries (patches, sync, resolutions) use their own
    prefixes (``patched:``, ``synced:``, ``resolved:``).
    """

    event_id: str = Field(default_factory=generate_event_id)
    spec_id: str
    stage: str
    event: str
    actor: str = "user"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    details: dict[str, Any] = Field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "WorkflowEventRecord":
        """Deserialize a log line payload.

        Raises:
            ValueError: If the payload is malformed
        """
        return cls.model_validate(data)

    @property
    def kind(self) -> str:
        return self.event.split(":", 1)[0]

    @property
    def detail(self) -> Optional[str]:
        _, sep, rest = self.event.partition(":")
        return rest if sep else None
