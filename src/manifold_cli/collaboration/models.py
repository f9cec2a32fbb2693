"""Collaboration models: conflicts, reviews and sync metadata."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from manifold_cli.errors import ResolutionError


class ConflictStatus(str, Enum):
    UNRESOLVED = "unresolved"
    RESOLVED_LOCAL = "resolved_local"
    RESOLVED_REMOTE = "resolved_remote"
    RESOLVED_MANUAL = "resolved_manual"


class ResolutionStrategy(str, Enum):
    """How to settle a conflict."""

    OURS = "ours"  # keep local
    THEIRS = "theirs"  # accept remote
    MANUAL = "manual"  # caller supplies the value
    MERGE = "merge"  # union of list values, local wins on id collision


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class SyncStatus(str, Enum):
    SYNCED = "synced"
    MODIFIED = "modified"
    CONFLICTED = "conflicted"
    UNSYNCED = "unsynced"


@dataclass
class Conflict:
    """
    A divergent edit between a local and a remote copy of one spec.

    Stored in: ~/.manifold/conflicts/<spec_id>.json

    Fields:
    - id: uuid4 string
    - field_path: top-level field (``name``) or ``<collection>/<item-id>``
    - local_value / remote_value: JSON values; None means "deleted on that side"
    - base_value: common-ancestor value, None when no ancestor was known
    - detected_at: unix seconds, shared by every conflict of one detection run
    - status: ``unresolved`` until resolved exactly once
    """
    id: str
    spec_id: str
    field_path: str
    local_value: Any
    remote_value: Any
    detected_at: int
    base_value: Any = None
    status: ConflictStatus = ConflictStatus.UNRESOLVED

    @property
    def is_resolved(self) -> bool:
        return self.status is not ConflictStatus.UNRESOLVED

    def mark_resolved(self, status: ConflictStatus) -> None:
        """Move from ``unresolved`` to a resolved status (once)."""
        if self.is_resolved:
            raise ResolutionError(f"Conflict {self.id} is already {self.status.value}")
        if status is ConflictStatus.UNRESOLVED:
            raise ResolutionError("Cannot mark a conflict as unresolved")
        self.status = status

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "spec_id": self.spec_id,
            "field_path": self.field_path,
            "local_value": self.local_value,
            "remote_value": self.remote_value,
        }
        if self.base_value is not None:
            data["base_value"] = self.base_value
        data["detected_at"] = self.detected_at
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Conflict":
        return cls(
            id=str(data["id"]),
            spec_id=str(data["spec_id"]),
            field_path=str(data["field_path"]),
            local_value=data.get("local_value"),
            remote_value=data.get("remote_value"),
            base_value=data.get("base_value"),
            detected_at=int(data["detected_at"]),
            status=ConflictStatus(data.get("status", "unresolved")),
        )


@dataclass
class Review:
    """
    Review request for a spec.

    Stored in: ~/.manifold/reviews/<spec_id>.json
    """
    id: str
    spec_id: str
    requester: str
    reviewer: str
    requested_at: int
    status: ReviewStatus = ReviewStatus.PENDING
    comment: Optional[str] = None
    reviewed_at: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "spec_id": self.spec_id,
            "requester": self.requester,
            "reviewer": self.reviewer,
            "status": self.status.value,
            "comment": self.comment,
            "requested_at": self.requested_at,
            "reviewed_at": self.reviewed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Review":
        reviewed_at = data.get("reviewed_at")
        return cls(
            id=str(data["id"]),
            spec_id=str(data["spec_id"]),
            requester=str(data["requester"]),
            reviewer=str(data["reviewer"]),
            status=ReviewStatus(data.get("status", "pending")),
            comment=str(data["comment"]) if data.get("comment") is not None else None,
            requested_at=int(data["requested_at"]),
            reviewed_at=int(reviewed_at) if reviewed_at is not None else None,
        )


@dataclass
class SyncMetadata:
    """
    Last known sync state of a spec.

    Stored in: ~/.manifold/sync/<spec_id>.json
    """
    spec_id: str
    last_sync_timestamp: int
    last_sync_hash: str
    sync_status: SyncStatus
    remote_branch: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "spec_id": self.spec_id,
            "last_sync_timestamp": self.last_sync_timestamp,
            "last_sync_hash": self.last_sync_hash,
            "remote_branch": self.remote_branch,
            "sync_status": self.sync_status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncMetadata":
        return cls(
            spec_id=str(data["spec_id"]),
            last_sync_timestamp=int(data["last_sync_timestamp"]),
            last_sync_hash=str(data.get("last_sync_hash", "")),
            remote_branch=str(data["remote_branch"]) if data.get("remote_branch") else None,
            sync_status=SyncStatus(data.get("sync_status", "unsynced")),
        )
