"""Reconciliation service - detection, persistence and resolution of conflicts.

Glues the pure detector/resolver to a ``SpecStore``:

* ``reconcile_spec`` takes a remote snapshot, inserts it when there is no
  local copy, otherwise persists conflicts or writes the fast-forward merge.
* ``resolve_stored_conflict`` settles one stored conflict and writes the
  resolved document back with a ``resolve`` history entry.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from manifold_cli.collaboration.conflicts import (
    MISSING,
    apply_resolutions,
    detect_conflicts,
    resolve_conflict,
    three_way_merge,
)
from manifold_cli.collaboration.models import (
    Conflict,
    ResolutionStrategy,
    SyncMetadata,
    SyncStatus,
)
from manifold_cli.collaboration.sync import RemoteSnapshot
from manifold_cli.errors import SyncError
from manifold_cli.events.models import WorkflowEventRecord
from manifold_cli.models import SpecData, now_ts
from manifold_cli.storage.base import SpecStore

logger = logging.getLogger(__name__)


def content_hash(spec: SpecData) -> str:
    """Stable hash of a spec's content (history excluded)."""
    data = spec.to_dict()
    data.pop("history", None)
    return hashlib.sha256(json.dumps(data, sort_keys=True).encode("utf-8")).hexdigest()


@dataclass
class ReconcileResult:
    spec_id: str
    status: SyncStatus
    conflicts: list[Conflict] = field(default_factory=list)
    inserted: bool = False
    changed: bool = False


def _conflict_key(conflict: Conflict) -> tuple[str, str, str]:
    return (
        conflict.field_path,
        json.dumps(conflict.local_value, sort_keys=True),
        json.dumps(conflict.remote_value, sort_keys=True),
    )


def _settled_key(conflict: Conflict) -> tuple[str, str]:
    return conflict.field_path, json.dumps(conflict.remote_value, sort_keys=True)


def record_sync(
    store: SpecStore,
    spec: SpecData,
    status: SyncStatus,
    remote_branch: Optional[str],
) -> None:
    store.save_sync_metadata(
        SyncMetadata(
            spec_id=spec.spec_id,
            last_sync_timestamp=now_ts(),
            last_sync_hash=content_hash(spec),
            sync_status=status,
            remote_branch=remote_branch,
        )
    )


def reconcile_spec(
    store: SpecStore,
    spec_id: str,
    snapshot: RemoteSnapshot,
    actor: str = "sync",
    remote_branch: Optional[str] = None,
) -> ReconcileResult:
    """Reconcile the stored copy of ``spec_id`` with a remote snapshot.

    Conflicts already stored (same path and values, still unresolved) are
    not stored twice, so repeated runs against an unchanged remote are
    stable. A difference whose remote value matches an already resolved
    conflict on the same path is not raised again; the local copy holds the
    resolution.

    Raises:
        SyncError: The snapshot belongs to a different spec
    """
    remote = snapshot.remote
    if remote.spec_id != spec_id:
        raise SyncError(f"Snapshot is for {remote.spec_id}, expected {spec_id}")

    if not store.exists(spec_id):
        store.insert(remote)
        record_sync(store, remote, SyncStatus.SYNCED, remote_branch)
        store.append_event(
            WorkflowEventRecord(
                spec_id=spec_id, stage=remote.stage.value, event="synced:inserted", actor=actor
            )
        )
        logger.info("Imported %s from remote", spec_id)
        return ReconcileResult(spec_id, SyncStatus.SYNCED, inserted=True, changed=True)

    local = store.load(spec_id)
    stored = store.load_conflicts(spec_id, include_resolved=True)
    # A remote value that was already resolved against keeps the local value.
    settled = {_settled_key(c) for c in stored if c.is_resolved}
    detected = detect_conflicts(local, remote, snapshot.base)
    conflicts = [c for c in detected if _settled_key(c) not in settled]
    kept_local = [(c.field_path, c.local_value) for c in detected if _settled_key(c) in settled]

    if conflicts:
        existing = {_conflict_key(c): c for c in stored if not c.is_resolved}
        active: list[Conflict] = []
        for conflict in conflicts:
            previous = existing.get(_conflict_key(conflict))
            if previous is None:
                store.save_conflict(conflict)
                active.append(conflict)
            else:
                active.append(previous)
        record_sync(store, local, SyncStatus.CONFLICTED, remote_branch)
        store.append_event(
            WorkflowEventRecord(
                spec_id=spec_id,
                stage=local.stage.value,
                event=f"conflicted:{len(active)}",
                actor=actor,
                details={"field_paths": [c.field_path for c in active]},
            )
        )
        logger.warning("%d conflict(s) detected for %s", len(active), spec_id)
        return ReconcileResult(spec_id, SyncStatus.CONFLICTED, conflicts=active)

    merged = three_way_merge(local, remote, snapshot.base)
    if kept_local:
        merged = apply_resolutions(merged, kept_local)
    changed = content_hash(merged) != content_hash(local)
    if changed:
        merged.record(actor, "sync", "/", f"Merged remote changes from {remote_branch or 'remote'}")
        store.save(merged)
        store.append_event(
            WorkflowEventRecord(
                spec_id=spec_id, stage=merged.stage.value, event="synced:merged", actor=actor
            )
        )
        logger.info("Merged remote changes into %s", spec_id)
    record_sync(store, merged, SyncStatus.SYNCED, remote_branch)
    return ReconcileResult(spec_id, SyncStatus.SYNCED, changed=changed)


def resolve_stored_conflict(
    store: SpecStore,
    conflict_id: str,
    strategy: Union[ResolutionStrategy, str],
    manual_value: Any = MISSING,
    actor: str = "user",
) -> SpecData:
    """Resolve a stored conflict and write the result back.

    Raises:
        ConflictNotFoundError: Unknown conflict id
        ResolutionError: Already resolved, or the strategy cannot apply
    """
    conflict = store.get_conflict(conflict_id)
    value, status = resolve_conflict(conflict, strategy, manual_value)

    spec = store.load(conflict.spec_id)
    resolved = apply_resolutions(spec, [(conflict.field_path, value)])
    resolved.record(
        actor,
        "resolve",
        f"/{conflict.field_path}",
        f"Resolved conflict in '{conflict.field_path}' ({status.value})",
    )
    store.save(resolved)
    store.update_conflict_status(conflict_id, status)

    remaining = store.load_conflicts(conflict.spec_id)
    metadata = store.load_sync_metadata(conflict.spec_id)
    if not remaining:
        record_sync(
            store,
            resolved,
            SyncStatus.MODIFIED,
            metadata.remote_branch if metadata is not None else None,
        )
    store.append_event(
        WorkflowEventRecord(
            spec_id=conflict.spec_id,
            stage=resolved.stage.value,
            event=f"resolved:{conflict.field_path}",
            actor=actor,
            details={"conflict_id": conflict_id, "status": status.value},
        )
    )
    logger.info("Resolved %s (%s)", conflict.field_path, status.value)
    return resolved
