"""Three-way conflict detection and resolution.

Detection compares the serialized (JSON-shaped) local and remote documents,
optionally against their common ancestor:

* ``name`` and ``stage`` are compared as scalars. With an ancestor, a change
  on only one side fast-forwards silently; without one, any difference is a
  conflict.
* ``requirements``, ``tasks`` and ``decisions`` are matched by item ``id``.
  An item edited on both sides conflicts. An item deleted on one side and
  edited on the other conflicts (the deleted side's value is ``None``). An
  item deleted on one side and untouched on the other fast-forwards.

All functions here are pure: no I/O, no mutation of their arguments.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Iterable, Optional, Union

from manifold_cli.collaboration.models import Conflict, ConflictStatus, ResolutionStrategy
from manifold_cli.errors import ResolutionError
from manifold_cli.models import ITEM_COLLECTIONS, SpecData, WorkflowStage, now_ts

logger = logging.getLogger(__name__)

SCALAR_FIELDS = ("name", "stage")


class _Missing:
    """Sentinel for "no value supplied" (``None`` is a real value: deletion)."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


# ============================================================================
# Detection
# ============================================================================


def _items_by_id(items: Iterable[Any]) -> dict[str, Any]:
    return {
        item["id"]: item
        for item in items
        if isinstance(item, dict) and isinstance(item.get("id"), str)
    }


def _both_changed(local_value: Any, remote_value: Any, base_value: Any) -> bool:
    if base_value is MISSING:
        return True
    return local_value != base_value and remote_value != base_value


def detect_conflicts(
    local: SpecData,
    remote: SpecData,
    base: Optional[SpecData] = None,
) -> list[Conflict]:
    """Return the conflicts between ``local`` and ``remote``.

    Args:
        local: Local copy
        remote: Remote copy of the same spec
        base: Common ancestor, if known

    Returns:
        Conflicts ordered ``name``, ``stage``, then per collection (local
        order followed by remote-only items), all sharing one timestamp
    """
    detected_at = now_ts()
    local_doc = local.to_dict()
    remote_doc = remote.to_dict()
    base_doc = base.to_dict() if base is not None else None
    conflicts: list[Conflict] = []

    def emit(field_path: str, local_value: Any, remote_value: Any, base_value: Any) -> None:
        conflicts.append(
            Conflict(
                id=str(uuid.uuid4()),
                spec_id=local.spec_id,
                field_path=field_path,
                local_value=local_value,
                remote_value=remote_value,
                base_value=None if base_value is MISSING else base_value,
                detected_at=detected_at,
            )
        )

    for field_name in SCALAR_FIELDS:
        local_value = local_doc[field_name]
        remote_value = remote_doc[field_name]
        if local_value == remote_value:
            continue
        base_value = base_doc[field_name] if base_doc is not None else MISSING
        if _both_changed(local_value, remote_value, base_value):
            emit(field_name, local_value, remote_value, base_value)

    for collection in ITEM_COLLECTIONS:
        local_items = _items_by_id(local_doc[collection])
        remote_items = _items_by_id(remote_doc[collection])
        base_items = _items_by_id(base_doc[collection]) if base_doc is not None else {}

        for item_id, local_item in local_items.items():
            field_path = f"{collection}/{item_id}"
            base_item = base_items.get(item_id, MISSING)
            if item_id in remote_items:
                remote_item = remote_items[item_id]
                if local_item != remote_item and _both_changed(local_item, remote_item, base_item):
                    emit(field_path, local_item, remote_item, base_item)
            elif base_item is not MISSING and local_item != base_item:
                # Deleted remotely, edited locally.
                emit(field_path, local_item, None, base_item)

        for item_id, remote_item in remote_items.items():
            if item_id in local_items:
                continue
            base_item = base_items.get(item_id, MISSING)
            if base_item is not MISSING and remote_item != base_item:
                # Deleted locally, edited remotely.
                emit(f"{collection}/{item_id}", None, remote_item, base_item)

    logger.debug("Detected %d conflict(s) for %s", len(conflicts), local.spec_id)
    return conflicts


def three_way_merge(
    local: SpecData,
    remote: SpecData,
    base: Optional[SpecData] = None,
) -> SpecData:
    """Merge one-sided changes from both copies into a new document.

    Fields and items changed on only one side are taken from that side;
    additions from either side are kept and one-sided deletions of untouched
    items are applied. Where both sides edited the same field or item, the
    local value is kept. Where one side deleted an item the other edited,
    the edited item is kept, whichever side it came from. Callers run
    ``detect_conflicts`` first and apply resolutions on top of the merge.
    """
    local_doc = local.to_dict()
    remote_doc = remote.to_dict()
    base_doc = base.to_dict() if base is not None else None
    merged = local.to_dict()

    for field_name in SCALAR_FIELDS:
        if base_doc is not None and local_doc[field_name] == base_doc[field_name]:
            merged[field_name] = remote_doc[field_name]

    if merged["stage"] == remote_doc["stage"] and merged["stage"] != local_doc["stage"]:
        merged["stages_completed"] = list(remote_doc["stages_completed"])

    for collection in ITEM_COLLECTIONS:
        remote_items = _items_by_id(remote_doc[collection])
        base_items = _items_by_id(base_doc[collection]) if base_doc is not None else {}
        local_ids = set()
        result = []
        for item in local_doc[collection]:
            item_id = item["id"]
            local_ids.add(item_id)
            if item_id in remote_items:
                remote_item = remote_items[item_id]
                result.append(remote_item if base_items.get(item_id, MISSING) == item else item)
            elif item_id not in base_items or item != base_items[item_id]:
                result.append(item)
        for item_id, remote_item in remote_items.items():
            if item_id in local_ids:
                continue
            if item_id not in base_items or remote_item != base_items[item_id]:
                result.append(remote_item)
        merged[collection] = result

    return SpecData.from_dict(merged)


# ============================================================================
# Resolution
# ============================================================================


def _merge_lists(local_value: Any, remote_value: Any) -> list[Any]:
    if not isinstance(local_value, list) or not isinstance(remote_value, list):
        raise ResolutionError("Cannot auto-merge this conflict type (merge needs two lists)")
    merged = list(local_value)
    present = {item.get("id") for item in merged if isinstance(item, dict)}
    for item in remote_value:
        if not isinstance(item, dict) or item.get("id") is None:
            continue
        if item["id"] not in present:
            merged.append(item)
            present.add(item["id"])
    return merged


def resolve_conflict(
    conflict: Conflict,
    strategy: Union[ResolutionStrategy, str],
    manual_value: Any = MISSING,
) -> tuple[Any, ConflictStatus]:
    """Compute the resolved value and status for ``conflict``.

    The conflict itself is not modified; call ``Conflict.mark_resolved``
    with the returned status once the value has been applied.

    Raises:
        ResolutionError: Already resolved, unknown strategy, manual without
            a value, or merge of non-list values
    """
    if conflict.is_resolved:
        raise ResolutionError(f"Conflict {conflict.id} is already {conflict.status.value}")
    try:
        strategy = ResolutionStrategy(strategy)
    except ValueError:
        raise ResolutionError(
            f"Unknown strategy: {strategy}. Use: ours, theirs, manual, merge"
        ) from None

    if strategy is ResolutionStrategy.OURS:
        return conflict.local_value, ConflictStatus.RESOLVED_LOCAL
    if strategy is ResolutionStrategy.THEIRS:
        return conflict.remote_value, ConflictStatus.RESOLVED_REMOTE
    if strategy is ResolutionStrategy.MANUAL:
        if manual_value is MISSING:
            raise ResolutionError("Manual resolution requires a value")
        return manual_value, ConflictStatus.RESOLVED_MANUAL
    return _merge_lists(conflict.local_value, conflict.remote_value), ConflictStatus.RESOLVED_MANUAL


def _stages_before(value: Any) -> list[str]:
    try:
        stage = WorkflowStage(value)
    except ValueError:
        raise ResolutionError(f"Resolved document is invalid: invalid stage {value!r}") from None
    return [s.value for s in WorkflowStage if s.ordinal < stage.ordinal]


def apply_resolutions(spec: SpecData, resolutions: Iterable[tuple[str, Any]]) -> SpecData:
    """Write resolved values into a copy of ``spec``.

    ``field_path`` is either a top-level field (``name``, ``stage``) or
    ``<collection>/<item-id>``. An item value replaces the item in place,
    is appended when the item is absent, and ``None`` removes the item.
    A resolved ``stage`` also resets ``stages_completed`` to every stage
    before it, in order.

    Raises:
        ResolutionError: Unknown path, or the result is not a valid document
    """
    document = spec.to_dict()
    for field_path, value in resolutions:
        head, sep, item_id = field_path.partition("/")
        if not sep:
            if head not in SCALAR_FIELDS and head not in ITEM_COLLECTIONS:
                raise ResolutionError(f"Cannot resolve field '{field_path}'")
            document[head] = value
            if head == "stage":
                document["stages_completed"] = _stages_before(value)
            continue

        if head not in ITEM_COLLECTIONS or not item_id:
            raise ResolutionError(f"Cannot resolve field '{field_path}'")
        if value is not None and (not isinstance(value, dict) or value.get("id") != item_id):
            raise ResolutionError(f"Resolved value for '{field_path}' must be an item with id '{item_id}'")

        items = document[head]
        position = next((i for i, item in enumerate(items) if item.get("id") == item_id), None)
        if value is None:
            if position is not None:
                del items[position]
        elif position is None:
            items.append(value)
        else:
            items[position] = value

    try:
        resolved = SpecData.from_dict(document)
    except ValueError as exc:
        raise ResolutionError(f"Resolved document is invalid: {exc}") from exc
    return resolved


# ============================================================================
# Display
# ============================================================================


def _format_value(value: Any) -> str:
    if value is None:
        return "(deleted)"
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return "(modified object)"
    if isinstance(value, list):
        return f"(array with {len(value)} items)"
    return json.dumps(value)


def format_conflict(conflict: Conflict) -> str:
    """Human summary of a conflict."""
    return (
        f"Conflict in '{conflict.field_path}'\n"
        f"  Local:  {_format_value(conflict.local_value)}\n"
        f"  Remote: {_format_value(conflict.remote_value)}"
    )
