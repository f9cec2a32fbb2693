"""Patch engine - validate and apply JSON-Patch style batches to a spec.

Callers (the tool dispatcher, agents) are untrusted with respect to document
shape, so the engine is strict:

* Only ``name``, ``requirements``, ``tasks`` and ``decisions`` are mutable
  roots. Identity, stage and history cannot be reached through a patch.
* Object values are checked against the field whitelist of the item shape
  selected by the path (Requirement, Scenario, Task or Decision). Unknown
  keys are an error, never silently dropped.
* The whole batch is validated before anything is applied, applied to a
  copy, re-decoded, and checked for duplicate ids. Any failure leaves the
  input document untouched.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from manifold_cli.errors import PatchError
from manifold_cli.models import (
    DECISION_FIELDS,
    ITEM_COLLECTIONS,
    REQUIREMENT_FIELDS,
    SCENARIO_FIELDS,
    TASK_FIELDS,
    SpecData,
)

logger = logging.getLogger(__name__)

MUTABLE_ROOTS = frozenset({"name", "requirements", "tasks", "decisions"})
SUPPORTED_OPS = ("add", "replace", "remove", "move", "copy", "test")

_VALUE_OPS = frozenset({"add", "replace", "test"})
_FROM_OPS = frozenset({"move", "copy"})

# RFC 6901 array index: ASCII digits, no leading zeros.
_ARRAY_INDEX = re.compile(r"0|[1-9][0-9]*")

# Field whitelist per collection item.
_ITEM_SHAPES: dict[str, tuple[str, frozenset[str]]] = {
    "requirements": ("Requirement", REQUIREMENT_FIELDS),
    "tasks": ("Task", TASK_FIELDS),
    "decisions": ("Decision", DECISION_FIELDS),
}

_MISSING = object()


# ============================================================================
# Operations
# ============================================================================


@dataclass(frozen=True)
class PatchOperation:
    """One RFC 6902 operation.

    Attributes:
        op: Operation kind (add, replace, remove, move, copy, test)
        path: Target JSON pointer
        value: Operation value (add/replace/test only)
        from_path: Source JSON pointer (move/copy only)
    """

    op: str
    path: str
    value: Any = _MISSING
    from_path: Optional[str] = None

    @property
    def has_value(self) -> bool:
        return self.value is not _MISSING

    @classmethod
    def from_dict(cls, data: Any, index: int = 0) -> "PatchOperation":
        """Parse a raw operation object.

        Raises:
            PatchError: If the operation is malformed
        """
        if not isinstance(data, dict):
            raise PatchError(f"Operation #{index} must be an object")
        op = data.get("op")
        path = data.get("path")
        if op not in SUPPORTED_OPS:
            raise PatchError(
                f"Operation #{index}: unsupported op {op!r} (use: {', '.join(SUPPORTED_OPS)})",
                path=path if isinstance(path, str) else None,
            )
        if not isinstance(path, str):
            raise PatchError(f"Operation #{index}: 'path' must be a string")
        if op in _VALUE_OPS and "value" not in data:
            raise PatchError(f"Operation #{index}: '{op}' requires a 'value'", path=path)
        from_path = data.get("from")
        if op in _FROM_OPS and not isinstance(from_path, str):
            raise PatchError(f"Operation #{index}: '{op}' requires a 'from' pointer", path=path)
        return cls(
            op=op,
            path=path,
            value=copy.deepcopy(data["value"]) if "value" in data else _MISSING,
            from_path=from_path if op in _FROM_OPS else None,
        )

    def describe(self) -> str:
        if self.from_path is not None:
            return f"{self.op} {self.from_path} -> {self.path}"
        return f"{self.op} {self.path}"


def parse_pointer(pointer: str) -> list[str]:
    """Split a JSON pointer into unescaped reference tokens."""
    if pointer == "":
        return []
    if not pointer.startswith("/"):
        raise PatchError(f"Invalid JSON pointer {pointer!r}: must start with '/'", path=pointer)
    return [token.replace("~1", "/").replace("~0", "~") for token in pointer[1:].split("/")]


# ============================================================================
# Validation pass
# ============================================================================


def _check_object(value: Any, shape: str, allowed: frozenset[str], path: str) -> None:
    if not isinstance(value, dict):
        return
    for key in value:
        if key not in allowed:
            raise PatchError(
                f"Unknown field '{key}' for {shape} at {path} "
                f"(allowed: {', '.join(sorted(allowed))})",
                path=path,
                field=key,
            )
    if shape == "Requirement" and isinstance(value.get("scenarios"), list):
        for position, scenario in enumerate(value["scenarios"]):
            _check_object(scenario, "Scenario", SCENARIO_FIELDS, f"{path}/scenarios/{position}")


def _is_index(token: str) -> bool:
    return _ARRAY_INDEX.fullmatch(token) is not None


def _check_index(token: str, path: str) -> None:
    if token != "-" and not _is_index(token):
        raise PatchError(f"Invalid array index {token!r} in {path}", path=path)


def _validate_target(tokens: list[str], path: str, value: Any) -> None:
    """Validate a pointer (and the value written there, if any)."""
    if not tokens or tokens[0] not in MUTABLE_ROOTS:
        root = tokens[0] if tokens else ""
        raise PatchError(
            f"Path {path!r} is not mutable: root '{root}' is not one of "
            f"{', '.join(sorted(MUTABLE_ROOTS))}",
            path=path,
            field=root or None,
        )

    root = tokens[0]
    if root == "name":
        if len(tokens) > 1:
            raise PatchError(f"'name' is a scalar field; {path!r} is not addressable", path=path)
        return

    shape, allowed = _ITEM_SHAPES[root]
    if len(tokens) == 1:
        if value is not _MISSING and isinstance(value, list):
            for position, item in enumerate(value):
                _check_object(item, shape, allowed, f"/{root}/{position}")
        return

    _check_index(tokens[1], path)
    if len(tokens) == 2:
        _check_object(value, shape, allowed, path)
        return

    item_field = tokens[2]
    if item_field not in allowed:
        raise PatchError(
            f"Unknown field '{item_field}' for {shape} at {path} "
            f"(allowed: {', '.join(sorted(allowed))})",
            path=path,
            field=item_field,
        )

    if root == "requirements" and item_field == "scenarios":
        if len(tokens) == 3:
            if isinstance(value, list):
                for position, scenario in enumerate(value):
                    _check_object(scenario, "Scenario", SCENARIO_FIELDS, f"{path}/{position}")
            return
        _check_index(tokens[3], path)
        if len(tokens) == 4:
            _check_object(value, "Scenario", SCENARIO_FIELDS, path)
            return
        if tokens[4] not in SCENARIO_FIELDS:
            raise PatchError(
                f"Unknown field '{tokens[4]}' for Scenario at {path} "
                f"(allowed: {', '.join(sorted(SCENARIO_FIELDS))})",
                path=path,
                field=tokens[4],
            )


def validate_operations(operations: Iterable[Any]) -> list[PatchOperation]:
    """First pass: parse and whitelist-check every operation.

    Raises:
        PatchError: On the first invalid operation
    """
    parsed: list[PatchOperation] = []
    for index, raw in enumerate(operations):
        operation = raw if isinstance(raw, PatchOperation) else PatchOperation.from_dict(raw, index)
        _validate_target(parse_pointer(operation.path), operation.path, operation.value)
        if operation.from_path is not None:
            _validate_target(parse_pointer(operation.from_path), operation.from_path, _MISSING)
        parsed.append(operation)
    if not parsed:
        raise PatchError("Patch is empty")
    return parsed


# ============================================================================
# Application pass
# ============================================================================


def _walk(document: dict[str, Any], tokens: list[str], path: str) -> Any:
    node: Any = document
    for token in tokens:
        if isinstance(node, list):
            if not _is_index(token) or int(token) >= len(node):
                raise PatchError(f"Path {path!r} does not exist", path=path)
            node = node[int(token)]
        elif isinstance(node, dict):
            if token not in node:
                raise PatchError(f"Path {path!r} does not exist", path=path)
            node = node[token]
        else:
            raise PatchError(f"Path {path!r} does not exist", path=path)
    return node


def _get(document: dict[str, Any], path: str) -> Any:
    return _walk(document, parse_pointer(path), path)


def _add(document: dict[str, Any], path: str, value: Any) -> None:
    tokens = parse_pointer(path)
    parent = _walk(document, tokens[:-1], path)
    last = tokens[-1]
    if isinstance(parent, list):
        if last == "-":
            parent.append(value)
        elif _is_index(last) and int(last) <= len(parent):
            parent.insert(int(last), value)
        else:
            raise PatchError(f"Index out of range in {path!r}", path=path)
    elif isinstance(parent, dict):
        parent[last] = value
    else:
        raise PatchError(f"Cannot add to non-container at {path!r}", path=path)


def _remove(document: dict[str, Any], path: str) -> Any:
    tokens = parse_pointer(path)
    parent = _walk(document, tokens[:-1], path)
    last = tokens[-1]
    if isinstance(parent, list):
        if not _is_index(last) or int(last) >= len(parent):
            raise PatchError(f"Path {path!r} does not exist", path=path)
        return parent.pop(int(last))
    if isinstance(parent, dict) and last in parent:
        return parent.pop(last)
    raise PatchError(f"Path {path!r} does not exist", path=path)


def _replace(document: dict[str, Any], path: str, value: Any) -> None:
    tokens = parse_pointer(path)
    parent = _walk(document, tokens[:-1], path)
    last = tokens[-1]
    if isinstance(parent, list):
        if not _is_index(last) or int(last) >= len(parent):
            raise PatchError(f"Path {path!r} does not exist", path=path)
        parent[int(last)] = value
    elif isinstance(parent, dict) and last in parent:
        parent[last] = value
    else:
        raise PatchError(f"Path {path!r} does not exist", path=path)


def _apply_one(document: dict[str, Any], operation: PatchOperation) -> None:
    if operation.op == "add":
        _add(document, operation.path, copy.deepcopy(operation.value))
    elif operation.op == "replace":
        _replace(document, operation.path, copy.deepcopy(operation.value))
    elif operation.op == "remove":
        _remove(document, operation.path)
    elif operation.op == "move":
        if operation.path.startswith(operation.from_path + "/"):
            raise PatchError(
                f"Cannot move {operation.from_path!r} into its own child", path=operation.path
            )
        _add(document, operation.path, _remove(document, operation.from_path))
    elif operation.op == "copy":
        _add(document, operation.path, copy.deepcopy(_get(document, operation.from_path)))
    elif operation.op == "test":
        if _get(document, operation.path) != operation.value:
            raise PatchError(f"Test failed at {operation.path!r}", path=operation.path)


def _check_unique_ids(spec: SpecData) -> None:
    for collection in ITEM_COLLECTIONS:
        seen: set[str] = set()
        for item in getattr(spec, collection):
            if item.id in seen:
                raise PatchError(
                    f"Duplicate id '{item.id}' in {collection}", path=f"/{collection}", field="id"
                )
            seen.add(item.id)
    for requirement in spec.requirements:
        seen = set()
        for scenario in requirement.scenarios:
            if scenario.id in seen:
                raise PatchError(
                    f"Duplicate scenario id '{scenario.id}' in requirement {requirement.id}",
                    path="/requirements",
                    field="id",
                )
            seen.add(scenario.id)


def summarize_operations(operations: list[PatchOperation]) -> str:
    shown = ", ".join(op.describe() for op in operations[:3])
    more = f" (+{len(operations) - 3} more)" if len(operations) > 3 else ""
    return f"Applied {len(operations)} operation(s): {shown}{more}"


def apply_patch(
    spec: SpecData,
    operations: Iterable[Any],
    actor: str = "user",
    summary: Optional[str] = None,
) -> SpecData:
    """Apply a patch batch atomically and return the patched copy.

    Args:
        spec: Current document (never mutated)
        operations: Raw operation dicts or ``PatchOperation`` instances
        actor: Actor recorded in the history entry
        summary: Human summary for the history entry (derived if omitted)

    Returns:
        New ``SpecData`` with one ``patch`` history entry appended

    Raises:
        PatchError: If any operation is invalid; nothing is applied
    """
    parsed = validate_operations(operations)

    document = spec.to_dict()
    for operation in parsed:
        _apply_one(document, operation)

    try:
        patched = SpecData.from_dict(document)
    except ValueError as exc:
        raise PatchError(f"Patched document is invalid: {exc}") from exc

    _check_unique_ids(patched)
    patched.record(actor, "patch", "/", summary or summarize_operations(parsed))
    logger.debug("Applied %d patch operation(s) to %s", len(parsed), spec.spec_id)
    return patched
