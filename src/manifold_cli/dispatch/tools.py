"""Tool functions exposed to LLM clients and agents.

Every tool takes a ``SpecStore`` and a JSON ``arguments`` object and returns
a ``{"success": True, ...}`` envelope. Bad arguments raise ``ToolError``;
engine errors (``PatchError``, ``WorkflowError``, ...) propagate unchanged so
the MCP server reports them to the client as error results.
"""

from __future__ import annotations

from typing import Any, Callable

from manifold_cli import operations
from manifold_cli.errors import ManifoldError
from manifold_cli.models import Boundary, WorkflowStage
from manifold_cli.storage.base import SpecStore, matches_query

ACTOR = "mcp"


class ToolError(ManifoldError):
    """Missing or malformed tool arguments."""


def _require_str(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value:
        raise ToolError(f"Missing '{key}' parameter")
    return value


def _optional_str(args: dict[str, Any], key: str) -> str | None:
    value = args.get(key)
    if value is not None and not isinstance(value, str):
        raise ToolError(f"'{key}' must be a string")
    return value or None


def _parse(parser: Callable[[str], Any], value: str) -> Any:
    try:
        return parser(value)
    except ValueError as exc:
        raise ToolError(str(exc)) from exc


# ============================================================================
# Tools
# ============================================================================


def create_spec(store: SpecStore, args: dict[str, Any]) -> dict[str, Any]:
    project = _require_str(args, "project")
    boundary_text = _require_str(args, "boundary")
    name = _require_str(args, "name")
    boundary = _parse(Boundary.parse, boundary_text)
    spec = operations.create_spec(store, project, name, boundary, actor=ACTOR)
    return {
        "success": True,
        "spec_id": spec.spec_id,
        "message": f"Created spec '{name}' in {boundary.value} boundary",
    }


def apply_patch(store: SpecStore, args: dict[str, Any]) -> dict[str, Any]:
    spec_id = _require_str(args, "spec_id")
    patch = args.get("patch")
    if not isinstance(patch, list):
        raise ToolError("Missing or invalid 'patch' parameter")
    summary = _require_str(args, "summary")
    spec = operations.patch_spec(store, spec_id, patch, actor=ACTOR, summary=summary)
    return {
        "success": True,
        "spec_id": spec_id,
        "patches": len(spec.history.patches),
        "message": f"Applied patch: {summary}",
    }


def advance_workflow(store: SpecStore, args: dict[str, Any]) -> dict[str, Any]:
    spec_id = _require_str(args, "spec_id")
    target = _parse(WorkflowStage.parse, _require_str(args, "target_stage"))
    old_stage = store.load(spec_id).stage
    spec = operations.advance_spec(store, spec_id, target, actor=ACTOR)
    return {
        "success": True,
        "spec_id": spec_id,
        "old_stage": old_stage.value,
        "new_stage": spec.stage.value,
        "message": f"Advanced to {spec.stage.value} stage",
    }


def query_manifold(store: SpecStore, args: dict[str, Any]) -> dict[str, Any]:
    boundary_text = _optional_str(args, "boundary")
    stage_text = _optional_str(args, "stage")
    project = _optional_str(args, "project")
    query = _optional_str(args, "query")

    boundary = _parse(Boundary.parse, boundary_text) if boundary_text else None
    stage = _parse(WorkflowStage.parse, stage_text) if stage_text else None

    specs = store.list_specs(boundary=boundary, stage=stage)
    if project:
        specs = [s for s in specs if project.lower() in s.project.lower()]
    if query:
        specs = [s for s in specs if matches_query(s, query)]

    results = [
        {
            "spec_id": s.spec_id,
            "project": s.project,
            "name": s.name,
            "boundary": s.boundary.value,
            "stage": s.stage.value,
            "updated_at": s.history.updated_at,
        }
        for s in specs
    ]
    return {"success": True, "count": len(results), "specs": results}


def get_spec(store: SpecStore, args: dict[str, Any]) -> dict[str, Any]:
    spec = store.load(_require_str(args, "spec_id"))
    return {"success": True, "spec": spec.to_dict()}


TOOLS: dict[str, Callable[[SpecStore, dict[str, Any]], dict[str, Any]]] = {
    "create_spec": create_spec,
    "apply_patch": apply_patch,
    "advance_workflow": advance_workflow,
    "query_manifold": query_manifold,
    "get_spec": get_spec,
}


def call_tool(store: SpecStore, name: str, arguments: Any) -> dict[str, Any]:
    """Run tool ``name`` in-process (used by the server and by agents)."""
    tool = TOOLS.get(name)
    if tool is None:
        raise ToolError(f"Unknown tool: {name}")
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ToolError("Tool arguments must be an object")
    return tool(store, arguments)


# ============================================================================
# Tool descriptions
# ============================================================================


PATCH_HELP = """Apply JSON Patch (RFC 6902) operations to a spec.
Only these roots are mutable: /name, /requirements, /tasks, /decisions.
Object values are checked against the item schema; unknown fields are rejected
and the whole patch fails without changing the spec.

REQUIREMENT (/requirements/- or /requirements/N):
  id, capability, title, shall, rationale?, priority (must|should|could|wont), tags, scenarios
SCENARIO (/requirements/N/scenarios/-):
  id, name, given[], when, then[], edge_cases[]
TASK (/tasks/- or /tasks/N):
  id, requirement_ids[], title, description, status (pending|in_progress|completed|blocked),
  assignee?, acceptance[]
DECISION (/decisions/- or /decisions/N):
  id, title, context, decision, rationale, alternatives_rejected[], date (ISO)

EXAMPLES:
  {"op":"add","path":"/requirements/-","value":{...}}
  {"op":"replace","path":"/requirements/0/title","value":"New Title"}
  {"op":"remove","path":"/decisions/0"}"""
