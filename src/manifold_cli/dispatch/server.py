"""MCP server exposing the spec tools to LLM clients.

Framing, request routing and protocol errors are handled by FastMCP. Each
tool below is a thin typed wrapper over ``dispatch.tools`` so the generated
input schema matches the arguments the tool functions accept. Errors raised
by a tool (``PatchError``, ``WorkflowError``, ...) are returned to the client
as an error result carrying the exception message.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from manifold_cli.dispatch import tools
from manifold_cli.storage.base import SpecStore

logger = logging.getLogger(__name__)

SERVER_NAME = "manifold"

SERVER_INSTRUCTIONS = """Manifold stores versioned specs (requirements, tasks, decisions).
Create a spec with create_spec, edit it only through apply_patch, and move it
through requirements -> design -> tasks -> approval -> implemented with
advance_workflow. Use query_manifold and get_spec to read."""


def create_server(store: SpecStore) -> FastMCP:
    """Build a FastMCP server whose tools act on ``store``."""
    mcp = FastMCP(SERVER_NAME, instructions=SERVER_INSTRUCTIONS)

    def _run(name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        try:
            return tools.call_tool(store, name, arguments)
        except Exception as exc:
            logger.info("Tool %s failed: %s: %s", name, type(exc).__name__, exc)
            raise

    @mcp.tool()
    def create_spec(project: str, boundary: str, name: str) -> dict[str, Any]:
        """Create a new specification. Returns the generated spec_id.

        boundary is one of personal, work, company.
        """
        return _run("create_spec", {"project": project, "boundary": boundary, "name": name})

    @mcp.tool(description=tools.PATCH_HELP)
    def apply_patch(spec_id: str, patch: list[dict[str, Any]], summary: str) -> dict[str, Any]:
        return _run("apply_patch", {"spec_id": spec_id, "patch": patch, "summary": summary})

    @mcp.tool()
    def advance_workflow(spec_id: str, target_stage: str) -> dict[str, Any]:
        """Move a spec to the next workflow stage.

        Stages progress in order: requirements -> design -> tasks -> approval ->
        implemented, and each step has content rules that must pass.
        """
        return _run("advance_workflow", {"spec_id": spec_id, "target_stage": target_stage})

    @mcp.tool()
    def query_manifold(
        boundary: Optional[str] = None,
        stage: Optional[str] = None,
        project: Optional[str] = None,
        query: Optional[str] = None,
    ) -> dict[str, Any]:
        """Search and filter specs. Returns id, project, name, boundary, stage and updated_at."""
        return _run(
            "query_manifold",
            {"boundary": boundary, "stage": stage, "project": project, "query": query},
        )

    @mcp.tool()
    def get_spec(spec_id: str) -> dict[str, Any]:
        """Return the full JSON document of a spec."""
        return _run("get_spec", {"spec_id": spec_id})

    return mcp


def run_server(store: SpecStore, transport: str = "stdio") -> None:
    """Run the MCP server until the client disconnects."""
    create_server(store).run(transport=transport)
