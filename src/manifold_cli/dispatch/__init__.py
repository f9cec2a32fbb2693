"""Tool dispatch for LLM clients: tool functions and the MCP stdio server."""

from .server import create_server, run_server
from .tools import TOOLS, ToolError, call_tool

__all__ = ["TOOLS", "ToolError", "call_tool", "create_server", "run_server"]
