"""serve command: MCP tool server on stdio."""

from __future__ import annotations

import logging

from manifold_cli import __version__
from manifold_cli.cli.helpers import get_store
from manifold_cli.dispatch.server import run_server

logger = logging.getLogger(__name__)


def serve() -> None:
    """Serve the spec tools to an LLM client over stdin/stdout (MCP)."""
    store = get_store()
    logger.info("manifold %s MCP server on stdio (specs in %s)", __version__, store.paths.specs)
    run_server(store)
    logger.info("MCP server stopped")
