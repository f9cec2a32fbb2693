"""Logging configuration for the manifold CLI.

Log records go to stderr through a Rich handler; stdout stays reserved for
command output and the MCP stream of ``manifold serve``.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

__all__ = ["configure_logging", "err_console"]

LOG_LEVEL_ENV = "MANIFOLD_LOG_LEVEL"

err_console = Console(stderr=True)


def _resolve_level(level: Optional[str]) -> int:
    name = (os.getenv(LOG_LEVEL_ENV) or level or "WARNING").upper()
    return getattr(logging, name, logging.WARNING)


def configure_logging(level: Optional[str] = None) -> None:
    """Install (or refresh) the managed Rich handler on the ``manifold_cli`` logger."""
    package_logger = logging.getLogger("manifold_cli")
    handler = next(
        (h for h in package_logger.handlers if getattr(h, "_manifold_managed", False)),
        None,
    )
    if handler is None:
        handler = RichHandler(console=err_console, rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        handler._manifold_managed = True  # type: ignore[attr-defined]
        package_logger.addHandler(handler)
    package_logger.setLevel(_resolve_level(level))
