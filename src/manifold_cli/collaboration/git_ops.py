"""Git subprocess helpers for the sync directory."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Sequence

from manifold_cli.errors import SyncError


def git_available() -> bool:
    """Return True when a ``git`` executable is on PATH."""
    return shutil.which("git") is not None


def run_git(
    args: Sequence[str],
    *,
    cwd: Path | str,
    check_return: bool = True,
) -> tuple[int, str, str]:
    """Run ``git <args>`` and return (returncode, stdout, stderr).

    Args:
        args: Git arguments (without the leading ``git``)
        cwd: Repository directory
        check_return: If True, raise ``SyncError`` on non-zero exit

    Returns:
        Tuple of (returncode, stdout, stderr), both streams stripped
    """
    cmd = ["git", *args]
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            cwd=str(cwd),
            check=False,
        )
    except FileNotFoundError as exc:
        raise SyncError("git executable not found") from exc

    stdout = (result.stdout or "").strip()
    stderr = (result.stderr or "").strip()
    if check_return and result.returncode != 0:
        raise SyncError(f"Git {args[0]} failed (exit {result.returncode}): {stderr or stdout}")
    return result.returncode, stdout, stderr


def is_git_repo(path: Path) -> bool:
    """Return True when ``path`` lives inside a git work tree."""
    if not path.is_dir():
        return False
    code, _, _ = run_git(["rev-parse", "--is-inside-work-tree"], cwd=path, check_return=False)
    return code == 0


def has_commits(path: Path) -> bool:
    code, _, _ = run_git(["rev-parse", "--verify", "--quiet", "HEAD"], cwd=path, check_return=False)
    return code == 0


def has_remote(repo_path: Path, remote_name: str = "origin") -> bool:
    code, _, _ = run_git(["remote", "get-url", remote_name], cwd=repo_path, check_return=False)
    return code == 0


def show_file(repo_path: Path, revision: str, filename: str) -> str | None:
    """Return ``filename`` at ``revision``, or None if it does not exist there."""
    code, stdout, _ = run_git(["show", f"{revision}:{filename}"], cwd=repo_path, check_return=False)
    return stdout if code == 0 else None
