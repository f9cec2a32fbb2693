"""Git-backed sync directory and the snapshot-source interface.

Each spec is exported as ``<spec_id>.json`` into a plain git repository
(``~/.manifold/sync/repo`` by default). Pushing shares local state with a
remote; fetching returns the remote copy together with the common ancestor
(the file at ``git merge-base HEAD <remote>/<branch>``) so the conflict
detector can run three-way.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from manifold_cli.collaboration.git_ops import has_commits, has_remote, run_git, show_file
from manifold_cli.errors import SpecNotFoundError, SyncError
from manifold_cli.models import SpecData

logger = logging.getLogger(__name__)

NO_CHANGES = "no-changes"


@dataclass
class RemoteSnapshot:
    """Remote copy of a spec plus the common ancestor, when known."""

    remote: SpecData
    base: Optional[SpecData] = None


@runtime_checkable
class SnapshotSource(Protocol):
    def fetch(self, spec_id: str) -> RemoteSnapshot: ...


@dataclass
class SyncConfig:
    repo_path: Path
    remote_name: str = "origin"
    remote_url: Optional[str] = None
    branch: str = "main"
    commit_author: str = "Manifold"
    commit_email: str = "manifold@localhost"


def _decode(text: str, source: str) -> SpecData:
    try:
        return SpecData.from_dict(json.loads(text))
    except (json.JSONDecodeError, ValueError) as exc:
        raise SyncError(f"Failed to parse spec from {source}: {exc}") from exc


class GitSyncManager:
    """Sync directory operations. Implements ``SnapshotSource``."""

    def __init__(self, config: SyncConfig) -> None:
        self.config = config

    @property
    def repo_path(self) -> Path:
        return self.config.repo_path

    @property
    def remote_ref(self) -> str:
        return f"{self.config.remote_name}/{self.config.branch}"

    def _git(self, *args: str, check: bool = True) -> tuple[int, str, str]:
        return run_git(args, cwd=self.repo_path, check_return=check)

    def init(self) -> None:
        """Create the repository (idempotent) and configure the committer."""
        self.repo_path.mkdir(parents=True, exist_ok=True)
        if not (self.repo_path / ".git").exists():
            self._git("init")
            self._git("symbolic-ref", "HEAD", f"refs/heads/{self.config.branch}")
        self._git("config", "user.name", self.config.commit_author)
        self._git("config", "user.email", self.config.commit_email)
        self._git("config", "commit.gpgsign", "false")
        if self.config.remote_url:
            self.add_remote(self.config.remote_name, self.config.remote_url)
        logger.info("Initialized sync repository at %s", self.repo_path)

    def spec_file(self, spec_id: str) -> Path:
        return self.repo_path / f"{spec_id}.json"

    def export_spec(self, spec: SpecData) -> Path:
        path = self.spec_file(spec.spec_id)
        path.write_text(json.dumps(spec.to_dict(), indent=2) + "\n", encoding="utf-8")
        return path

    def import_spec(self, spec_id: str) -> SpecData:
        path = self.spec_file(spec_id)
        if not path.exists():
            raise SpecNotFoundError(spec_id)
        return _decode(path.read_text(encoding="utf-8"), str(path))

    def commit(self, message: str, files: list[Path]) -> str:
        """Stage ``files`` and commit. Returns the commit hash or ``no-changes``."""
        for file in files:
            self._git("add", str(file))
        code, stdout, stderr = self._git("commit", "-m", message, check=False)
        if code != 0:
            if "nothing to commit" in stdout or "nothing to commit" in stderr:
                return NO_CHANGES
            raise SyncError(f"Git commit failed: {stderr or stdout}")
        _, head, _ = self._git("rev-parse", "HEAD")
        return head

    def push(self) -> None:
        self._require_remote()
        self._git("push", self.config.remote_name, self.config.branch)
        logger.info("Pushed changes to %s", self.remote_ref)

    def fetch_remote(self) -> None:
        self._require_remote()
        self._git("fetch", self.config.remote_name)

    def has_remote_branch(self) -> bool:
        code, _, _ = self._git("rev-parse", "--verify", "--quiet", self.remote_ref, check=False)
        return code == 0

    def remote_ahead(self) -> bool:
        """True when the fetched remote branch has commits not merged into HEAD."""
        if not self.has_remote_branch():
            return False
        if not has_commits(self.repo_path):
            return True
        code, _, _ = self._git("merge-base", "--is-ancestor", self.remote_ref, "HEAD", check=False)
        return code != 0

    def pull(self) -> None:
        """Fast-forward/merge the remote branch into the sync directory."""
        self._require_remote()
        code, stdout, stderr = self._git(
            "pull", "--no-rebase", "--no-edit", self.config.remote_name, self.config.branch, check=False
        )
        if code != 0:
            if "CONFLICT" in stdout or "CONFLICT" in stderr:
                raise SyncError(
                    "Merge conflicts detected. Run 'manifold conflicts list' to see conflicts."
                )
            raise SyncError(f"Git pull failed: {stderr or stdout}")
        logger.info("Pulled changes from %s", self.remote_ref)

    def status(self) -> list[str]:
        """Porcelain status lines of the sync directory."""
        _, stdout, _ = self._git("status", "--porcelain")
        return [line for line in stdout.splitlines() if line]

    def is_modified(self, spec_id: str) -> bool:
        _, stdout, _ = self._git("status", "--porcelain", "--", self.spec_file(spec_id).name)
        return bool(stdout)

    def file_hash(self, spec_id: str) -> str:
        _, stdout, _ = self._git("hash-object", self.spec_file(spec_id).name)
        return stdout

    def list_specs(self) -> list[str]:
        if not self.repo_path.exists():
            return []
        return sorted(path.stem for path in self.repo_path.glob("*.json"))

    def list_remote_specs(self) -> list[str]:
        _, stdout, _ = self._git("ls-tree", "--name-only", self.remote_ref)
        return sorted(name[: -len(".json")] for name in stdout.splitlines() if name.endswith(".json"))

    def add_remote(self, name: str, url: str) -> None:
        if has_remote(self.repo_path, name):
            self._git("remote", "set-url", name, url)
            logger.info("Updated remote '%s' to %s", name, url)
        else:
            self._git("remote", "add", name, url)
            logger.info("Added remote '%s' -> %s", name, url)

    def diff(self, spec_id: str) -> str:
        _, stdout, _ = self._git("diff", self.remote_ref, "--", self.spec_file(spec_id).name, check=False)
        return stdout

    def _require_remote(self) -> None:
        if not has_remote(self.repo_path, self.config.remote_name):
            raise SyncError(
                f"No remote '{self.config.remote_name}' configured. "
                "Run 'manifold sync init --remote <url>' first."
            )

    # ------------------------------------------------------------------
    # SnapshotSource
    # ------------------------------------------------------------------

    def merge_base(self) -> Optional[str]:
        if not has_commits(self.repo_path):
            return None
        code, stdout, _ = self._git("merge-base", "HEAD", self.remote_ref, check=False)
        return stdout if code == 0 and stdout else None

    def fetch(self, spec_id: str) -> RemoteSnapshot:
        """Fetch the remote branch and return the remote copy of ``spec_id``.

        Raises:
            SpecNotFoundError: The remote branch has no such spec
            SyncError: git failed or the remote file is not a valid spec
        """
        self.fetch_remote()
        filename = self.spec_file(spec_id).name
        remote_text = show_file(self.repo_path, self.remote_ref, filename)
        if remote_text is None:
            raise SpecNotFoundError(spec_id)
        remote = _decode(remote_text, f"{self.remote_ref}:{filename}")

        base = None
        base_rev = self.merge_base()
        if base_rev is not None:
            base_text = show_file(self.repo_path, base_rev, filename)
            if base_text is not None:
                base = _decode(base_text, f"{base_rev}:{filename}")
        return RemoteSnapshot(remote=remote, base=base)

    def record_merge(self, spec: SpecData) -> str:
        """Record that ``spec`` (already reconciled) includes the remote state.

        The remote commit becomes a parent of the sync directory's history so
        the next ``fetch`` uses it as the common ancestor.
        """
        if not has_commits(self.repo_path):
            self._git("reset", "--hard", self.remote_ref)
        else:
            self._git(
                "merge", "-s", "ours", "--no-ff", "--no-edit", "--allow-unrelated-histories", self.remote_ref
            )
        path = self.export_spec(spec)
        return self.commit(f"Sync {spec.spec_id}", [path])
