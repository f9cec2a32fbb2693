"""Configuration and on-disk layout for manifold.

Everything lives under ``~/.manifold`` (``MANIFOLD_HOME`` overrides it)::

    ~/.manifold/
      config.toml
      specs/<spec_id>.json
      conflicts/<spec_id>.json
      events/<spec_id>.jsonl
      reviews/<spec_id>.json
      sync/<spec_id>.json      # sync metadata
      sync/repo/               # git-backed sync directory
      exports/
      cache/
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from manifold_cli.errors import ConfigError
from manifold_cli.models import Boundary

HOME_ENV_VAR = "MANIFOLD_HOME"


def manifold_home() -> Path:
    """Return the manifold root directory."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".manifold"


@dataclass
class ManifoldPaths:
    root: Path

    @classmethod
    def default(cls) -> "ManifoldPaths":
        return cls(manifold_home())

    @property
    def config(self) -> Path:
        return self.root / "config.toml"

    @property
    def specs(self) -> Path:
        return self.root / "specs"

    @property
    def conflicts(self) -> Path:
        return self.root / "conflicts"

    @property
    def events(self) -> Path:
        return self.root / "events"

    @property
    def reviews(self) -> Path:
        return self.root / "reviews"

    @property
    def sync(self) -> Path:
        return self.root / "sync"

    @property
    def sync_repo(self) -> Path:
        return self.sync / "repo"

    @property
    def exports(self) -> Path:
        return self.root / "exports"

    @property
    def cache(self) -> Path:
        return self.root / "cache"

    def ensure_dirs(self) -> None:
        for directory in (
            self.root,
            self.specs,
            self.conflicts,
            self.events,
            self.reviews,
            self.sync,
            self.exports,
            self.cache,
        ):
            directory.mkdir(parents=True, exist_ok=True)

    def is_initialized(self) -> bool:
        return self.config.exists() and self.specs.is_dir()


# ============================================================================
# Config file
# ============================================================================


@dataclass
class SyncSettings:
    remote: Optional[str] = None
    branch: str = "main"
    author: str = "Manifold"
    email: str = "manifold@localhost"


@dataclass
class McpSettings:
    host: str = "127.0.0.1"
    port: int = 3000


@dataclass
class Config:
    default_boundary: Boundary = Boundary.PERSONAL
    actor: str = "user"
    log_level: str = "WARNING"
    sync: SyncSettings = field(default_factory=SyncSettings)
    mcp: McpSettings = field(default_factory=McpSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Build a config from parsed TOML.

        Raises:
            ConfigError: On wrong types or unknown enum values
        """
        try:
            sync = data.get("sync", {})
            mcp = data.get("mcp", {})
            logging_section = data.get("logging", {})
            remote = sync.get("remote")
            port = mcp.get("port", 3000)
            if isinstance(port, bool) or not isinstance(port, int):
                raise ConfigError(f"mcp.port must be an integer, got {port!r}")
            return cls(
                default_boundary=Boundary.parse(str(data.get("default_boundary", "personal"))),
                actor=str(data.get("actor", "user")),
                log_level=str(logging_section.get("level", "WARNING")).upper(),
                sync=SyncSettings(
                    remote=str(remote) if remote else None,
                    branch=str(sync.get("branch", "main")),
                    author=str(sync.get("author", "Manifold")),
                    email=str(sync.get("email", "manifold@localhost")),
                ),
                mcp=McpSettings(host=str(mcp.get("host", "127.0.0.1")), port=port),
            )
        except (AttributeError, ValueError) as exc:
            raise ConfigError(f"Invalid config: {exc}") from exc

    def to_toml(self) -> str:
        lines = [
            f'default_boundary = "{self.default_boundary.value}"',
            f'actor = "{self.actor}"',
            "",
            "[sync]",
        ]
        if self.sync.remote:
            lines.append(f'remote = "{self.sync.remote}"')
        lines.extend(
            [
                f'branch = "{self.sync.branch}"',
                f'author = "{self.sync.author}"',
                f'email = "{self.sync.email}"',
                "",
                "[mcp]",
                f'host = "{self.mcp.host}"',
                f"port = {self.mcp.port}",
                "",
                "[logging]",
                f'level = "{self.log_level}"',
                "",
            ]
        )
        return "\n".join(lines)


def load_config(paths: Optional[ManifoldPaths] = None) -> Config:
    """Load ``config.toml``; a missing file yields the defaults.

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    paths = paths or ManifoldPaths.default()
    if not paths.config.exists():
        return Config()
    try:
        with open(paths.config, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse {paths.config}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read {paths.config}: {exc}") from exc
    return Config.from_dict(data)


def save_config(config: Config, paths: Optional[ManifoldPaths] = None) -> Path:
    paths = paths or ManifoldPaths.default()
    paths.root.mkdir(parents=True, exist_ok=True)
    paths.config.write_text(config.to_toml(), encoding="utf-8")
    return paths.config
