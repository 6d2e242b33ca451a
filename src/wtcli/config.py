"""Configuration loading, merging and writing."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from wtcli.github import SUGGESTION_LIMIT_DEFAULT

if TYPE_CHECKING:
    from wtcli.repo import RepoInfo

logger = logging.getLogger(__name__)

LOCAL_CONFIG_NAME = ".wt.yaml"
HOME_CONFIG_PATH = Path.home() / ".wt.yaml"
XDG_CONFIG_PATH = Path.home() / ".config" / "wt" / "config.yaml"

BRANCH_FIRST = "branch-first"
REPO_FIRST = "repo-first"
DIRECTORY_STRUCTURES = (BRANCH_FIRST, REPO_FIRST)

# Key -> accepted type in config files
CONFIG_KEYS: dict[str, type] = {
    "editor": str,
    "worktrees_root": str,
    "auto_open": bool,
    "repo_name": str,
    "directory_structure": str,
    "suggestion_limit": int,
    "copy_files": list,
}


class ConfigError(Exception):
    """Raised when configuration is invalid."""


@dataclass(frozen=True)
class ConfigSource:
    """Where a configuration value came from."""

    path: str
    type: str  # default, global or local


def default_values() -> dict[str, Any]:
    return {
        "editor": os.environ.get("EDITOR") or os.environ.get("VISUAL") or "code",
        "worktrees_root": "~/worktrees",
        "auto_open": False,
        "directory_structure": BRANCH_FIRST,
        "suggestion_limit": SUGGESTION_LIMIT_DEFAULT,
        "copy_files": [],
    }


def global_config_path() -> Path:
    """Resolve the global config file path.

    WT_CONFIG wins if set. Otherwise ~/.wt.yaml if it exists, falling back
    to ~/.config/wt/config.yaml.
    """
    env_path = os.environ.get("WT_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    if HOME_CONFIG_PATH.exists():
        return HOME_CONFIG_PATH
    return XDG_CONFIG_PATH


def local_config_paths(cwd: Path) -> list[Path]:
    """Find .wt.yaml files from the filesystem root down to cwd."""
    paths = []
    current = cwd.resolve()
    while True:
        candidate = current / LOCAL_CONFIG_NAME
        if candidate.is_file():
            paths.append(candidate)
        if current.parent == current:
            break
        current = current.parent
    paths.reverse()
    return paths


def load_file(config_path: Path) -> dict[str, Any]:
    """Load and validate one YAML config file.

    Args:
        config_path: Path to the file

    Returns:
        Known keys with validated values. Unknown keys are dropped.

    Raises:
        ConfigError: If the YAML is invalid, not a mapping, or a value has
            the wrong type
    """
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config in {config_path}: expected a mapping")

    values = {}
    for key, value in data.items():
        expected = CONFIG_KEYS.get(key)
        if expected is None:
            logger.debug("ignoring unknown config key %r in %s", key, config_path)
            continue
        # bool is an int subclass; don't accept `true` as a limit
        if expected is int and isinstance(value, bool):
            raise ConfigError(f"Invalid value for {key} in {config_path}: expected an integer")
        if not isinstance(value, expected):
            raise ConfigError(
                f"Invalid value for {key} in {config_path}: expected {expected.__name__}"
            )
        if key == "directory_structure" and value not in DIRECTORY_STRUCTURES:
            raise ConfigError(
                f"Invalid directory_structure '{value}' in {config_path}: "
                f"expected one of {', '.join(DIRECTORY_STRUCTURES)}"
            )
        if key == "copy_files" and not all(isinstance(p, str) for p in value):
            raise ConfigError(f"Invalid value for copy_files in {config_path}: expected a list of strings")
        values[key] = value
    return values


@dataclass
class Config:
    """Resolved application configuration."""

    editor: str
    worktrees_root: Path
    auto_open: bool = False
    repo_name: str | None = None
    directory_structure: str = BRANCH_FIRST
    suggestion_limit: int = SUGGESTION_LIMIT_DEFAULT
    copy_files: list[str] = field(default_factory=list)
    sources: dict[str, ConfigSource] = field(default_factory=dict)

    @classmethod
    def load(cls, cwd: Path | None = None) -> Config:
        """Load configuration by merging defaults, global and local files.

        Later sources override earlier ones key by key:
        defaults, then the global file, then .wt.yaml files from the
        filesystem root down to cwd.

        Args:
            cwd: Directory to start the local config search from (defaults to cwd)

        Returns:
            Merged Config with the winning source of every key

        Raises:
            ConfigError: If any config file is invalid
        """
        cwd = cwd or Path.cwd()
        layers: list[tuple[dict[str, Any], ConfigSource]] = [
            (default_values(), ConfigSource(path="(default)", type="default")),
        ]

        global_path = global_config_path()
        if global_path.is_file():
            layers.append((load_file(global_path), ConfigSource(path=str(global_path), type="global")))

        for local_path in local_config_paths(cwd):
            layers.append((load_file(local_path), ConfigSource(path=str(local_path), type="local")))

        merged: dict[str, Any] = {}
        sources: dict[str, ConfigSource] = {}
        for values, source in layers:
            for key, value in values.items():
                merged[key] = value
                sources[key] = source
                logger.debug("config %s=%r from %s", key, value, source.path)

        return cls(
            editor=merged["editor"],
            worktrees_root=Path(merged["worktrees_root"]).expanduser(),
            auto_open=merged["auto_open"],
            repo_name=merged.get("repo_name"),
            directory_structure=merged["directory_structure"],
            suggestion_limit=merged["suggestion_limit"],
            copy_files=list(merged["copy_files"]),
            sources=sources,
        )

    def get(self, key: str) -> Any:
        """Get a config value by key.

        Raises:
            ConfigError: If key is not a config key
        """
        if key not in CONFIG_KEYS:
            raise ConfigError(f"Unknown config key: {key}")
        return getattr(self, key)

    def worktree_path(self, repo: RepoInfo, branch: str) -> Path:
        """Build the worktree path for a branch of a repository.

        branch-first: $ROOT/<branch>/<org>/<name>
        repo-first:   $ROOT/<org>/<name>/<branch>
        """
        if self.directory_structure == REPO_FIRST:
            return self.worktrees_root / repo.org / repo.name / branch
        return self.worktrees_root / branch / repo.org / repo.name


def parse_value(key: str, raw: str) -> Any:
    """Convert a command-line string into a typed config value.

    Raises:
        ConfigError: If key is unknown or raw can't be converted
    """
    if key not in CONFIG_KEYS:
        raise ConfigError(f"Invalid config key: {key}. Valid keys: {', '.join(CONFIG_KEYS)}")

    if key == "auto_open":
        return raw.strip().lower() == "true"
    if key == "suggestion_limit":
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"Invalid suggestion_limit: {raw}") from None
    if key == "directory_structure" and raw not in DIRECTORY_STRUCTURES:
        raise ConfigError(
            f"Invalid directory_structure '{raw}': expected one of {', '.join(DIRECTORY_STRUCTURES)}"
        )
    if key == "copy_files":
        return [p.strip() for p in raw.split(",") if p.strip()]
    return raw


def set_config_value(key: str, raw: str, global_: bool = False, cwd: Path | None = None) -> tuple[Path, Any]:
    """Write a config value to the global or local config file.

    Other keys in the file are preserved.

    Args:
        key: Config key
        raw: Value as typed on the command line
        global_: Write to the global file instead of ./.wt.yaml
        cwd: Directory holding the local file (defaults to cwd)

    Returns:
        Tuple of (file written, parsed value)

    Raises:
        ConfigError: If key or value is invalid, or the existing file is invalid
    """
    value = parse_value(key, raw)
    config_path = global_config_path() if global_ else (cwd or Path.cwd()) / LOCAL_CONFIG_NAME

    data: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid config in {config_path}: expected a mapping")

    data[key] = value
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    return config_path, value
