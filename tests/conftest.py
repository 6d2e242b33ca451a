"""Test fixtures for wt tests."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Generator

import pytest

from wtcli.commands import Context
from wtcli.config import Config
from wtcli.git import WorktreeInfo, WorktreeStatus
from wtcli.github import GhContext
from wtcli.repo import RepoInfo


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the global config at a file that doesn't exist yet.

    Keeps the user's own ~/.wt.yaml out of every test.
    """
    config_path = tmp_path / "global" / "config.yaml"
    monkeypatch.setenv("WT_CONFIG", str(config_path))
    monkeypatch.delenv("EDITOR", raising=False)
    monkeypatch.delenv("VISUAL", raising=False)
    return config_path


@pytest.fixture
def temp_git_repo(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary git repository with an initial commit on main.

    Yields:
        Path to the repository root
    """
    repo_path = tmp_path / "repo"
    repo_path.mkdir()

    # Initialize repo
    subprocess.run(["git", "init"], cwd=repo_path, check=True, capture_output=True)
    subprocess.run(
        ["git", "config", "user.email", "test@example.com"],
        cwd=repo_path,
        check=True,
        capture_output=True,
    )
    subprocess.run(
        ["git", "config", "user.name", "Test User"],
        cwd=repo_path,
        check=True,
        capture_output=True,
    )

    # Create initial commit
    (repo_path / "README.md").write_text("# Test Repo")
    subprocess.run(["git", "add", "."], cwd=repo_path, check=True, capture_output=True)
    subprocess.run(
        ["git", "commit", "-m", "Initial commit"],
        cwd=repo_path,
        check=True,
        capture_output=True,
    )
    subprocess.run(["git", "branch", "-M", "main"], cwd=repo_path, check=True, capture_output=True)

    yield repo_path


@pytest.fixture
def temp_context(tmp_path: Path, temp_git_repo: Path) -> Context:
    """Command context for temp_git_repo with worktrees under tmp_path/worktrees.

    gh is marked unavailable so no test talks to GitHub.
    """
    worktrees_root = tmp_path / "worktrees"
    worktrees_root.mkdir()
    config = Config(editor="true", worktrees_root=worktrees_root)
    repo = RepoInfo(root=temp_git_repo, org="acme", name="widgets")
    return Context(config=config, repo=repo, gh=GhContext(available=False))


def make_worktree(branch: str, path: str | None = None, **kwargs) -> WorktreeInfo:
    """Build a WorktreeInfo with a /wt/<branch> path by default."""
    status = kwargs.pop("status", None)
    return WorktreeInfo(path=path or f"/wt/{branch}", branch=branch, status=status, **kwargs)


def dirty_status() -> WorktreeStatus:
    return WorktreeStatus(has_changes=True, modified=1)
