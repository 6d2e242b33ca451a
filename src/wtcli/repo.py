"""Repository identity detection."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from wtcli import git

REMOTE_PATTERNS = [
    re.compile(r"github\.com[:/]([^/]+)/([^/.]+)"),
    re.compile(r"gitlab\.com[:/]([^/]+)/([^/.]+)"),
    re.compile(r"bitbucket\.org[:/]([^/]+)/([^/.]+)"),
    re.compile(r"[:/]([^/]+)/([^/.]+)\.git$"),
]

# Parent directories too generic to be an organization name
GENERIC_DIRS = {"code", "projects", "workspace", "dev", "src", "repos"}


@dataclass(frozen=True)
class RepoInfo:
    """Identity of the repository the command runs in."""

    root: Path
    org: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.org}/{self.name}"


def parse_repo_from_remote(remote_url: str) -> tuple[str, str] | None:
    """Extract (org, name) from a git remote URL.

    Handles SSH and HTTPS URLs for GitHub, GitLab and Bitbucket, and any
    URL ending in <org>/<name>.git.
    """
    for pattern in REMOTE_PATTERNS:
        match = pattern.search(remote_url)
        if match:
            return match.group(1), match.group(2).removesuffix(".git")
    return None


def parse_repo_from_path(path: Path) -> tuple[str, str] | None:
    """Guess (org, name) from a checkout location like ~/github.com/org/name."""
    parts = path.parts
    if "github.com" in parts:
        index = parts.index("github.com")
        if len(parts) >= index + 3:
            return parts[index + 1], parts[index + 2]

    if len(parts) >= 3:
        org, name = parts[-2], parts[-1]
        if org not in GENERIC_DIRS:
            return org, name
    return None


def detect_repo_info(cwd: Path | None = None, repo_name: str | None = None) -> RepoInfo | None:
    """Detect the repository containing cwd.

    Args:
        cwd: Directory inside the repository (defaults to cwd)
        repo_name: Configured "org/name" override

    Returns:
        RepoInfo, or None when cwd is not inside a git repository
    """
    if not git.is_git_repo(cwd):
        return None

    root = git.get_repo_root(cwd)

    if repo_name:
        parts = repo_name.split("/")
        if len(parts) == 2 and all(parts):
            return RepoInfo(root=root, org=parts[0], name=parts[1])

    remote_url = git.get_remote_url(cwd)
    if remote_url:
        parsed = parse_repo_from_remote(remote_url)
        if parsed:
            return RepoInfo(root=root, org=parsed[0], name=parsed[1])

    parsed = parse_repo_from_path(root)
    if parsed:
        return RepoInfo(root=root, org=parsed[0], name=parsed[1])

    return RepoInfo(root=root, org="local", name=root.name or "unknown")
