"""Git and worktree operations."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DETACHED = "(detached)"
DEFAULT_BASE_BRANCH = "main"


class GitError(Exception):
    """Raised when a git operation fails."""


@dataclass
class Worktree:
    """A worktree entry as reported by git."""

    path: Path
    branch: str
    head: str = ""
    is_bare: bool = False
    is_detached: bool = False

    @classmethod
    def from_porcelain_lines(cls, lines: list[str]) -> Worktree:
        """Parse a worktree from git worktree list --porcelain output.

        Args:
            lines: Lines for a single worktree entry

        Returns:
            Parsed Worktree instance. Worktrees without a branch
            (detached HEAD or bare) get the placeholder branch "(detached)".
        """
        path = Path()
        head = ""
        branch: str | None = None
        is_bare = False
        is_detached = False

        for line in lines:
            if line.startswith("worktree "):
                path = Path(line[9:])
            elif line.startswith("HEAD "):
                head = line[5:]
            elif line.startswith("branch "):
                branch = line[7:].removeprefix("refs/heads/")
            elif line == "bare":
                is_bare = True
            elif line == "detached":
                is_detached = True

        return cls(
            path=path,
            branch=branch or DETACHED,
            head=head,
            is_bare=is_bare,
            is_detached=is_detached,
        )


@dataclass
class WorktreeStatus:
    """Working tree and upstream status of a worktree."""

    ahead: int = 0
    behind: int = 0
    has_changes: bool = False
    modified: int = 0
    untracked: int = 0

    @classmethod
    def from_porcelain(cls, output: str, ahead: int = 0, behind: int = 0) -> WorktreeStatus:
        """Build a status from git status --porcelain output."""
        lines = [line for line in output.splitlines() if line]
        modified = sum(1 for line in lines if line.startswith((" M", "M ")))
        untracked = sum(1 for line in lines if line.startswith("??"))
        return cls(
            ahead=ahead,
            behind=behind,
            has_changes=bool(lines),
            modified=modified,
            untracked=untracked,
        )


@dataclass
class WorktreeInfo:
    """A worktree as shown to the user: location, branch and status."""

    path: str
    branch: str
    is_main: bool = False
    status: WorktreeStatus | None = field(default=None)


def run_git(
    *args: str,
    cwd: Path | None = None,
    check: bool = True,
    capture_output: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run a git command.

    Args:
        *args: Git command and arguments
        cwd: Working directory for the command
        check: Whether to raise on non-zero exit
        capture_output: Whether to capture stdout/stderr

    Returns:
        Completed process result

    Raises:
        GitError: If command fails and check=True, or git is not installed
    """
    cmd = ["git", *args]
    logger.debug("running %s (cwd=%s)", " ".join(cmd), cwd)
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            check=check,
            capture_output=capture_output,
            text=True,
        )
        return result
    except subprocess.CalledProcessError as e:
        raise GitError(f"Git command failed: {' '.join(cmd)}\n{e.stderr}") from e
    except FileNotFoundError:
        raise GitError("git executable not found") from None


def is_git_repo(path: Path | None = None) -> bool:
    """Check whether path is inside a git working tree."""
    try:
        result = run_git("rev-parse", "--is-inside-work-tree", cwd=path, check=False)
    except GitError:
        return False
    return result.returncode == 0 and result.stdout.strip() == "true"


def get_repo_root(path: Path | None = None) -> Path:
    """Get the root directory of the git repository.

    Args:
        path: Starting path (defaults to cwd)

    Returns:
        Path to repository root

    Raises:
        GitError: If not in a git repository
    """
    result = run_git("rev-parse", "--show-toplevel", cwd=path)
    return Path(result.stdout.strip())


def get_main_repo_path(path: Path | None = None) -> Path:
    """Get the main repository path (resolves worktrees to their main repo).

    For a linked worktree, returns the main repo's working directory.
    For a main repo, returns its root.

    Args:
        path: Starting path (defaults to cwd)

    Returns:
        Resolved path to main repository root

    Raises:
        GitError: If not in a git repository
    """
    # The common git directory is shared by all worktrees
    result = run_git("rev-parse", "--git-common-dir", cwd=path)
    git_common_dir = Path(result.stdout.strip())
    if not git_common_dir.is_absolute():
        git_common_dir = (path or Path.cwd()) / git_common_dir

    if git_common_dir.name == ".git":
        return git_common_dir.parent.resolve()
    # Bare repo or unusual setup
    return get_repo_root(path).resolve()


def get_remote_url(path: Path | None = None, remote: str = "origin") -> str | None:
    """Get the URL of a remote, or None if it isn't configured."""
    result = run_git("remote", "get-url", remote, cwd=path, check=False)
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def list_remotes(path: Path | None = None) -> list[str]:
    result = run_git("remote", cwd=path, check=False)
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def get_current_branch(path: Path | None = None) -> str | None:
    """Get the current branch name.

    Args:
        path: Path within the repository

    Returns:
        Branch name, or None if in detached HEAD state
    """
    result = run_git("branch", "--show-current", cwd=path, check=False)
    branch = result.stdout.strip()
    return branch or None


def branch_exists(branch: str, path: Path | None = None) -> bool:
    """Check if a local branch exists.

    Args:
        branch: Branch name to check
        path: Path within the repository

    Returns:
        True if branch exists
    """
    result = run_git(
        "rev-parse", "--verify", "--quiet", f"refs/heads/{branch}",
        cwd=path,
        check=False,
    )
    return result.returncode == 0


def list_worktrees(path: Path | None = None) -> list[Worktree]:
    """List all worktrees in the repository.

    Args:
        path: Path within the repository

    Returns:
        List of Worktree instances, main worktree first
    """
    result = run_git("worktree", "list", "--porcelain", cwd=path)

    worktrees = []
    current_lines: list[str] = []

    for line in result.stdout.split("\n"):
        if line == "":
            if current_lines:
                worktrees.append(Worktree.from_porcelain_lines(current_lines))
                current_lines = []
        else:
            current_lines.append(line)

    if current_lines:
        worktrees.append(Worktree.from_porcelain_lines(current_lines))

    return worktrees


def get_upstream(branch: str, path: Path | None = None) -> str | None:
    result = run_git("rev-parse", "--abbrev-ref", f"{branch}@{{upstream}}", cwd=path, check=False)
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def parse_ahead_behind(output: str) -> tuple[int, int]:
    """Parse git rev-list --left-right --count output into (ahead, behind)."""
    parts = output.split()
    if len(parts) != 2:
        return 0, 0
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return 0, 0


def get_worktree_status(path: Path) -> WorktreeStatus:
    """Get change counts and upstream divergence for a worktree.

    Args:
        path: Worktree path

    Returns:
        WorktreeStatus. Ahead/behind are 0 for detached worktrees and
        branches without an upstream.
    """
    status_output = run_git("status", "--porcelain", cwd=path, check=False).stdout

    ahead = behind = 0
    branch = get_current_branch(path)
    if branch:
        upstream = get_upstream(branch, path)
        if upstream:
            counts = run_git(
                "rev-list", "--left-right", "--count", f"{branch}...{upstream}",
                cwd=path,
                check=False,
            )
            ahead, behind = parse_ahead_behind(counts.stdout)

    return WorktreeStatus.from_porcelain(status_output, ahead=ahead, behind=behind)


def load_worktree_infos(repo_root: Path, with_status: bool = True) -> list[WorktreeInfo]:
    """List worktrees as WorktreeInfo records, optionally with status.

    Args:
        repo_root: Root of the repository or any of its worktrees
        with_status: Whether to query status for every worktree

    Returns:
        One record per worktree, in git's order
    """
    main_path = get_main_repo_path(repo_root)
    infos = []
    for wt in list_worktrees(repo_root):
        if wt.is_bare:
            continue
        status = get_worktree_status(wt.path) if with_status and wt.path.exists() else None
        infos.append(
            WorktreeInfo(
                path=str(wt.path),
                branch=wt.branch,
                is_main=wt.path.resolve() == main_path,
                status=status,
            )
        )
    return infos


def add_worktree(
    path: Path,
    branch: str,
    existing_branch: bool = False,
    base: str | None = None,
    repo_path: Path | None = None,
) -> None:
    """Add a new worktree.

    Args:
        path: Path for the new worktree
        branch: Branch to check out
        existing_branch: Check out an existing branch instead of creating one
        base: Base branch/commit for a new branch
        repo_path: Path within the repository

    Raises:
        GitError: If worktree creation fails
    """
    args = ["worktree", "add"]
    if existing_branch:
        args.extend([str(path), branch])
    else:
        args.extend(["-b", branch, str(path)])
        if base:
            args.append(base)
    run_git(*args, cwd=repo_path)


def add_worktree_from_remote(
    path: Path,
    branch: str,
    remote: str = "origin",
    repo_path: Path | None = None,
) -> None:
    """Add a worktree with a new local branch tracking <remote>/<branch>.

    Raises:
        GitError: If worktree creation fails
    """
    run_git(
        "worktree", "add", "--track", "-b", branch, str(path), f"{remote}/{branch}",
        cwd=repo_path,
    )


def fetch_remote_branch(branch: str, remote: str = "origin", repo_path: Path | None = None) -> None:
    """Fetch a single branch from a remote.

    Raises:
        GitError: If the fetch fails
    """
    run_git("fetch", remote, branch, cwd=repo_path)


def remove_worktree(path: Path, force: bool = True, repo_path: Path | None = None) -> None:
    """Remove a worktree.

    Args:
        path: Path of the worktree to remove
        force: Whether to force removal
        repo_path: Path within the repository

    Raises:
        GitError: If worktree removal fails
    """
    args = ["worktree", "remove"]
    if force:
        args.append("--force")
    args.append(str(path))
    run_git(*args, cwd=repo_path)


def move_worktree(old_path: Path, new_path: Path, repo_path: Path | None = None) -> None:
    """Move a worktree to a new location.

    Uses git worktree move to properly update internal git references.

    Args:
        old_path: Current worktree path
        new_path: New worktree path
        repo_path: Path within the repository

    Raises:
        GitError: If worktree move fails
    """
    run_git("worktree", "move", str(old_path), str(new_path), cwd=repo_path)


def _parse_branch_list(output: str) -> list[str]:
    branches = []
    for line in output.splitlines():
        name = line.strip().removeprefix("* ").removeprefix("+ ").strip()
        if name:
            branches.append(name)
    return branches


def get_merged_branches(base: str = DEFAULT_BASE_BRANCH, repo_path: Path | None = None) -> list[str]:
    """List local branches merged into base, excluding base and master.

    Returns an empty list if base doesn't exist.
    """
    result = run_git("branch", "--merged", base, cwd=repo_path, check=False)
    if result.returncode != 0:
        logger.debug("git branch --merged %s failed: %s", base, result.stderr.strip())
        return []
    return [b for b in _parse_branch_list(result.stdout) if b not in (base, "master")]


def get_deleted_remote_branches(repo_path: Path | None = None, remote: str = "origin") -> list[str]:
    """List local branches that no longer exist on the remote.

    Runs git fetch --prune first so deleted remote branches are dropped.
    Repositories without the remote report nothing.
    """
    if remote not in list_remotes(repo_path):
        return []

    prune = run_git("fetch", "--prune", cwd=repo_path, check=False)
    if prune.returncode != 0:
        logger.debug("git fetch --prune failed: %s", prune.stderr.strip())

    remote_output = run_git("branch", "-r", cwd=repo_path, check=False).stdout
    remote_branches = set()
    for name in _parse_branch_list(remote_output):
        if "HEAD" in name:
            continue
        remote_branches.add(name.removeprefix(f"{remote}/"))

    local_branches = _parse_branch_list(run_git("branch", cwd=repo_path, check=False).stdout)
    return [b for b in local_branches if b not in remote_branches]
