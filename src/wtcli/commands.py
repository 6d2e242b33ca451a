"""High-level command implementations."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from wtcli import git, github
from wtcli.config import Config
from wtcli.git import WorktreeInfo
from wtcli.github import GhContext, Suggestion, SuggestionResolution
from wtcli.repo import RepoInfo, detect_repo_info

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Raised when a command can't be carried out."""


@dataclass
class Context:
    """Everything a command needs about where it runs."""

    config: Config
    repo: RepoInfo
    gh: GhContext = field(default_factory=GhContext)

    @property
    def worktrees_root(self) -> Path:
        return self.config.worktrees_root


def load_context(cwd: Path | None = None, gh: GhContext | None = None) -> Context:
    """Load config and detect the repository for cwd.

    Raises:
        ConfigError: If a config file is invalid
        CommandError: If cwd is not inside a git repository
    """
    cwd = cwd or Path.cwd()
    config = Config.load(cwd)
    repo = detect_repo_info(cwd, repo_name=config.repo_name)
    if repo is None:
        raise CommandError("Not in a git repository")
    return Context(config=config, repo=repo, gh=gh or GhContext())


def is_managed(ctx: Context, path: str | Path) -> bool:
    """Check whether a worktree path lives under the worktrees root."""
    try:
        Path(path).resolve().relative_to(ctx.worktrees_root.resolve())
    except ValueError:
        return False
    return True


def cmd_list(ctx: Context, with_status: bool = True) -> list[WorktreeInfo]:
    """List all worktrees of the repository.

    Args:
        ctx: Command context
        with_status: Whether to include change/ahead/behind status

    Returns:
        Worktrees, main worktree first
    """
    return git.load_worktree_infos(ctx.repo.root, with_status=with_status)


def find_worktree(worktrees: list[WorktreeInfo], branch: str) -> WorktreeInfo:
    """Find the worktree checked out on branch.

    Raises:
        CommandError: If no worktree has that branch
    """
    for wt in worktrees:
        if wt.branch == branch:
            return wt
    raise CommandError(f"Worktree for branch '{branch}' not found.")


def cmd_suggestions(ctx: Context, worktrees: list[WorktreeInfo]) -> SuggestionResolution:
    """Look up pull request suggestions for branches without a worktree."""
    existing = {wt.branch for wt in worktrees}
    return github.resolve_suggestions(
        ctx.repo,
        existing_branches=existing,
        limit=ctx.config.suggestion_limit,
        ctx=ctx.gh,
    )


def _prepare_target(ctx: Context, branch: str) -> Path:
    worktree_path = ctx.config.worktree_path(ctx.repo, branch)
    if worktree_path.exists():
        raise CommandError(f"Worktree already exists: {worktree_path}")
    worktree_path.parent.mkdir(parents=True, exist_ok=True)
    return worktree_path


def cmd_new(ctx: Context, branch: str, use_existing: bool = False) -> Path:
    """Create a worktree for a new or existing local branch.

    Args:
        ctx: Command context
        branch: Branch name
        use_existing: Check out the existing branch instead of creating it

    Returns:
        Path of the created worktree

    Raises:
        CommandError: If the worktree path already exists
        git.GitError: If git fails
    """
    worktree_path = _prepare_target(ctx, branch)
    git.add_worktree(worktree_path, branch, existing_branch=use_existing, repo_path=ctx.repo.root)
    return worktree_path


def cmd_create_from_suggestion(ctx: Context, suggestion: Suggestion) -> Path:
    """Create a worktree for a pull request branch.

    Uses the local branch if it exists, otherwise fetches origin/<branch>
    and creates a tracking branch.

    Raises:
        CommandError: If the worktree path already exists
        git.GitError: If git fails
    """
    branch = suggestion.branch
    worktree_path = _prepare_target(ctx, branch)

    if git.branch_exists(branch, ctx.repo.root):
        git.add_worktree(worktree_path, branch, existing_branch=True, repo_path=ctx.repo.root)
    else:
        git.fetch_remote_branch(branch, remote="origin", repo_path=ctx.repo.root)
        git.add_worktree_from_remote(worktree_path, branch, remote="origin", repo_path=ctx.repo.root)
    return worktree_path


def split_remote(ctx: Context, spec: str) -> tuple[str, str]:
    """Split "<remote>/<branch>" into (remote, branch), defaulting to origin."""
    for remote in git.list_remotes(ctx.repo.root):
        if spec.startswith(f"{remote}/"):
            return remote, spec[len(remote) + 1:]
    return "origin", spec


def copy_configured_files(ctx: Context, destination: Path) -> list[tuple[str, str | None]]:
    """Copy files matching copy_files patterns from the repo root.

    Returns:
        (relative path, error message or None) for every matched file
    """
    results: list[tuple[str, str | None]] = []
    seen: set[Path] = set()
    for pattern in ctx.config.copy_files:
        for source in sorted(ctx.repo.root.glob(pattern)):
            if not source.is_file() or source in seen:
                continue
            seen.add(source)
            relative = source.relative_to(ctx.repo.root)
            target = destination / relative
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, target)
                results.append((str(relative), None))
            except OSError as e:
                results.append((str(relative), str(e)))
    return results


def cmd_clone(ctx: Context, spec: str) -> tuple[Path, list[tuple[str, str | None]]]:
    """Create a worktree tracking a remote branch.

    Args:
        ctx: Command context
        spec: "<branch>" or "<remote>/<branch>"

    Returns:
        Tuple of (worktree path, copied file results)

    Raises:
        CommandError: If the branch exists locally or the path exists
        git.GitError: If fetching or creating the worktree fails
    """
    remote, branch = split_remote(ctx, spec)
    git.fetch_remote_branch(branch, remote=remote, repo_path=ctx.repo.root)

    if git.branch_exists(branch, ctx.repo.root):
        raise CommandError(
            f"Branch '{branch}' already exists locally. Use 'wt new {branch}' to create a worktree from it."
        )

    worktree_path = _prepare_target(ctx, branch)
    git.add_worktree_from_remote(worktree_path, branch, remote=remote, repo_path=ctx.repo.root)
    return worktree_path, copy_configured_files(ctx, worktree_path)


def cmd_remove_target(ctx: Context, branch: str) -> WorktreeInfo:
    """Resolve the worktree to remove for a branch.

    Raises:
        CommandError: If there is no such worktree or it's the main worktree
    """
    worktrees = cmd_list(ctx, with_status=False)
    try:
        worktree = find_worktree(worktrees, branch)
    except CommandError:
        raise CommandError(f"No worktree found for branch '{branch}'") from None
    if worktree.is_main:
        raise CommandError("Cannot remove the main repository worktree")
    worktree.status = git.get_worktree_status(Path(worktree.path))
    return worktree


def cmd_remove(ctx: Context, worktree: WorktreeInfo) -> None:
    git.remove_worktree(Path(worktree.path), force=True, repo_path=ctx.repo.root)


@dataclass
class CleanupPlan:
    """Managed worktrees whose branches were merged or deleted upstream."""

    removable: list[WorktreeInfo] = field(default_factory=list)
    with_changes: list[WorktreeInfo] = field(default_factory=list)
    stale_branches: set[str] = field(default_factory=set)


def cmd_cleanup_plan(ctx: Context) -> CleanupPlan:
    """Find worktrees for merged or remotely deleted branches.

    Only worktrees under the worktrees root are considered, and ones with
    uncommitted changes are set aside.
    """
    stale = set(git.get_merged_branches(repo_path=ctx.repo.root))
    stale.update(git.get_deleted_remote_branches(repo_path=ctx.repo.root))
    plan = CleanupPlan(stale_branches=stale)
    if not stale:
        return plan

    for wt in cmd_list(ctx, with_status=False):
        if wt.is_main or wt.branch not in stale or not is_managed(ctx, wt.path):
            continue
        wt.status = git.get_worktree_status(Path(wt.path))
        if wt.status.has_changes:
            plan.with_changes.append(wt)
        else:
            plan.removable.append(wt)
    return plan


def cmd_cleanup(ctx: Context, worktrees: list[WorktreeInfo]) -> list[tuple[str, str | None]]:
    """Remove worktrees, continuing past failures.

    Returns:
        (branch, error message or None) per worktree
    """
    results: list[tuple[str, str | None]] = []
    for wt in worktrees:
        try:
            cmd_remove(ctx, wt)
            results.append((wt.branch, None))
        except git.GitError as e:
            results.append((wt.branch, str(e)))
    return results


@dataclass
class MigrationResult:
    branch: str
    old_path: Path
    new_path: Path
    status: str  # moved, skipped or failed
    message: str = ""


def remove_empty_dirs(path: Path, root: Path) -> None:
    """Remove empty directories from path up to (not including) root."""
    current = path
    while current != root and current.is_relative_to(root):
        try:
            current.rmdir()
        except OSError:
            break
        current = current.parent


def cmd_migrate(ctx: Context) -> list[MigrationResult]:
    """Move managed worktrees to the configured directory structure.

    Returns:
        One result per managed worktree that wasn't already in place
    """
    results = []
    root = ctx.worktrees_root.resolve()
    for wt in cmd_list(ctx, with_status=False):
        old_path = Path(wt.path)
        if wt.is_main or not is_managed(ctx, old_path):
            continue

        new_path = ctx.config.worktree_path(ctx.repo, wt.branch)
        if old_path.resolve() == new_path.resolve():
            continue

        if new_path.exists():
            results.append(MigrationResult(wt.branch, old_path, new_path, "skipped", "destination already exists"))
            continue

        try:
            new_path.parent.mkdir(parents=True, exist_ok=True)
            git.move_worktree(old_path, new_path, repo_path=ctx.repo.root)
        except (OSError, git.GitError) as e:
            results.append(MigrationResult(wt.branch, old_path, new_path, "failed", str(e)))
            continue

        results.append(MigrationResult(wt.branch, old_path, new_path, "moved"))
        remove_empty_dirs(old_path.parent, root)
    return results


def cmd_status(ctx: Context) -> list[WorktreeInfo]:
    """List managed worktrees (excluding the main one) with status."""
    return [
        wt for wt in cmd_list(ctx, with_status=True)
        if not wt.is_main and is_managed(ctx, wt.path)
    ]


def sort_by_mtime(worktrees: list[WorktreeInfo]) -> list[WorktreeInfo]:
    """Order worktrees most recently modified first; missing paths last."""

    def mtime(wt: WorktreeInfo) -> float:
        try:
            return Path(wt.path).stat().st_mtime
        except OSError:
            return 0.0

    return sorted(worktrees, key=mtime, reverse=True)


def parse_editor_command(editor: str) -> list[str]:
    parts = editor.split()
    return parts or ["code"]


def open_in_editor(editor: str, path: Path | str) -> None:
    """Launch the editor on path in the background.

    Raises:
        CommandError: If the editor can't be started
    """
    cmd = [*parse_editor_command(editor), str(path)]
    logger.debug("launching editor: %s", " ".join(cmd))
    try:
        subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        raise CommandError(f"Failed to launch editor '{editor}': {e}") from e
