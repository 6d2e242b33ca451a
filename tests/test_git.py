"""Tests for git module."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from wtcli import git


def commit_file(repo: Path, name: str, message: str) -> None:
    (repo / name).write_text(message)
    subprocess.run(["git", "add", name], cwd=repo, check=True, capture_output=True)
    subprocess.run(["git", "commit", "-m", message], cwd=repo, check=True, capture_output=True)


class TestGitBasics:
    """Tests for basic git operations."""

    def test_is_git_repo(self, temp_git_repo: Path, tmp_path: Path) -> None:
        """Test detecting a git working tree."""
        outside = tmp_path / "outside"
        outside.mkdir()
        assert git.is_git_repo(temp_git_repo)
        assert not git.is_git_repo(outside)

    def test_get_repo_root(self, temp_git_repo: Path) -> None:
        """Test getting repository root."""
        root = git.get_repo_root(temp_git_repo)
        assert root == temp_git_repo

    def test_get_repo_root_from_subdir(self, temp_git_repo: Path) -> None:
        """Test getting repository root from subdirectory."""
        subdir = temp_git_repo / "subdir"
        subdir.mkdir()

        root = git.get_repo_root(subdir)
        assert root == temp_git_repo

    def test_get_repo_root_outside_repo(self, tmp_path: Path) -> None:
        """Test error outside a repository."""
        outside = tmp_path / "outside"
        outside.mkdir()
        with pytest.raises(git.GitError):
            git.get_repo_root(outside)

    def test_get_current_branch(self, temp_git_repo: Path) -> None:
        """Test getting current branch."""
        assert git.get_current_branch(temp_git_repo) == "main"

    def test_branch_exists(self, temp_git_repo: Path) -> None:
        """Test checking if branch exists."""
        assert git.branch_exists("main", temp_git_repo)
        assert not git.branch_exists("nonexistent-branch", temp_git_repo)

    def test_remote_url(self, temp_git_repo: Path) -> None:
        """Test reading a remote URL."""
        assert git.get_remote_url(temp_git_repo) is None
        git.run_git("remote", "add", "origin", "git@github.com:acme/widgets.git", cwd=temp_git_repo)
        assert git.get_remote_url(temp_git_repo) == "git@github.com:acme/widgets.git"
        assert git.list_remotes(temp_git_repo) == ["origin"]

    def test_run_git_failure(self, temp_git_repo: Path) -> None:
        """Test that failing commands raise GitError."""
        with pytest.raises(git.GitError, match="Git command failed"):
            git.run_git("checkout", "no-such-branch", cwd=temp_git_repo)


class TestWorktrees:
    """Tests for worktree operations."""

    def test_list_worktrees(self, temp_git_repo: Path) -> None:
        """Test listing worktrees."""
        worktrees = git.list_worktrees(temp_git_repo)
        assert len(worktrees) == 1
        assert worktrees[0].path == temp_git_repo
        assert worktrees[0].branch == "main"

    def test_add_worktree_existing_branch(self, temp_git_repo: Path) -> None:
        """Test adding a worktree for an existing branch."""
        git.run_git("branch", "feature-branch", cwd=temp_git_repo)

        wt_path = temp_git_repo.parent / "feature-worktree"
        git.add_worktree(wt_path, "feature-branch", existing_branch=True, repo_path=temp_git_repo)

        assert (wt_path / ".git").exists()
        paths = [wt.path for wt in git.list_worktrees(temp_git_repo)]
        assert wt_path in paths

    def test_add_worktree_new_branch(self, temp_git_repo: Path) -> None:
        """Test adding a worktree with a new branch."""
        wt_path = temp_git_repo.parent / "new-feature"
        git.add_worktree(wt_path, "new-feature-branch", repo_path=temp_git_repo)

        assert wt_path.exists()
        assert git.branch_exists("new-feature-branch", temp_git_repo)

    def test_add_worktree_existing_path_fails(self, temp_git_repo: Path) -> None:
        """Test that git refuses to reuse a non-empty directory."""
        wt_path = temp_git_repo.parent / "occupied"
        wt_path.mkdir()
        (wt_path / "file.txt").write_text("x")
        with pytest.raises(git.GitError):
            git.add_worktree(wt_path, "occupied", repo_path=temp_git_repo)

    def test_remove_worktree(self, temp_git_repo: Path) -> None:
        """Test removing a worktree, even with changes."""
        wt_path = temp_git_repo.parent / "to-remove-wt"
        git.add_worktree(wt_path, "to-remove", repo_path=temp_git_repo)
        (wt_path / "scratch.txt").write_text("uncommitted")

        git.remove_worktree(wt_path, repo_path=temp_git_repo)
        assert not wt_path.exists()

    def test_move_worktree(self, temp_git_repo: Path) -> None:
        """Test moving a worktree."""
        old_path = temp_git_repo.parent / "old-location"
        new_path = temp_git_repo.parent / "new-location"
        git.add_worktree(old_path, "movable", repo_path=temp_git_repo)

        git.move_worktree(old_path, new_path, repo_path=temp_git_repo)

        assert not old_path.exists()
        assert new_path.exists()
        assert new_path in [wt.path for wt in git.list_worktrees(temp_git_repo)]

    def test_load_worktree_infos(self, temp_git_repo: Path) -> None:
        """Test WorktreeInfo records with main flag and status."""
        wt_path = temp_git_repo.parent / "side"
        git.add_worktree(wt_path, "side", repo_path=temp_git_repo)
        (wt_path / "new.txt").write_text("untracked")

        infos = git.load_worktree_infos(temp_git_repo)

        assert [(i.branch, i.is_main) for i in infos] == [("main", True), ("side", False)]
        assert infos[0].status is not None and not infos[0].status.has_changes
        assert infos[1].status.has_changes
        assert infos[1].status.untracked == 1
        assert infos[1].path == str(wt_path)

    def test_load_worktree_infos_without_status(self, temp_git_repo: Path) -> None:
        """Test skipping status queries."""
        infos = git.load_worktree_infos(temp_git_repo, with_status=False)
        assert infos[0].status is None

    def test_main_detected_from_linked_worktree(self, temp_git_repo: Path) -> None:
        """Test that the main worktree is flagged when listing from a linked one."""
        linked = temp_git_repo.parent / "linked"
        git.add_worktree(linked, "linked", repo_path=temp_git_repo)

        infos = git.load_worktree_infos(linked, with_status=False)

        assert [(i.branch, i.is_main) for i in infos] == [("main", True), ("linked", False)]

    def test_get_main_repo_path(self, temp_git_repo: Path) -> None:
        """Test resolving the main repository from anywhere inside it."""
        linked = temp_git_repo.parent / "linked"
        git.add_worktree(linked, "linked", repo_path=temp_git_repo)
        subdir = temp_git_repo / "pkg"
        subdir.mkdir()

        assert git.get_main_repo_path(temp_git_repo) == temp_git_repo.resolve()
        assert git.get_main_repo_path(subdir) == temp_git_repo.resolve()
        assert git.get_main_repo_path(linked) == temp_git_repo.resolve()


class TestWorktreeStatus:
    """Tests for status parsing and queries."""

    def test_from_porcelain(self) -> None:
        """Test counting modified and untracked files."""
        output = " M a.py\nM  b.py\n?? c.py\nA  d.py\n"
        status = git.WorktreeStatus.from_porcelain(output, ahead=2, behind=1)

        assert status.has_changes
        assert status.modified == 2
        assert status.untracked == 1
        assert (status.ahead, status.behind) == (2, 1)

    def test_from_porcelain_clean(self) -> None:
        """Test a clean worktree."""
        status = git.WorktreeStatus.from_porcelain("")
        assert not status.has_changes
        assert status.modified == 0

    @pytest.mark.parametrize(
        ("output", "expected"),
        [("3\t1\n", (3, 1)), ("0 0", (0, 0)), ("", (0, 0)), ("x y", (0, 0)), ("1", (0, 0))],
    )
    def test_parse_ahead_behind(self, output: str, expected: tuple[int, int]) -> None:
        """Test parsing rev-list counts."""
        assert git.parse_ahead_behind(output) == expected

    def test_ahead_of_upstream(self, temp_git_repo: Path) -> None:
        """Test ahead count against a tracked upstream branch."""
        git.run_git("branch", "base", cwd=temp_git_repo)
        git.run_git("branch", "--set-upstream-to=base", "main", cwd=temp_git_repo)
        commit_file(temp_git_repo, "one.txt", "one")
        commit_file(temp_git_repo, "two.txt", "two")

        status = git.get_worktree_status(temp_git_repo)

        assert status.ahead == 2
        assert status.behind == 0
        assert not status.has_changes

    def test_no_upstream(self, temp_git_repo: Path) -> None:
        """Test that branches without upstream report zero divergence."""
        status = git.get_worktree_status(temp_git_repo)
        assert (status.ahead, status.behind) == (0, 0)


class TestBranchLists:
    """Tests for merged/deleted branch detection."""

    def test_merged_branches(self, temp_git_repo: Path) -> None:
        """Test listing branches merged into main."""
        git.run_git("branch", "merged-one", cwd=temp_git_repo)
        git.run_git("checkout", "-b", "unmerged", cwd=temp_git_repo)
        commit_file(temp_git_repo, "extra.txt", "extra")
        git.run_git("checkout", "main", cwd=temp_git_repo)

        merged = git.get_merged_branches(repo_path=temp_git_repo)

        assert merged == ["merged-one"]

    def test_merged_branches_missing_base(self, temp_git_repo: Path) -> None:
        """Test that a missing base branch gives an empty list."""
        assert git.get_merged_branches(base="trunk", repo_path=temp_git_repo) == []

    def test_merged_branches_include_worktree_branches(self, temp_git_repo: Path) -> None:
        """Test that branches checked out in worktrees are listed by name."""
        git.add_worktree(temp_git_repo.parent / "wt-merged", "wt-merged", repo_path=temp_git_repo)
        assert "wt-merged" in git.get_merged_branches(repo_path=temp_git_repo)

    def test_deleted_remote_branches_without_remote(self, temp_git_repo: Path) -> None:
        """Test that a repo without origin reports nothing."""
        git.run_git("branch", "local-only", cwd=temp_git_repo)
        assert git.get_deleted_remote_branches(temp_git_repo) == []

    def test_deleted_remote_branches(self, temp_git_repo: Path, tmp_path: Path) -> None:
        """Test finding local branches whose remote branch is gone."""
        remote = tmp_path / "remote.git"
        subprocess.run(["git", "init", "--bare", str(remote)], check=True, capture_output=True)
        git.run_git("remote", "add", "origin", str(remote), cwd=temp_git_repo)
        git.run_git("branch", "kept", cwd=temp_git_repo)
        git.run_git("branch", "gone", cwd=temp_git_repo)
        git.run_git("push", "origin", "main", "kept", "gone", cwd=temp_git_repo)
        subprocess.run(["git", "branch", "-D", "gone"], cwd=remote, check=True, capture_output=True)

        deleted = git.get_deleted_remote_branches(temp_git_repo)

        assert deleted == ["gone"]


class TestWorktreeFromPorcelain:
    """Tests for Worktree.from_porcelain_lines."""

    def test_parse_normal_worktree(self) -> None:
        """Test parsing a normal worktree entry."""
        lines = [
            "worktree /path/to/worktree",
            "HEAD abc123def456",
            "branch refs/heads/main",
        ]
        wt = git.Worktree.from_porcelain_lines(lines)

        assert wt.path == Path("/path/to/worktree")
        assert wt.head == "abc123def456"
        assert wt.branch == "main"
        assert not wt.is_bare
        assert not wt.is_detached

    def test_parse_nested_branch(self) -> None:
        """Test that only the refs/heads/ prefix is stripped."""
        wt = git.Worktree.from_porcelain_lines(["worktree /p", "branch refs/heads/feature/auth"])
        assert wt.branch == "feature/auth"

    def test_parse_bare_worktree(self) -> None:
        """Test parsing a bare repository entry."""
        lines = [
            "worktree /path/to/bare.git",
            "bare",
        ]
        wt = git.Worktree.from_porcelain_lines(lines)

        assert wt.is_bare
        assert wt.branch == git.DETACHED

    def test_parse_detached_worktree(self) -> None:
        """Test parsing a detached HEAD worktree."""
        lines = [
            "worktree /path/to/worktree",
            "HEAD abc123",
            "detached",
        ]
        wt = git.Worktree.from_porcelain_lines(lines)

        assert wt.is_detached
        assert wt.branch == "(detached)"
