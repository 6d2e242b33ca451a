"""Tests for github module."""

from __future__ import annotations

import json
import math
import subprocess
from pathlib import Path

import pytest

from wtcli import github
from wtcli.github import GhContext, GhError, Suggestion
from wtcli.repo import RepoInfo

REPO = RepoInfo(root=Path("/src/widgets"), org="acme", name="widgets")


def pr(number: int, branch: str, **extra) -> dict:
    entry = {"number": number, "title": f"PR {number}", "headRefName": branch}
    entry.update(extra)
    return entry


def fake_gh(monkeypatch: pytest.MonkeyPatch, stdout: str = "", error: Exception | None = None) -> list[tuple]:
    """Replace run_gh, recording the arguments of each call."""
    calls: list[tuple] = []

    def run_gh(*args, **kwargs):
        calls.append(args)
        if error is not None:
            raise error
        return subprocess.CompletedProcess(["gh", *args], 0, stdout=stdout, stderr="")

    monkeypatch.setattr(github, "run_gh", run_gh)
    return calls


class TestNormalizeSuggestionLimit:
    """Tests for normalize_suggestion_limit()."""

    @pytest.mark.parametrize(
        ("limit", "expected"),
        [
            (None, 200),
            (math.nan, 200),
            (math.inf, 200),
            (True, 200),
            (50, 50),
            (50.9, 50),
            (0, 1000),
            (-5, 1000),
            (0.5, 1000),
            (5000, 1000),
            (1000, 1000),
        ],
    )
    def test_limits(self, limit: float | None, expected: int) -> None:
        """Test defaulting, flooring and clamping."""
        assert github.normalize_suggestion_limit(limit) == expected


class TestGhContext:
    """Tests for GhContext availability caching."""

    def test_probe_runs_once(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that gh --version runs at most once."""
        calls = []

        def run(cmd, **kwargs):
            calls.append(cmd)
            return subprocess.CompletedProcess(cmd, 0)

        monkeypatch.setattr(subprocess, "run", run)
        ctx = GhContext()

        assert ctx.is_available()
        assert ctx.is_available()
        assert calls == [["gh", "--version"]]

    def test_missing_gh(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a missing gh binary means unavailable."""

        def run(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(subprocess, "run", run)
        assert GhContext().is_available() is False

    def test_preset_answer(self) -> None:
        """Test that a known answer skips the probe."""
        assert GhContext(available=False).is_available() is False


class TestRunGh:
    """Tests for run_gh() error mapping."""

    def test_missing_binary(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test error when gh isn't installed."""

        def run(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(subprocess, "run", run)
        with pytest.raises(GhError, match="not found"):
            github.run_gh("pr", "list")

    def test_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test error when gh hangs."""

        def run(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

        monkeypatch.setattr(subprocess, "run", run)
        with pytest.raises(GhError, match="timed out"):
            github.run_gh("pr", "list")


class TestListPullRequests:
    """Tests for list_pull_requests()."""

    def test_command_line(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the gh invocation."""
        calls = fake_gh(monkeypatch, stdout="[]")

        github.list_pull_requests(REPO, 25)

        assert calls == [(
            "pr", "list",
            "--repo", "acme/widgets",
            "--state", "open",
            "--author", "@me",
            "--limit", "25",
            "--json", "number,title,headRefName,url,isDraft,updatedAt",
        )]

    def test_empty_output(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that empty output is an empty list."""
        fake_gh(monkeypatch, stdout="  \n")
        assert github.list_pull_requests(REPO, 10) == []

    def test_invalid_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that invalid JSON is a failure."""
        fake_gh(monkeypatch, stdout="not json")
        assert github.list_pull_requests(REPO, 10) is None

    def test_not_a_list(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a JSON object is a failure."""
        fake_gh(monkeypatch, stdout='{"number": 1}')
        assert github.list_pull_requests(REPO, 10) is None

    def test_gh_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that gh errors become None."""
        fake_gh(monkeypatch, error=GhError("boom"))
        assert github.list_pull_requests(REPO, 10) is None

    def test_malformed_entries_skipped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that entries of the wrong shape are dropped."""
        entries = [
            pr(1, "good"),
            {"number": "2", "title": "t", "headRefName": "b"},
            {"number": 3, "headRefName": "no-title"},
            pr(4, "bad-draft", isDraft="yes"),
            "junk",
            pr(5, "also-good", url=None),
        ]
        fake_gh(monkeypatch, stdout=json.dumps(entries))

        result = github.list_pull_requests(REPO, 10)

        assert [e["number"] for e in result] == [1, 5]


class TestSuggestions:
    """Tests for get_suggestions() and resolve_suggestions()."""

    def test_existing_branches_filtered(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that branches with worktrees aren't suggested."""
        entries = [
            pr(1, "main"),
            pr(2, "fix-login", url="https://github.com/acme/widgets/pull/2", isDraft=True),
            pr(3, "feature"),
        ]
        fake_gh(monkeypatch, stdout=json.dumps(entries))

        suggestions = github.get_suggestions(REPO, {"main", "feature"}, 10)

        assert suggestions == [
            Suggestion(
                branch="fix-login",
                number=2,
                title="PR 2",
                url="https://github.com/acme/widgets/pull/2",
                is_draft=True,
            )
        ]

    def test_unavailable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that gh isn't called when unavailable."""
        calls = fake_gh(monkeypatch, stdout="[]")
        result = github.resolve_suggestions(REPO, set(), 10, GhContext(available=False))
        assert result.status == "unavailable"
        assert result.suggestions == []
        assert calls == []

    def test_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a failed lookup is reported as an error."""
        fake_gh(monkeypatch, stdout="oops")
        result = github.resolve_suggestions(REPO, set(), 10, GhContext(available=True))
        assert result.status == "error"

    def test_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that all-filtered results are empty."""
        fake_gh(monkeypatch, stdout=json.dumps([pr(1, "main")]))
        result = github.resolve_suggestions(REPO, {"main"}, 10, GhContext(available=True))
        assert result.status == "empty"

    def test_ok_with_normalized_limit(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a successful lookup uses the clamped limit."""
        calls = fake_gh(monkeypatch, stdout=json.dumps([pr(1, "topic")]))
        result = github.resolve_suggestions(REPO, set(), 0, GhContext(available=True))
        assert result.status == "ok"
        assert [s.branch for s in result.suggestions] == ["topic"]
        assert "1000" in calls[0]
