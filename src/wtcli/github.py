"""GitHub CLI (gh) wrapper for pull request suggestions."""

from __future__ import annotations

import json
import logging
import math
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from wtcli.repo import RepoInfo

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30  # seconds

SUGGESTION_LIMIT_DEFAULT = 200
SUGGESTION_LIMIT_MAX = 1000

PR_JSON_FIELDS = ("number", "title", "headRefName", "url", "isDraft", "updatedAt")


class GhError(Exception):
    """Raised when a gh operation fails."""


@dataclass
class GhContext:
    """Process-wide state for gh lookups.

    The availability probe runs at most once; the answer is kept for the
    lifetime of the context and never invalidated.
    """

    available: bool | None = None

    def is_available(self, cwd: Path | None = None) -> bool:
        """Check if the gh CLI is installed (probed once).

        Args:
            cwd: Working directory for the probe

        Returns:
            True if `gh --version` succeeds
        """
        if self.available is not None:
            return self.available

        try:
            subprocess.run(
                ["gh", "--version"],
                cwd=cwd,
                capture_output=True,
                check=True,
                timeout=5,
            )
            self.available = True
        except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired):
            self.available = False

        logger.debug("gh available: %s", self.available)
        return self.available


@dataclass
class Suggestion:
    """An open pull request whose branch has no local worktree yet."""

    branch: str
    number: int
    title: str = ""
    url: str | None = None
    is_draft: bool = False
    updated_at: str | None = None
    flagged: bool = False


@dataclass
class SuggestionResolution:
    """Outcome of a suggestion lookup.

    status is one of "unavailable" (gh missing), "error" (gh failed),
    "empty" (no suggestions) or "ok".
    """

    status: str
    suggestions: list[Suggestion] = field(default_factory=list)


def normalize_suggestion_limit(limit: float | None = None) -> int:
    """Clamp a requested suggestion limit.

    None or non-finite values give the default. Values are floored;
    zero or negative means "as many as allowed".
    """
    if limit is None or isinstance(limit, bool) or not math.isfinite(limit):
        return SUGGESTION_LIMIT_DEFAULT

    rounded = math.floor(limit)
    if rounded <= 0:
        return SUGGESTION_LIMIT_MAX
    return min(rounded, SUGGESTION_LIMIT_MAX)


def run_gh(
    *args: str,
    cwd: Path | None = None,
    check: bool = True,
    timeout: float = DEFAULT_TIMEOUT,
) -> subprocess.CompletedProcess[str]:
    """Run a gh command.

    Args:
        *args: gh command and arguments
        cwd: Working directory for the command
        check: Whether to raise on non-zero exit
        timeout: Timeout in seconds

    Returns:
        Completed process result

    Raises:
        GhError: If command fails and check=True, times out, or gh is missing
    """
    cmd = ["gh", *args]
    logger.debug("running %s", " ".join(cmd))
    try:
        return subprocess.run(
            cmd,
            cwd=cwd,
            check=check,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.CalledProcessError as e:
        raise GhError(f"gh command failed: {' '.join(cmd)}\n{e.stderr}") from e
    except subprocess.TimeoutExpired:
        raise GhError(f"gh command timed out: {' '.join(cmd)}") from None
    except FileNotFoundError:
        raise GhError("GitHub CLI (gh) not found. Install from https://cli.github.com") from None


def parse_pull_request(entry: Any) -> dict[str, Any] | None:
    """Validate one entry of gh pr list JSON output.

    Returns:
        The entry if it has an int number and string title/headRefName and
        optional fields of the right type, else None
    """
    if not isinstance(entry, dict):
        return None
    number = entry.get("number")
    if not isinstance(number, int) or isinstance(number, bool):
        return None
    if not isinstance(entry.get("title"), str) or not isinstance(entry.get("headRefName"), str):
        return None
    for key, expected in (("url", str), ("isDraft", bool), ("updatedAt", str)):
        if entry.get(key) is not None and not isinstance(entry[key], expected):
            return None
    return entry


def list_pull_requests(repo: RepoInfo, limit: int) -> list[dict[str, Any]] | None:
    """List the current user's open pull requests.

    Args:
        repo: Repository to query
        limit: Maximum number of pull requests

    Returns:
        Validated pull request dicts, or None if gh failed or returned
        something other than a JSON list
    """
    try:
        result = run_gh(
            "pr", "list",
            "--repo", repo.full_name,
            "--state", "open",
            "--author", "@me",
            "--limit", str(limit),
            "--json", ",".join(PR_JSON_FIELDS),
            cwd=repo.root,
        )
    except GhError as e:
        logger.debug("%s", e)
        return None

    stdout = result.stdout.strip()
    if not stdout:
        return []

    try:
        parsed = json.loads(stdout)
    except json.JSONDecodeError as e:
        logger.debug("gh returned invalid JSON: %s", e)
        return None
    if not isinstance(parsed, list):
        return None

    pull_requests = []
    for entry in parsed:
        pr = parse_pull_request(entry)
        if pr is None:
            logger.debug("skipping malformed pull request entry: %r", entry)
            continue
        pull_requests.append(pr)
    return pull_requests


def get_suggestions(
    repo: RepoInfo,
    existing_branches: set[str],
    limit: int,
) -> list[Suggestion] | None:
    """Build suggestions from open pull requests without a local worktree.

    Returns:
        Suggestions in gh's order, or None if the lookup failed
    """
    pull_requests = list_pull_requests(repo, limit)
    if pull_requests is None:
        return None

    return [
        Suggestion(
            branch=pr["headRefName"],
            number=pr["number"],
            title=pr["title"],
            url=pr.get("url"),
            is_draft=bool(pr.get("isDraft")),
            updated_at=pr.get("updatedAt"),
        )
        for pr in pull_requests
        if pr["headRefName"] not in existing_branches
    ]


def resolve_suggestions(
    repo: RepoInfo,
    existing_branches: set[str],
    limit: int,
    ctx: GhContext,
) -> SuggestionResolution:
    """Look up suggestions, classifying the outcome."""
    if not ctx.is_available(cwd=repo.root):
        return SuggestionResolution(status="unavailable")

    suggestions = get_suggestions(repo, existing_branches, normalize_suggestion_limit(limit))
    if suggestions is None:
        return SuggestionResolution(status="error")
    if not suggestions:
        return SuggestionResolution(status="empty")
    return SuggestionResolution(status="ok", suggestions=suggestions)
