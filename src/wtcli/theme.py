"""ANSI styling and user-facing message helpers."""

from __future__ import annotations

import os
import re
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wtcli.git import WorktreeStatus

COLORS = {
    "reset": "\x1b[0m",
    "bright": "\x1b[1m",
    "dim": "\x1b[2m",
    "red": "\x1b[31m",
    "green": "\x1b[32m",
    "yellow": "\x1b[33m",
    "blue": "\x1b[34m",
    "magenta": "\x1b[35m",
    "cyan": "\x1b[36m",
    "white": "\x1b[37m",
}

DEFAULT_PATH_MAX_LENGTH = 60

_ANSI_PATTERN = re.compile(r"\x1b\[[0-9;]*m")


def colorize(text: str, color: str) -> str:
    """Wrap text in the escape codes for a named color."""
    return f"{COLORS[color]}{text}{COLORS['reset']}"


def strip_ansi(text: str) -> str:
    return _ANSI_PATTERN.sub("", text)


def info(message: str) -> None:
    print(colorize(f"ℹ {message}", "blue"))


def success(message: str) -> None:
    print(colorize(f"✓ {message}", "green"))


def warning(message: str) -> None:
    print(colorize(f"⚠ {message}", "yellow"), file=sys.stderr)


def error(message: str) -> None:
    print(colorize(f"✗ {message}", "red"), file=sys.stderr)


def format_status(status: WorktreeStatus) -> str:
    """Summarize a worktree status as a compact colored string.

    Args:
        status: Status of the worktree

    Returns:
        Space separated markers: ● for changes, ↑N ahead, ↓N behind.
        Empty string for a clean, up to date worktree.
    """
    parts = []
    if status.has_changes:
        parts.append(colorize("●", "yellow"))
    if status.ahead > 0:
        parts.append(colorize(f"↑{status.ahead}", "green"))
    if status.behind > 0:
        parts.append(colorize(f"↓{status.behind}", "red"))
    return " ".join(parts)


def truncate(text: str, max_length: int) -> str:
    """Cut text to max_length, marking the cut with ``...``."""
    if len(text) <= max_length:
        return text
    return f"{text[:max_length - 3]}..."


def format_path(path: str, max_length: int = DEFAULT_PATH_MAX_LENGTH) -> str:
    """Shorten a path for display.

    Paths under $HOME are shown with a ``~`` prefix when that makes them fit.
    Paths that still don't fit keep their tail, prefixed with ``...``.
    """
    if len(path) <= max_length:
        return path

    home = os.environ.get("HOME", "")
    if home and path.startswith(home):
        relative = f"~{path[len(home):]}"
        if len(relative) <= max_length:
            return relative
        return f"...{relative[-(max_length - 3):]}"

    return f"...{path[-(max_length - 3):]}"
