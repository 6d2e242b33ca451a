"""Viewport computation and in-place redraw of the live picker."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from wtcli.theme import colorize, format_path, format_status, truncate

if TYPE_CHECKING:
    from wtcli.git import WorktreeInfo
    from wtcli.github import Suggestion
    from wtcli.picker import PickerItem, PickerOptions, PickerState

MAX_VISIBLE_ITEMS = 12
PICKER_PATH_MAX_LENGTH = 64
# Hints must fit on one row or the redraw erases too few lines
PICKER_HINT_MAX_LENGTH = 64

DEFAULT_TITLE = "Select a worktree"
HELP_LINE = "Type to filter • ↑/↓ move • Enter select • Esc cancel"
EMPTY_QUERY = "∅"
NO_MATCHES = "No matching worktrees found"
SCROLL_INDICATOR = "⋮"

# Raw mode turns off output post-processing, so lines end in CR LF
LINE_END = "\r\n"


@dataclass(frozen=True)
class Window:
    """Half-open range [start, end) of visible item indices."""

    start: int
    end: int


def compute_window(total: int, selected_index: int, max_visible: int = MAX_VISIBLE_ITEMS) -> Window:
    """Compute which slice of the filtered list is visible.

    The window is centered on the selection and clamped to the list bounds.

    Args:
        total: Number of filtered items
        selected_index: Current selection (-1 when nothing is selected)
        max_visible: Maximum number of items shown at once

    Returns:
        Visible window; Window(0, 0) for an empty list
    """
    if total <= max_visible:
        return Window(0, total)

    start = max(0, selected_index - max_visible // 2)
    if start + max_visible > total:
        start = total - max_visible
    return Window(start, min(start + max_visible, total))


def format_worktree_display(worktree: WorktreeInfo, current_branch: str | None = None) -> tuple[str, str]:
    """Build the (label, hint) pair shown for a local worktree."""
    marker = colorize("→", "cyan") if current_branch == worktree.branch else " "
    branch_color = "cyan" if worktree.is_main else "green"
    label_parts = [f"{marker} {colorize(worktree.branch, branch_color)}"]
    status = format_status(worktree.status) if worktree.status else ""
    if status:
        label_parts.append(status)
    label = " ".join(label_parts).strip()
    hint = colorize(format_path(worktree.path, PICKER_PATH_MAX_LENGTH), "dim")
    return label, hint


def format_suggestion_display(suggestion: Suggestion) -> tuple[str, str]:
    """Build the (label, hint) pair shown for a pull request suggestion."""
    marker = colorize("+", "green")
    branch = colorize(suggestion.branch, "yellow" if suggestion.is_draft else "magenta")
    draft = colorize(" (draft)", "dim") if suggestion.is_draft else ""
    number = colorize(f"#{suggestion.number}", "cyan")
    flagged = colorize(" [Copilot]", "dim") if suggestion.flagged else ""
    label = f"{marker} {branch}{draft} {number}{flagged}".strip()

    if suggestion.title:
        segments = [suggestion.title]
    elif suggestion.url:
        segments = [suggestion.url]
    else:
        segments = ["Remote branch"]
    if suggestion.flagged:
        segments.append("Assigned by GitHub Copilot")

    hint = truncate(" • ".join(segments), PICKER_HINT_MAX_LENGTH)
    return label, colorize(hint, "dim")


def format_item_display(item: PickerItem, current_branch: str | None = None) -> tuple[str, str]:
    if item.suggestion is not None:
        return format_suggestion_display(item.suggestion)
    return format_worktree_display(item.worktree, current_branch)


class Renderer:
    """Draws picker frames in place.

    Each frame first erases exactly the lines written by the previous frame,
    then writes the new lines and records how many there were.
    """

    def __init__(
        self,
        write: Callable[[str], None],
        options: PickerOptions,
        max_visible: int = MAX_VISIBLE_ITEMS,
    ) -> None:
        self.write = write
        self.options = options
        self.max_visible = max_visible

    def build_lines(self, state: PickerState) -> list[str]:
        """Build the lines of one frame for the given state."""
        lines = [
            colorize(self.options.title or DEFAULT_TITLE, "bright"),
            colorize(HELP_LINE, "dim"),
        ]
        if state.query:
            query_display = colorize(state.query, "magenta")
        else:
            query_display = colorize(self.options.placeholder or EMPTY_QUERY, "dim")
        lines.append(f"Search: {query_display}")
        lines.append("")

        items = state.filtered_items
        if not items:
            lines.append(colorize(NO_MATCHES, "yellow"))
        else:
            window = compute_window(len(items), state.selection_index, self.max_visible)
            if window.start > 0:
                lines.append(colorize(SCROLL_INDICATOR, "dim"))

            for index in range(window.start, window.end):
                selected = index == state.selection_index
                label, hint = format_item_display(items[index], self.options.current_branch)
                pointer = colorize("›", "cyan") if selected else " "
                lines.append(f"{pointer} {colorize(label, 'bright') if selected else label}")
                if hint:
                    lines.append(f"  {colorize(hint, 'bright') if selected else hint}")

            if window.end < len(items):
                lines.append(colorize(SCROLL_INDICATOR, "dim"))

        lines.append("")
        count = len(items)
        lines.append(colorize(f"{count}/{len(state.all_items)} result{'' if count == 1 else 's'}", "dim"))
        return lines

    def erase(self, count: int) -> None:
        """Erase the count lines above the cursor, leaving it at their top."""
        if count == 0:
            return
        self.write(f"\x1b[{count}A" + "\x1b[2K\x1b[1B" * count + f"\x1b[{count}A\r")

    def render(self, state: PickerState) -> None:
        self.erase(state.last_rendered_line_count)
        lines = self.build_lines(state)
        self.write("".join(f"{line}{LINE_END}" for line in lines) + "\r")
        state.last_rendered_line_count = len(lines)

    def clear(self, state: PickerState) -> None:
        """Erase the last frame."""
        self.erase(state.last_rendered_line_count)
        state.last_rendered_line_count = 0
