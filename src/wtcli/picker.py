"""Interactive worktree selection.

The live picker is a small state machine driven by raw keystrokes: typing
filters the combined list of local worktrees and pull request suggestions,
arrows move the selection, Enter picks and Esc/Ctrl-C cancels. Terminals
without raw mode get a one-shot list prompt over the same items instead.
"""

from __future__ import annotations

import enum
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, TypeVar, Union

from simple_term_menu import TerminalMenu

from wtcli import fuzzy
from wtcli.git import WorktreeInfo
from wtcli.github import Suggestion
from wtcli.keys import Key, KeyEvent, decode_key
from wtcli.render import MAX_VISIBLE_ITEMS, Renderer, format_item_display
from wtcli.terminal import TtyTerminal, is_interactive
from wtcli.theme import colorize, strip_ansi

T = TypeVar("T")


class PickerError(Exception):
    """Raised when picker operation fails."""


@dataclass(frozen=True)
class WorktreeSelection:
    worktree: WorktreeInfo
    kind: str = field(default="worktree", init=False)


@dataclass(frozen=True)
class SuggestionSelection:
    suggestion: Suggestion
    kind: str = field(default="suggestion", init=False)


Selection = Union[WorktreeSelection, SuggestionSelection]


@dataclass(frozen=True)
class PickerOptions:
    title: str | None = None
    placeholder: str | None = None
    current_branch: str | None = None


@dataclass(frozen=True)
class PickerItem:
    """A worktree or suggestion normalized for searching and display.

    search_text is computed once when the item is built.
    """

    kind: str
    branch: str
    search_text: str
    path: str = ""
    title: str = ""
    identifier_label: str = ""
    url: str = ""
    worktree: WorktreeInfo | None = None
    suggestion: Suggestion | None = None

    @classmethod
    def from_worktree(cls, worktree: WorktreeInfo) -> PickerItem:
        return cls(
            kind="worktree",
            branch=worktree.branch,
            path=worktree.path,
            search_text=f"{worktree.branch} {worktree.path}",
            worktree=worktree,
        )

    @classmethod
    def from_suggestion(cls, suggestion: Suggestion) -> PickerItem:
        title = suggestion.title or ""
        url = suggestion.url or ""
        identifier = f"#{suggestion.number}"
        return cls(
            kind="suggestion",
            branch=suggestion.branch,
            title=title,
            identifier_label=identifier,
            url=url,
            search_text=" ".join([suggestion.branch, title, identifier, url]),
            suggestion=suggestion,
        )

    def to_selection(self) -> Selection:
        if self.suggestion is not None:
            return SuggestionSelection(self.suggestion)
        if self.worktree is None:
            raise PickerError(f"Picker item '{self.branch}' has no worktree or suggestion")
        return WorktreeSelection(self.worktree)


def build_picker_items(
    worktrees: list[WorktreeInfo],
    suggestions: list[Suggestion],
) -> list[PickerItem]:
    """Combine worktrees and suggestions into picker items.

    Worktrees come first, then suggestions, each in the given order.
    """
    return [PickerItem.from_worktree(wt) for wt in worktrees] + [
        PickerItem.from_suggestion(s) for s in suggestions
    ]


@dataclass
class PickerState:
    """Mutable state of one live picker session."""

    all_items: tuple[PickerItem, ...]
    query: str = ""
    filtered_items: list[PickerItem] = field(default_factory=list)
    selection_index: int = -1
    last_rendered_line_count: int = 0

    def __post_init__(self) -> None:
        self.filtered_items = list(self.all_items)
        self.selection_index = 0 if self.filtered_items else -1

    @property
    def selected_item(self) -> PickerItem | None:
        if self.selection_index < 0:
            return None
        return self.filtered_items[self.selection_index]

    def refilter(self) -> None:
        """Recompute filtered_items for the query and clamp the selection."""
        self.filtered_items = fuzzy.match(self.query, self.all_items)

        if not self.filtered_items:
            self.selection_index = -1
        elif self.selection_index == -1:
            self.selection_index = 0
        elif self.selection_index >= len(self.filtered_items):
            self.selection_index = len(self.filtered_items) - 1

    def set_query(self, query: str) -> None:
        self.query = query
        self.refilter()

    def move(self, delta: int) -> bool:
        """Move the selection by delta, wrapping around both ends.

        Returns:
            False if there is nothing to move through
        """
        length = len(self.filtered_items)
        if length == 0:
            return False
        self.selection_index = (self.selection_index + delta) % length
        return True


class Terminal(Protocol):
    def enter_raw_mode(self) -> None: ...

    def restore_mode(self) -> None: ...

    def hide_cursor(self) -> None: ...

    def show_cursor(self) -> None: ...

    def write(self, text: str) -> None: ...

    def read(self) -> str: ...


class PickerPhase(enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class LivePicker:
    """Raw-mode fuzzy picker over a fixed list of items."""

    def __init__(
        self,
        items: list[PickerItem],
        options: PickerOptions,
        terminal: Terminal,
        max_visible: int = MAX_VISIBLE_ITEMS,
    ) -> None:
        self.state = PickerState(all_items=tuple(items))
        self.terminal = terminal
        self.renderer = Renderer(terminal.write, options, max_visible)
        self.max_visible = max_visible
        self.phase = PickerPhase.IDLE
        self.selection: Selection | None = None

    def handle_key(self, event: KeyEvent | None) -> None:
        """Apply one key event to the picker state."""
        if event is None:
            return

        state = self.state
        if event.key is Key.CANCEL:
            self.phase = PickerPhase.CANCELLED
        elif event.key is Key.ENTER:
            item = state.selected_item
            if item is not None:
                self.selection = item.to_selection()
                self.phase = PickerPhase.RESOLVED
        elif event.key is Key.BACKSPACE:
            if state.query:
                state.set_query(state.query[:-1])
                self.renderer.render(state)
        elif event.key in (Key.UP, Key.DOWN, Key.PAGE_UP, Key.PAGE_DOWN):
            delta = {
                Key.UP: -1,
                Key.DOWN: 1,
                Key.PAGE_UP: -self.max_visible,
                Key.PAGE_DOWN: self.max_visible,
            }[event.key]
            if state.move(delta):
                self.renderer.render(state)
        elif event.key is Key.TEXT:
            state.set_query(state.query + event.text)
            self.renderer.render(state)

    def _finish(self) -> None:
        self.renderer.clear(self.state)
        self.terminal.write("\x1b[2K\r")
        self.terminal.show_cursor()
        self.terminal.restore_mode()

    def run(self) -> Selection | None:
        """Run the picker until the user selects or cancels.

        Returns:
            The selection, or None if cancelled or raw mode couldn't be entered
        """
        try:
            self.terminal.enter_raw_mode()
            self.terminal.hide_cursor()
        except Exception:
            self.terminal.show_cursor()
            self.terminal.restore_mode()
            self.phase = PickerPhase.CANCELLED
            return None

        self.phase = PickerPhase.ACTIVE
        try:
            self.state.refilter()
            self.renderer.render(self.state)
            while self.phase is PickerPhase.ACTIVE:
                chunk = self.terminal.read()
                if not chunk:
                    self.phase = PickerPhase.CANCELLED
                    break
                self.handle_key(decode_key(chunk))
        except OSError:
            # terminal went away mid-session
            self.phase = PickerPhase.CANCELLED
            self.selection = None
        finally:
            self._finish()

        return self.selection if self.phase is PickerPhase.RESOLVED else None


def _plain_display(item: PickerItem, current_branch: str | None) -> str:
    label, hint = format_item_display(item, current_branch)
    label, hint = strip_ansi(label).strip(), strip_ansi(hint)
    return f"{label}  ({hint})" if hint else label


def prompt_choice(entries: list[str], title: str | None) -> int | None:
    """Ask for a choice on a plain line-based prompt.

    Args:
        entries: Entries to number, starting at 1
        title: Optional heading

    Returns:
        The chosen index, or None on empty input, EOF or an invalid number
    """
    if title:
        print(title, file=sys.stderr)
    for number, entry in enumerate(entries, start=1):
        print(f"  {number:>3}) {entry}", file=sys.stderr)

    print("Enter number: ", end="", file=sys.stderr, flush=True)
    line = sys.stdin.readline()
    if not line:
        return None

    answer = line.strip()
    if not answer.isdigit():
        return None
    index = int(answer) - 1
    if not 0 <= index < len(entries):
        return None
    return index


def pick_one(
    items: list[T],
    format_item: Callable[[T], str],
    title: str | None = None,
) -> T:
    """Display a one-shot selection list and return the selected item.

    Uses a terminal menu when attached to a TTY, otherwise a numbered prompt.

    Args:
        items: List of items to choose from
        format_item: Function to convert item to display string
        title: Optional title shown above the menu

    Returns:
        The selected item from the list

    Raises:
        PickerError: If user cancels selection (Esc/q/Ctrl-C) or no items
    """
    if not items:
        raise PickerError("No items to select from")

    menu_entries = [format_item(item) for item in items]

    if is_interactive():
        menu = TerminalMenu(
            menu_entries,
            title=title,
            menu_cursor_style=("fg_cyan", "bold"),
            menu_highlight_style=("bg_gray", "fg_black"),
        )
        selected_index = menu.show()
    else:
        selected_index = prompt_choice(menu_entries, title)

    if selected_index is None:
        raise PickerError("Selection cancelled")

    return items[selected_index]


def fallback_pick_worktree(
    items: list[PickerItem],
    options: PickerOptions,
    prompt: Callable[..., Any] = pick_one,
) -> Selection | None:
    """Pick from the full item list with a static one-shot prompt."""
    try:
        selected = prompt(
            items,
            format_item=lambda item: _plain_display(item, options.current_branch),
            title=options.title or "Select a worktree",
        )
    except PickerError:
        return None
    return selected.to_selection()


def pick_worktree(
    worktrees: list[WorktreeInfo],
    suggestions: list[Suggestion],
    options: PickerOptions | None = None,
    terminal: Terminal | None = None,
    interactive: bool | None = None,
    prompt: Callable[..., Any] = pick_one,
) -> Selection | None:
    """Pick a worktree or suggestion.

    Args:
        worktrees: Local worktrees, listed first
        suggestions: Pull request suggestions, listed after worktrees
        options: Header text and current branch marker
        terminal: Terminal for the live picker (defaults to stdin/stdout)
        interactive: Result of the capability probe (probed if None)
        prompt: Static selection prompt used without raw mode

    Returns:
        The selection, or None if cancelled or there is nothing to pick
    """
    options = options or PickerOptions()
    if not worktrees and not suggestions:
        return None

    items = build_picker_items(worktrees, suggestions)

    if interactive is None:
        interactive = is_interactive()
    if not interactive:
        return fallback_pick_worktree(items, options, prompt)

    return LivePicker(items, options, terminal or TtyTerminal()).run()


def confirm(message: str, default: bool = True) -> bool:
    """Ask a yes/no question.

    Args:
        message: Question to ask
        default: Answer used for empty input or EOF

    Returns:
        True for yes
    """
    if is_interactive():
        entries = ["Yes", "No"]
        menu = TerminalMenu(
            entries,
            title=message,
            cursor_index=0 if default else 1,
            menu_cursor_style=("fg_cyan", "bold"),
        )
        return menu.show() == 0

    suffix = "[Y/n]" if default else "[y/N]"
    try:
        answer = input(f"{message} {suffix} ").strip().lower()
    except EOFError:
        return default
    if not answer:
        return default
    return answer in ("y", "yes")


def confirm_remove(worktree: WorktreeInfo) -> bool:
    """Show a worktree summary and confirm its removal.

    The default answer is "no" when the worktree has uncommitted changes.
    """
    status = worktree.status
    has_changes = bool(status and status.has_changes)

    lines = [
        f"Branch: {colorize(worktree.branch, 'cyan')}",
        f"Path: {colorize(worktree.path, 'dim')}",
    ]
    if status:
        parts = []
        if status.modified:
            parts.append(f"{status.modified} modified")
        if status.untracked:
            parts.append(f"{status.untracked} untracked")
        if status.ahead:
            parts.append(f"{status.ahead} ahead")
        if status.behind:
            parts.append(f"{status.behind} behind")
        if parts:
            lines.append(f"Status: {', '.join(parts)}")

    if has_changes:
        lines.append("")
        lines.append(colorize("⚠️  You have uncommitted changes!", "yellow"))

    print("\n" + "\n".join(lines) + "\n")
    return confirm("Are you sure you want to remove this worktree?", default=not has_changes)


def confirm_cleanup(branches: list[str]) -> bool:
    print("\nFound merged/deleted branches:")
    for branch in branches:
        print(f"  {colorize('•', 'dim')} {branch}")
    print()
    plural = "s" if len(branches) > 1 else ""
    return confirm(f"Remove {len(branches)} worktree{plural}?", default=True)


def choose_existing_branch_action(branch: str) -> str:
    """Ask what to do when the branch for a new worktree already exists.

    Returns:
        "create" or "cancel"
    """
    actions = [
        ("create", "Create worktree from existing branch"),
        ("cancel", "Cancel"),
    ]
    try:
        action, _ = pick_one(actions, format_item=lambda a: a[1], title=f'Branch "{branch}" already exists.')
    except PickerError:
        return "cancel"
    return action
