"""Command-line interface."""

from __future__ import annotations

import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import argcomplete

from wtcli import commands, git, picker, theme
from wtcli.commands import CommandError, Context
from wtcli.config import CONFIG_KEYS, Config, ConfigError, set_config_value
from wtcli.git import WorktreeInfo
from wtcli.github import GhContext, Suggestion, SuggestionResolution
from wtcli.theme import colorize


class BranchCompleter:
    """Complete branches that have a worktree."""

    def __call__(self, prefix, **kwargs):
        try:
            ctx = commands.load_context()
            branches = [wt.branch for wt in commands.cmd_list(ctx, with_status=False)]
            return [b for b in branches if b.startswith(prefix)]
        except Exception as e:
            # Write to stderr for debugging (won't affect completions)
            print(f"BranchCompleter error: {e}", file=sys.stderr)
            return []


class ConfigKeyCompleter:
    """Complete config keys."""

    def __call__(self, prefix, **kwargs):
        return [key for key in CONFIG_KEYS if key.startswith(prefix)]


_branch_completer = BranchCompleter()
_config_key_completer = ConfigKeyCompleter()


def get_version() -> str:
    try:
        return version("wt-cli")
    except PackageNotFoundError:
        return "unknown"


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wt",
        description="Git worktree manager. Run without a command to open the interactive picker.",
    )
    parser.add_argument("--version", action="version", version=f"wt {get_version()}")
    parser.add_argument("--debug", action="store_true", help="Log diagnostics to stderr")
    parser.set_defaults(func=handle_open, branch=None, open=False)
    subparsers = parser.add_subparsers(dest="command")

    # wt open [branch] [--open]
    open_parser = subparsers.add_parser("open", help="Open interactive worktree picker")
    open_parser.add_argument(
        "branch",
        nargs="?",
        help="Branch of the worktree to open. Interactive picker if omitted.",
    ).completer = _branch_completer
    open_parser.add_argument("--open", action="store_true", help="Open the worktree in the editor")
    open_parser.set_defaults(func=handle_open)

    # wt new <branch> [--open]
    new_parser = subparsers.add_parser("new", help="Create a new worktree")
    new_parser.add_argument("branch", help="Branch name")
    new_parser.add_argument("--open", action="store_true", help="Open the worktree in the editor")
    new_parser.set_defaults(func=handle_new)

    # wt clone <branch> [--open]
    clone_parser = subparsers.add_parser("clone", help="Clone a remote branch into a worktree")
    clone_parser.add_argument("branch", help="Remote branch, optionally as <remote>/<branch>")
    clone_parser.add_argument("--open", action="store_true", help="Open the worktree in the editor")
    clone_parser.set_defaults(func=handle_clone)

    # wt list (alias: ls)
    list_parser = subparsers.add_parser("list", aliases=["ls"], help="List all worktrees")
    list_parser.set_defaults(func=handle_list)

    # wt cd [branch]
    cd_parser = subparsers.add_parser("cd", help="Print the path of a worktree (for the shell wrapper)")
    cd_parser.add_argument("branch", nargs="?", help="Branch of the worktree").completer = _branch_completer
    cd_parser.set_defaults(func=handle_cd)

    # wt remove (alias: rm) <branch>
    remove_parser = subparsers.add_parser("remove", aliases=["rm"], help="Remove a worktree")
    remove_parser.add_argument("branch", help="Branch of the worktree").completer = _branch_completer
    remove_parser.set_defaults(func=handle_remove)

    # wt cleanup (alias: clean)
    cleanup_parser = subparsers.add_parser(
        "cleanup", aliases=["clean"], help="Remove worktrees for merged/deleted branches"
    )
    cleanup_parser.set_defaults(func=handle_cleanup)

    # wt migrate
    migrate_parser = subparsers.add_parser(
        "migrate", help="Migrate worktrees to the configured directory structure"
    )
    migrate_parser.set_defaults(func=handle_migrate)

    # wt status (alias: st)
    status_parser = subparsers.add_parser("status", aliases=["st"], help="Show status of all worktrees")
    status_parser.set_defaults(func=handle_status)

    # wt config <get|set|list>
    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_sub = config_parser.add_subparsers(dest="action", required=True)
    get_parser = config_sub.add_parser("get", help="Get a config value")
    get_parser.add_argument("key").completer = _config_key_completer
    set_parser = config_sub.add_parser("set", help="Set a config value (local unless --global)")
    set_parser.add_argument("key").completer = _config_key_completer
    set_parser.add_argument("value")
    set_parser.add_argument("--global", dest="global_", action="store_true", help="Write the global config")
    config_sub.add_parser("list", help="List all config values and their sources")
    config_parser.set_defaults(func=handle_config, requires_repo=False)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()

    # Disable default file completion - only use our custom completers
    argcomplete.autocomplete(parser, default_completer=None)

    args = parser.parse_args(argv)
    configure_logging(args.debug)

    try:
        # Handle commands that don't require a repository
        if not getattr(args, "requires_repo", True):
            return args.func(args)

        ctx = commands.load_context(gh=GhContext())
        return args.func(ctx, args)
    except ConfigError as e:
        theme.error(f"Configuration error: {e}")
        return 1
    except CommandError as e:
        theme.error(str(e))
        return 1
    except git.GitError as e:
        theme.error(f"Git error: {e}")
        return 1


def open_or_print(ctx: Context, path: Path | str, open_requested: bool) -> None:
    """Open path in the configured editor, or print a cd hint."""
    if (open_requested or ctx.config.auto_open) and ctx.config.editor:
        theme.info(f"Opening in {ctx.config.editor}...")
        commands.open_in_editor(ctx.config.editor, path)
    else:
        print(colorize(f"cd {path}", "dim"))


def print_created(path: Path) -> None:
    theme.success("Worktree created!")
    print(f"📂 {colorize(str(path), 'cyan')}")
    print()


def print_existing_hint(branch: str) -> None:
    print()
    print("Options:")
    print(f"  • {colorize('wt open', 'cyan')}     - Switch to existing worktree")
    print(f"  • {colorize(f'wt remove {branch}', 'cyan')} - Remove and recreate")


def report_suggestions(resolution: SuggestionResolution, worktrees: list[WorktreeInfo]) -> list[Suggestion]:
    """Tell the user why there are no suggestions, if that's the case."""
    if resolution.status == "unavailable":
        theme.info("GitHub CLI not detected; skipping remote pull request lookup.")
        print()
    elif resolution.status == "error":
        theme.warning("Unable to fetch pull requests via GitHub CLI.")
        print()
    elif resolution.status == "empty" and not worktrees:
        theme.info("No open pull requests found for your account.")
        print()
    return resolution.suggestions


def print_suggestions(suggestions: list[Suggestion]) -> None:
    if not suggestions:
        return

    print(colorize("Remote pull requests ready for worktrees:", "bright"))
    print()
    for s in suggestions:
        branch = colorize(s.branch, "yellow" if s.is_draft else "magenta")
        draft = colorize(" (draft)", "dim") if s.is_draft else ""
        number = colorize(f"#{s.number}", "cyan")
        title = f" - {s.title}" if s.title else ""
        print(f"  {colorize('*', 'dim')} {branch}{draft} {number}{title}")
        if s.url:
            print(f"    {colorize(s.url, 'dim')}")
    print()
    print(colorize("Tip: Select a suggestion in wt open to create a worktree automatically.", "dim"))
    print()


def handle_open(ctx: Context, args: argparse.Namespace) -> int:
    """Handle the 'open' command (also the default with no command)."""
    worktrees = commands.cmd_list(ctx)

    if args.branch:
        match = commands.find_worktree(worktrees, args.branch)
        print()
        print(f"📂 {colorize(match.path, 'cyan')}")
        print()
        open_or_print(ctx, match.path, args.open)
        return 0

    suggestions = report_suggestions(commands.cmd_suggestions(ctx, worktrees), worktrees)

    if not worktrees and not suggestions:
        theme.info("No worktrees found. Create one with: wt new <branch>")
        return 0

    selected = picker.pick_worktree(
        worktrees,
        suggestions,
        picker.PickerOptions(
            title=f"Worktrees for {ctx.repo.name}",
            current_branch=git.get_current_branch(),
        ),
    )

    if selected is None:
        theme.info("Cancelled")
        return 0

    if isinstance(selected, picker.SuggestionSelection):
        branch = selected.suggestion.branch
        if git.branch_exists(branch, ctx.repo.root):
            theme.info(f"Creating worktree for existing branch '{branch}'...")
        else:
            theme.info(f"Fetching origin/{branch} and creating worktree...")
        try:
            path = commands.cmd_create_from_suggestion(ctx, selected.suggestion)
        except CommandError as e:
            theme.error(str(e))
            print_existing_hint(branch)
            return 1
        print_created(path)
        open_or_print(ctx, path, args.open)
        return 0

    print()
    print(f"📂 {colorize(selected.worktree.path, 'cyan')}")
    print()
    open_or_print(ctx, selected.worktree.path, args.open)
    return 0


def handle_new(ctx: Context, args: argparse.Namespace) -> int:
    """Handle the 'new' command."""
    branch = args.branch
    use_existing = False
    if git.branch_exists(branch, ctx.repo.root):
        if picker.choose_existing_branch_action(branch) == "cancel":
            theme.info("Cancelled")
            return 0
        use_existing = True

    theme.info(f"Creating worktree for branch '{branch}'...")
    try:
        path = commands.cmd_new(ctx, branch, use_existing=use_existing)
    except CommandError as e:
        theme.error(str(e))
        print_existing_hint(branch)
        return 1

    print_created(path)
    open_or_print(ctx, path, args.open)
    return 0


def handle_clone(ctx: Context, args: argparse.Namespace) -> int:
    """Handle the 'clone' command."""
    theme.info(f"Fetching {args.branch}...")
    path, copied = commands.cmd_clone(ctx, args.branch)
    print_created(path)

    if ctx.config.copy_files:
        theme.info("Copying configured files...")
        if not copied:
            print("  • No files matched the configured patterns.")
        for name, problem in copied:
            if problem:
                print(f"  • Failed to copy {name}: {problem}")
            else:
                print(f"  • Copied {name}")
        print()

    open_or_print(ctx, path, args.open)
    return 0


def handle_list(ctx: Context, args: argparse.Namespace) -> int:
    """Handle the 'list' command."""
    worktrees = commands.cmd_list(ctx)

    print()
    print(colorize(f"Worktrees for {ctx.repo.name}:", "bright"))
    print()

    if not worktrees:
        theme.info("No worktrees found. Create one with: wt new <branch>")
        print()
    else:
        for wt in worktrees:
            status = theme.format_status(wt.status) if wt.status else ""
            marker = colorize("→", "cyan") if wt.is_main else " "
            if wt.is_main:
                color = "cyan"
            elif commands.is_managed(ctx, wt.path):
                color = "green"
            else:
                color = "dim"
            print(f"{marker} {colorize(wt.branch, color)} {status}".rstrip())
            print(f"  {colorize(wt.path, 'dim')}")
            print()
        print(colorize("Legend: → main  ● changes  ↑ ahead  ↓ behind", "dim"))
        print()

    print_suggestions(report_suggestions(commands.cmd_suggestions(ctx, worktrees), worktrees))
    return 0


def handle_cd(ctx: Context, args: argparse.Namespace) -> int:
    """Handle the 'cd' command.

    Only the path goes to stdout so the shell wrapper can cd into it.
    """
    worktrees = commands.cmd_list(ctx, with_status=False)

    if args.branch:
        print(commands.find_worktree(worktrees, args.branch).path)
        return 0

    if not worktrees:
        raise CommandError("No worktrees found.")

    selected = picker.pick_worktree(
        commands.sort_by_mtime(worktrees),
        [],
        picker.PickerOptions(title=f"Worktrees for {ctx.repo.name}"),
    )
    if not isinstance(selected, picker.WorktreeSelection):
        return 1

    print(selected.worktree.path)
    return 0


def handle_remove(ctx: Context, args: argparse.Namespace) -> int:
    """Handle the 'remove' command."""
    worktree = commands.cmd_remove_target(ctx, args.branch)

    if not picker.confirm_remove(worktree):
        theme.info("Cancelled")
        return 0

    try:
        commands.cmd_remove(ctx, worktree)
    except git.GitError as e:
        theme.error(f"Failed to remove worktree: {e}")
        return 1

    theme.success(f"Worktree removed: {args.branch}")
    return 0


def handle_cleanup(ctx: Context, args: argparse.Namespace) -> int:
    """Handle the 'cleanup' command."""
    theme.info("Checking for merged/deleted branches...")
    plan = commands.cmd_cleanup_plan(ctx)

    if not plan.stale_branches:
        theme.success("No merged/deleted branches found!")
        return 0

    if not plan.removable and not plan.with_changes:
        theme.success("No worktrees to clean up!")
        return 0

    if plan.with_changes:
        print()
        theme.warning("Skipping branches with uncommitted changes:")
        for wt in plan.with_changes:
            print(f"  {colorize('•', 'yellow')} {wt.branch}")

    if not plan.removable:
        theme.info("All merged/deleted branches have uncommitted changes. Skipping cleanup.")
        return 0

    print()
    if not picker.confirm_cleanup([wt.branch for wt in plan.removable]):
        theme.info("Cancelled")
        return 0

    removed = 0
    for branch, problem in commands.cmd_cleanup(ctx, plan.removable):
        if problem:
            theme.warning(f"Failed to remove {branch}: {problem}")
        else:
            theme.info(f"Removed: {branch}")
            removed += 1

    print()
    theme.success(f"Cleaned up {removed} worktree{'' if removed == 1 else 's'}")
    return 0


def handle_migrate(ctx: Context, args: argparse.Namespace) -> int:
    """Handle the 'migrate' command."""
    theme.info(f"Migrating worktrees to '{ctx.config.directory_structure}' structure...")

    moved = 0
    for result in commands.cmd_migrate(ctx):
        if result.status == "moved":
            print(f"  {colorize(str(result.old_path), 'dim')} -> {colorize(str(result.new_path), 'green')}")
            moved += 1
        elif result.status == "skipped":
            theme.info(f"Skipping {result.branch}: Destination already exists ({result.new_path})")
        else:
            theme.error(f"Failed to move {result.branch}: {result.message}")

    if moved == 0:
        theme.info("No worktrees needed migration.")
    else:
        theme.success(f"Successfully migrated {moved} worktrees.")
    return 0


def handle_status(ctx: Context, args: argparse.Namespace) -> int:
    """Handle the 'status' command."""
    worktrees = commands.cmd_status(ctx)

    print()
    print(colorize(f"Repository: {ctx.repo.name}", "bright"))
    print(colorize(f"Location: {ctx.repo.root}", "dim"))
    print()

    if not worktrees:
        print(colorize("No active worktrees", "dim"))
        print()
        return 0

    print(colorize(f"Active worktrees: {len(worktrees)}", "green"))
    print()
    for wt in worktrees:
        parts = []
        if wt.status and wt.status.has_changes:
            parts.append(colorize("uncommitted changes", "yellow"))
        if wt.status and wt.status.ahead:
            parts.append(colorize(f"{wt.status.ahead} ahead", "green"))
        if wt.status and wt.status.behind:
            parts.append(colorize(f"{wt.status.behind} behind", "red"))
        suffix = f" ({', '.join(parts)})" if parts else ""
        print(f"  {colorize('•', 'green')} {wt.branch}{suffix}")
    print()
    return 0


def handle_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    if args.action == "get":
        value = Config.load().get(args.key)
        if value is None:
            theme.error(f"Config key not set: {args.key}")
            return 1
        print(value)
        return 0

    if args.action == "set":
        config_path, value = set_config_value(args.key, args.value, global_=args.global_)
        theme.success(f"Set {args.key} = {value}")
        theme.info(f"Config file: {config_path}")
        return 0

    config = Config.load()
    print()
    print(colorize("Configuration:", "bright"))
    print()
    for key in CONFIG_KEYS:
        value = config.get(key)
        if value is None:
            continue
        print(f"  {colorize(key, 'cyan')} = {colorize(str(value), 'green')}")
        source = config.sources.get(key)
        if source:
            origin = "(default)" if source.type == "default" else source.path
            print(f"    from: {colorize(origin, 'dim')}")
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
