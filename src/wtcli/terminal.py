"""Raw terminal access for the live picker.

Owns the raw-mode lifecycle and cursor visibility. The saved terminal
attributes are restored exactly as they were, so a caller that was already
in raw mode stays in raw mode.
"""

from __future__ import annotations

import codecs
import importlib.util
import os
import sys

HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"

READ_SIZE = 1024


def supports_raw_mode() -> bool:
    """Check whether the platform provides termios raw mode."""
    return importlib.util.find_spec("termios") is not None


def is_interactive() -> bool:
    """Check if we're in an interactive terminal environment with raw mode."""
    return sys.stdin.isatty() and sys.stdout.isatty() and supports_raw_mode()


class TtyTerminal:
    """Terminal backed by the process's stdin/stdout file descriptors."""

    def __init__(self, stdin_fd: int | None = None, stdout_fd: int | None = None) -> None:
        self.stdin_fd = sys.stdin.fileno() if stdin_fd is None else stdin_fd
        self.stdout_fd = sys.stdout.fileno() if stdout_fd is None else stdout_fd
        self._saved_tty_state: list | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def enter_raw_mode(self) -> None:
        import termios
        import tty

        self._saved_tty_state = termios.tcgetattr(self.stdin_fd)
        tty.setraw(self.stdin_fd, termios.TCSANOW)

    def restore_mode(self) -> None:
        """Restore the attributes saved by enter_raw_mode, dropping unread input."""
        if self._saved_tty_state is None:
            return
        import termios

        termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._saved_tty_state)
        self._saved_tty_state = None

    def hide_cursor(self) -> None:
        self.write(HIDE_CURSOR)

    def show_cursor(self) -> None:
        self.write(SHOW_CURSOR)

    def write(self, text: str) -> None:
        data = text.encode("utf-8")
        while data:
            written = os.write(self.stdout_fd, data)
            data = data[written:]

    def read(self) -> str:
        """Block until input is available and return it.

        Returns:
            The decoded chunk, or "" at end of input
        """
        while True:
            data = os.read(self.stdin_fd, READ_SIZE)
            if not data:
                return ""
            text = self._decoder.decode(data)
            # an incomplete multi-byte character needs another read
            if text:
                return text
