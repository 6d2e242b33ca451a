"""Decoding of raw terminal input into key events."""

from __future__ import annotations

import enum
from dataclasses import dataclass

ESC = "\x1b"


class Key(enum.Enum):
    CANCEL = "cancel"
    ENTER = "enter"
    BACKSPACE = "backspace"
    UP = "up"
    DOWN = "down"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    TEXT = "text"


@dataclass(frozen=True)
class KeyEvent:
    key: Key
    text: str = ""


SEQUENCES = {
    "\x03": Key.CANCEL,  # Ctrl-C
    ESC: Key.CANCEL,
    "\r": Key.ENTER,
    "\n": Key.ENTER,
    "\r\n": Key.ENTER,
    "\x7f": Key.BACKSPACE,
    "\x08": Key.BACKSPACE,
    "\x1b[3~": Key.BACKSPACE,  # Delete
    "\x1b[A": Key.UP,
    "\x1bOA": Key.UP,
    "\x1b[B": Key.DOWN,
    "\x1bOB": Key.DOWN,
    "\x1b[5~": Key.PAGE_UP,
    "\x1b[6~": Key.PAGE_DOWN,
}


def decode_key(chunk: str) -> KeyEvent | None:
    """Decode one chunk of terminal input.

    A chunk is whatever a single read returned: one keystroke, one escape
    sequence, or a burst of pasted text.

    Args:
        chunk: Decoded input text

    Returns:
        The key event, or None for input that has no meaning to the picker
        (unknown escape sequences, lone control characters)
    """
    key = SEQUENCES.get(chunk)
    if key is not None:
        return KeyEvent(key)

    if chunk.startswith(ESC):
        return None

    text = "".join(char for char in chunk if char.isprintable())
    if not text:
        return None
    return KeyEvent(Key.TEXT, text)
