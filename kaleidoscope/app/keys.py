"""Terminal-independent key input.

The prompt_toolkit layer translates raw key presses into KeyInput values
so the session can be driven directly in tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Key(str, Enum):
    RUNE = "rune"  # printable text in KeyInput.text, space included
    ENTER = "enter"
    NEWLINE = "newline"  # ctrl-o
    TAB = "tab"
    SHIFT_TAB = "shift-tab"
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    WORD_LEFT = "word-left"
    WORD_RIGHT = "word-right"
    HOME = "home"
    END = "end"
    BACKSPACE = "backspace"
    BACKSPACE_WORD = "backspace-word"
    BACKSPACE_LINE = "backspace-line"
    CANCEL = "cancel"  # ctrl-c / esc


@dataclass(frozen=True)
class KeyInput:
    key: Key
    text: str = ""

    @classmethod
    def rune(cls, text: str) -> KeyInput:
        return cls(Key.RUNE, text)

    @property
    def is_space(self) -> bool:
        return self.key is Key.RUNE and self.text.isspace()


def keys_for(text: str) -> list[KeyInput]:
    """KeyInputs that type ``text`` one character at a time."""
    return [KeyInput.rune(ch) for ch in text]
