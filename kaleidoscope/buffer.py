"""Cursor-addressable multi-line text buffer.

One LineBuffer backs every text field in the TUI. Single-line fields
(branch name, task name) use the same class with ``single_line=True``.

Invariants:
- ``rows`` is never empty (an empty buffer holds one empty row).
- ``0 <= row < len(rows)`` and ``0 <= col <= len(rows[row])``.

No operation raises; out-of-range positions are clamped.
"""

from __future__ import annotations

WHITESPACE = frozenset(" \t\n")


def _is_space(ch: str) -> bool:
    return ch in WHITESPACE


def word_left(line: str, col: int) -> int:
    """Return the column of the start of the word left of ``col``."""
    i = max(0, min(col, len(line)))
    while i > 0 and _is_space(line[i - 1]):
        i -= 1
    while i > 0 and not _is_space(line[i - 1]):
        i -= 1
    return i


def word_right(line: str, col: int) -> int:
    """Return the column just past the word right of ``col``."""
    n = len(line)
    i = max(0, min(col, n))
    while i < n and _is_space(line[i]):
        i += 1
    while i < n and not _is_space(line[i]):
        i += 1
    return i


class LineBuffer:
    """Rows of text plus a ``(row, col)`` cursor."""

    def __init__(self, text: str = "", *, single_line: bool = False) -> None:
        self.single_line = single_line
        self._rows: list[str] = [""]
        self._row = 0
        self._col = 0
        if text:
            self.set_text(text)

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def rows(self) -> list[str]:
        """Copy of the buffer rows."""
        return list(self._rows)

    @property
    def row(self) -> int:
        return self._row

    @property
    def col(self) -> int:
        return self._col

    @property
    def cursor(self) -> tuple[int, int]:
        return self._row, self._col

    @property
    def text(self) -> str:
        return "\n".join(self._rows)

    @property
    def current_line(self) -> str:
        return self._rows[self._row]

    def is_blank(self) -> bool:
        """True when the buffer holds only whitespace."""
        return not self.text.strip()

    def __repr__(self) -> str:
        return f"LineBuffer(rows={self._rows!r}, cursor={self.cursor!r})"

    # =========================================================================
    # Whole-buffer updates
    # =========================================================================

    def set_text(self, text: str) -> None:
        """Replace the content and put the cursor at the end of the last row."""
        if self.single_line:
            text = " ".join(text.splitlines())
        self._rows = text.split("\n")
        self._row = len(self._rows) - 1
        self._col = len(self._rows[self._row])

    def set_rows(self, rows: list[str]) -> None:
        """Replace the content with a copy of ``rows``; cursor at the end."""
        self.set_text("\n".join(rows))

    def clear(self) -> None:
        self._rows = [""]
        self._row = 0
        self._col = 0

    def set_cursor(self, row: int, col: int) -> None:
        """Move the cursor, clamping into range."""
        self._row = max(0, min(row, len(self._rows) - 1))
        self._col = max(0, min(col, len(self._rows[self._row])))

    # =========================================================================
    # Insertion
    # =========================================================================

    def insert_rune(self, rune: str) -> None:
        """Insert one character at the cursor and advance the cursor."""
        if rune == "\n":
            self.insert_newline()
            return
        line = self._rows[self._row]
        self._rows[self._row] = line[: self._col] + rune + line[self._col :]
        self._col += len(rune)

    def insert(self, text: str) -> None:
        """Insert a string, splitting rows on newlines."""
        for rune in text:
            if rune == "\n" and self.single_line:
                rune = " "
            self.insert_rune(rune)

    def insert_newline(self) -> None:
        """Split the current row at the cursor; cursor moves to the new row."""
        if self.single_line:
            return
        line = self._rows[self._row]
        self._rows[self._row] = line[: self._col]
        self._rows.insert(self._row + 1, line[self._col :])
        self._row += 1
        self._col = 0

    # =========================================================================
    # Deletion
    # =========================================================================

    def backspace_char(self) -> None:
        """Delete left of the cursor, joining with the previous row at column 0."""
        if self._col > 0:
            line = self._rows[self._row]
            self._rows[self._row] = line[: self._col - 1] + line[self._col :]
            self._col -= 1
        elif self._row > 0:
            prev = self._rows[self._row - 1]
            self._rows[self._row - 1] = prev + self._rows[self._row]
            del self._rows[self._row]
            self._row -= 1
            self._col = len(prev)

    def backspace_word(self) -> None:
        """Delete back to the previous word boundary on the current row."""
        if self._col <= 0:
            return
        line = self._rows[self._row]
        start = word_left(line, self._col)
        self._rows[self._row] = line[:start] + line[self._col :]
        self._col = start

    def backspace_line(self) -> None:
        """Delete from the start of the current row to the cursor."""
        if self._col <= 0:
            return
        self._rows[self._row] = self._rows[self._row][self._col :]
        self._col = 0

    # =========================================================================
    # Cursor movement
    # =========================================================================

    def move_char_left(self) -> None:
        if self._col > 0:
            self._col -= 1
        elif self._row > 0:
            self._row -= 1
            self._col = len(self._rows[self._row])

    def move_char_right(self) -> None:
        if self._col < len(self._rows[self._row]):
            self._col += 1
        elif self._row < len(self._rows) - 1:
            self._row += 1
            self._col = 0

    def move_word_left(self) -> None:
        """Skip whitespace then a word; at column 0 continue on the previous row."""
        if self._col > 0:
            self._col = word_left(self._rows[self._row], self._col)
        elif self._row > 0:
            self._row -= 1
            line = self._rows[self._row]
            self._col = word_left(line, len(line))

    def move_word_right(self) -> None:
        """Skip whitespace then a word; at row end continue on the next row."""
        line = self._rows[self._row]
        if self._col < len(line):
            self._col = word_right(line, self._col)
        elif self._row < len(self._rows) - 1:
            self._row += 1
            self._col = word_right(self._rows[self._row], 0)

    def move_line_start(self) -> None:
        """Jump to column 0, or to the previous row's start when already there."""
        if self._col > 0:
            self._col = 0
        elif self._row > 0:
            self._row -= 1
            self._col = 0

    def move_line_end(self) -> None:
        """Jump to the row end, or to the next row's end when already there."""
        line_len = len(self._rows[self._row])
        if self._col < line_len:
            self._col = line_len
        elif self._row < len(self._rows) - 1:
            self._row += 1
            self._col = len(self._rows[self._row])

    def move_up(self) -> bool:
        """Move one row up keeping the column where possible."""
        if self._row == 0:
            return False
        self._row -= 1
        self._col = min(self._col, len(self._rows[self._row]))
        return True

    def move_down(self) -> bool:
        """Move one row down keeping the column where possible."""
        if self._row >= len(self._rows) - 1:
            return False
        self._row += 1
        self._col = min(self._col, len(self._rows[self._row]))
        return True

    # =========================================================================
    # Token helpers
    # =========================================================================

    def replace_range(self, start: int, end: int, text: str) -> None:
        """Replace ``[start, end)`` of the current row and put the cursor after ``text``."""
        line = self._rows[self._row]
        start = max(0, min(start, len(line)))
        end = max(start, min(end, len(line)))
        self._rows[self._row] = line[:start] + text + line[end:]
        self._col = start + len(text)
