"""Prompt history with draft-preserving navigation.

HistoryStore holds submitted prompts most-recent-first. HistoryNavigator
walks a store on behalf of one input buffer; the main prompt and the
iteration command each own a navigator over the same store.

Example:
    store = HistoryStore(["fix the tests", "add logging"])
    nav = HistoryNavigator(store)

    nav.older(buffer)   # draft saved, buffer shows "fix the tests"
    nav.older(buffer)   # buffer shows "add logging"
    nav.newer(buffer)   # back to "fix the tests"
    nav.newer(buffer)   # draft restored
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from kaleidoscope.buffer import LineBuffer

HISTORY_MAX = 20


class HistoryStore:
    """Bounded most-recent-first list of submitted prompts."""

    def __init__(self, entries: Iterable[str] | None = None, max_entries: int = HISTORY_MAX) -> None:
        self.max_entries = max_entries
        self._entries: list[str] = [e for e in (entries or []) if isinstance(e, str)][:max_entries]

    @property
    def entries(self) -> list[str]:
        return list(self._entries)

    def push(self, entry: str) -> bool:
        """Record a prompt.

        Args:
            entry: Submitted text; surrounding whitespace is stripped.

        Returns:
            True if the store changed, False for blank entries or an
            immediate repeat of the newest entry.
        """
        entry = entry.strip()
        if not entry:
            return False
        if self._entries and self._entries[0] == entry:
            return False
        self._entries.insert(0, entry)
        del self._entries[self.max_entries :]
        return True

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> str:
        return self._entries[index]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)


class HistoryNavigator:
    """Navigation cursor over a HistoryStore for a single buffer.

    ``index`` is -1 while the user is editing their own text. The first
    step into history snapshots the buffer as the draft so stepping back
    out restores it.
    """

    def __init__(self, store: HistoryStore) -> None:
        self._store = store
        self.index = -1
        self.draft: list[str] | None = None

    @property
    def is_navigating(self) -> bool:
        return self.index != -1

    def reset(self) -> None:
        """Forget the navigation position and the draft."""
        self.index = -1
        self.draft = None

    def older(self, buffer: LineBuffer) -> bool:
        """Step to an older entry.

        Returns:
            False when there was nothing older to show.
        """
        if not len(self._store):
            return False
        if self.index == -1:
            self.draft = buffer.rows
            self.index = 0
        elif self.index + 1 < len(self._store):
            self.index += 1
        else:
            return False
        buffer.set_text(self._store[self.index])
        return True

    def newer(self, buffer: LineBuffer) -> bool:
        """Step to a newer entry, restoring the draft past the newest.

        Returns:
            False when not navigating.
        """
        if self.index == -1:
            return False
        if self.index > 0:
            self.index -= 1
            buffer.set_text(self._store[self.index])
            return True
        self.index = -1
        if self.draft is not None:
            buffer.set_rows(self.draft)
        else:
            buffer.clear()
        self.draft = None
        return True
