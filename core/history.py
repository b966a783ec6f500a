from __future__ import annotations

from typing import List, Optional

from core.logger import get_logger
from core.state import HistoryEntry, ProcessOptions

_logger = get_logger("history")

ORIGINAL_LABEL = "Original"
DEFAULT_CAPACITY = 20


class EditHistory:
    """Bounded linear undo/redo over immutable option snapshots.

    A new edit after an undo discards the redo branch. When the stack grows past
    its capacity the oldest entry is dropped, "Original" included, so index 0 is
    simply the oldest surviving snapshot.
    """

    def __init__(self, initial: ProcessOptions, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = int(capacity)
        self._entries: List[HistoryEntry] = [HistoryEntry(initial, ORIGINAL_LABEL)]
        self._index = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def index(self) -> int:
        return self._index

    @property
    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def current(self) -> HistoryEntry:
        return self._entries[self._index]

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    def push(self, options: ProcessOptions, label: str) -> HistoryEntry:
        del self._entries[self._index + 1:]
        entry = HistoryEntry(options, label)
        self._entries.append(entry)
        overflow = len(self._entries) - self._capacity
        if overflow > 0:
            dropped = self._entries[:overflow]
            del self._entries[:overflow]
            _logger.debug("history evicted %d entr%s: %s", overflow, "y" if overflow == 1 else "ies",
                          ", ".join(e.label for e in dropped))
        self._index = len(self._entries) - 1
        _logger.debug("history push %r (%d/%d)", label, self._index + 1, len(self._entries))
        return entry

    def commit_if_changed(self, options: ProcessOptions, label: str) -> bool:
        if options == self.current.options:
            return False
        self.push(options, label)
        return True

    def undo(self) -> Optional[HistoryEntry]:
        if not self.can_undo:
            return None
        self._index -= 1
        _logger.debug("undo -> %d %r", self._index, self.current.label)
        return self.current

    def redo(self) -> Optional[HistoryEntry]:
        if not self.can_redo:
            return None
        self._index += 1
        _logger.debug("redo -> %d %r", self._index, self.current.label)
        return self.current

    def jump_to(self, index: int) -> HistoryEntry:
        if not 0 <= index < len(self._entries):
            raise IndexError(f"history index {index} out of range 0..{len(self._entries) - 1}")
        self._index = int(index)
        return self.current

    def reset(self, initial: ProcessOptions) -> HistoryEntry:
        self._entries = [HistoryEntry(initial, ORIGINAL_LABEL)]
        self._index = 0
        return self.current
