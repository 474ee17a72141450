from __future__ import annotations
from typing import List

from . import config as CFG


class History:
    """Recent filters, most recent first. In memory only; nothing is persisted."""

    def __init__(self, max_entries: int = CFG.MAX_HISTORY) -> None:
        self.max_entries = max_entries
        self._items: List[str] = []

    def add(self, filter_text: str) -> None:
        if not filter_text:
            return
        if filter_text in self._items:
            self._items.remove(filter_text)
        self._items.insert(0, filter_text)
        del self._items[self.max_entries:]

    def items(self) -> List[str]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)
