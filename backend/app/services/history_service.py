"""
services/history_service.py — Undo/redo stacks of whole-ledger snapshots.

Every entry is a deep copy taken with copy.deepcopy(). Entries never alias
the live state, so a mutation after a snapshot cannot reach back into
history. Both stacks are unbounded.
"""

from __future__ import annotations

import copy

from backend.app.models.ledger_state import LedgerState


class HistoryManager:

    def __init__(self) -> None:
        self._undo: list[LedgerState] = []
        self._redo: list[LedgerState] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def snapshot(self, state: LedgerState) -> None:
        """Records `state` before a mutation. Any forward (redo) history is dropped."""
        self._undo.append(copy.deepcopy(state))
        self._redo.clear()

    def undo(self, current: LedgerState) -> LedgerState | None:
        """
        Returns the state to install, or None when there is nothing to undo.
        `current` is saved onto the redo stack first.
        """
        if not self._undo:
            return None
        self._redo.append(copy.deepcopy(current))
        return self._undo.pop()

    def redo(self, current: LedgerState) -> LedgerState | None:
        """Mirror of undo()."""
        if not self._redo:
            return None
        self._undo.append(copy.deepcopy(current))
        return self._redo.pop()

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
