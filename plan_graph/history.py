from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Sequence

DEFAULT_HISTORY_CAPACITY = 60


@dataclass(frozen=True)
class Snapshot:
    nodes: list[Any] = field(default_factory=list)
    edges: list[Any] = field(default_factory=list)


class HistoryManager:
    """Linear, bounded undo/redo over full document snapshots.

    One ``push`` is one undo step: callers push the final state of a compound
    action (a whole drag, a committed text edit, a multi-node delete), never
    its intermediate states. Snapshots are deep copies on the way in and on
    the way out, so nothing outside the manager can alter stored history.
    """

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY) -> None:
        if int(capacity) < 1:
            raise ValueError(
                "History capacity: must be >= 1. Fix: pass a positive snapshot capacity."
            )
        self.capacity = int(capacity)
        self._stack: list[Snapshot] = []
        self._index = -1
        self.can_undo = False
        self.can_redo = False

    def __len__(self) -> int:
        return len(self._stack)

    @property
    def index(self) -> int:
        return self._index

    def _refresh_flags(self) -> None:
        self.can_undo = self._index > 0
        self.can_redo = 0 <= self._index < len(self._stack) - 1

    def push(self, nodes: Sequence[Any], edges: Sequence[Any]) -> None:
        snapshot = Snapshot(nodes=copy.deepcopy(list(nodes)), edges=copy.deepcopy(list(edges)))
        del self._stack[self._index + 1:]
        self._stack.append(snapshot)
        if len(self._stack) > self.capacity:
            del self._stack[0]
        self._index = len(self._stack) - 1
        self._refresh_flags()

    def undo(self) -> Snapshot | None:
        if self._index <= 0:
            return None
        self._index -= 1
        self._refresh_flags()
        return copy.deepcopy(self._stack[self._index])

    def redo(self) -> Snapshot | None:
        if self._index >= len(self._stack) - 1:
            return None
        self._index += 1
        self._refresh_flags()
        return copy.deepcopy(self._stack[self._index])

    def current(self) -> Snapshot | None:
        if self._index < 0:
            return None
        return copy.deepcopy(self._stack[self._index])

    def clear(self) -> None:
        self._stack.clear()
        self._index = -1
        self._refresh_flags()
