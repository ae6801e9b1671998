"""Pending-take registry: outstanding "wait for a matching event" requests."""

from __future__ import annotations

import itertools
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from dosaga.errors import DuplicateTakeError, PredicateError, TaskLimitError
from dosaga.patterns import Pattern, matches


@dataclass(frozen=True)
class PendingTake:
    task_id: int
    pattern: Pattern
    seq: int


@dataclass(frozen=True)
class TakeResolution:
    """Outcome of offering one event to one pending take.

    ``error`` is set when the entry's predicate raised; the entry is consumed
    either way.
    """

    entry: PendingTake
    error: PredicateError | None = None


class PendingTakeRegistry:
    """Maps each task to its single outstanding pattern, oldest first."""

    def __init__(self, *, max_pending: int | None = None) -> None:
        self._entries: dict[int, PendingTake] = {}
        self._seq = itertools.count()
        self._max_pending = max_pending

    def register(self, task_id: int, pattern: Pattern) -> PendingTake:
        if task_id in self._entries:
            raise DuplicateTakeError(task_id)
        if self._max_pending is not None and len(self._entries) >= self._max_pending:
            raise TaskLimitError(
                f"pending take limit reached ({self._max_pending}); task {task_id} cannot take"
            )
        entry = PendingTake(task_id=task_id, pattern=pattern, seq=next(self._seq))
        self._entries[task_id] = entry
        return entry

    def discard(self, task_id: int) -> PendingTake | None:
        return self._entries.pop(task_id, None)

    def pattern_for(self, task_id: int) -> Pattern | None:
        entry = self._entries.get(task_id)
        return entry.pattern if entry is not None else None

    def consume(self, event: Any) -> list[TakeResolution]:
        """Remove and return every entry that ``event`` resolves.

        Entries are examined in registration order against a snapshot, so an
        entry registered while the caller acts on the result is never matched
        by the same event.
        """
        resolved: list[TakeResolution] = []
        for entry in list(self._entries.values()):
            try:
                hit = matches(event, entry.pattern)
            except Exception as exc:
                error = PredicateError(entry.pattern, event)
                error.__cause__ = exc
                resolved.append(TakeResolution(entry, error))
                continue
            if hit:
                resolved.append(TakeResolution(entry))
        for resolution in resolved:
            del self._entries[resolution.entry.task_id]
        return resolved

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PendingTake]:
        return iter(list(self._entries.values()))


__all__ = ["PendingTake", "PendingTakeRegistry", "TakeResolution"]
