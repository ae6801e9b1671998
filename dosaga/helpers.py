"""Common routine shapes built from the core effects.

These are ordinary routines; start them with ``Fork``/``Spawn`` or
``Scheduler.run_task``::

    yield Fork(take_every, "FETCH", fetch_worker)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from typing import Any

from dosaga.effects import Call, Cancel, Fork, Join, Take
from dosaga.effects.base import EffectBase
from dosaga.effects.call import CallEffect
from dosaga.patterns import PatternLike
from dosaga.task import TaskHandle

Routine = Generator[EffectBase, Any, Any]


def take_every(pattern: PatternLike, worker: Callable[..., Any], *args: Any) -> Routine:
    """Fork ``worker(*args, event)`` for every matching event."""
    while True:
        event = yield Take(pattern)
        yield Fork(worker, *args, event)


def take_latest(pattern: PatternLike, worker: Callable[..., Any], *args: Any) -> Routine:
    """Like :func:`take_every`, but a new event cancels the previous worker if still running."""
    last: TaskHandle | None = None
    while True:
        event = yield Take(pattern)
        if last is not None and not last.done():
            yield Cancel(last)
        last = yield Fork(worker, *args, event)


def take_leading(pattern: PatternLike, worker: Callable[..., Any], *args: Any) -> Routine:
    """Run ``worker(*args, event)`` to completion; events arriving meanwhile are ignored."""
    while True:
        event = yield Take(pattern)
        yield Call(worker, *args, event)


def join_all(*handles: TaskHandle) -> Routine:
    """Join each handle in order and return their results as a list.

    Use with ``yield from join_all(a, b)``. The first failure propagates.
    """
    results = []
    for handle in handles:
        results.append((yield Join(handle)))
    return results


def delay(seconds: float, value: Any = None) -> CallEffect:
    """Suspend for ``seconds`` on the asyncio loop, then resume with ``value``."""
    if seconds < 0:
        raise ValueError(f"seconds must be non-negative, got {seconds}")
    return Call(asyncio.sleep, seconds, value)


__all__ = [
    "delay",
    "join_all",
    "take_every",
    "take_latest",
    "take_leading",
]
