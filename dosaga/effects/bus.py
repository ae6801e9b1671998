"""Event effects: wait for a matching event, or emit one."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from dosaga.errors import PatternError
from dosaga.patterns import PatternLike, as_pattern

from ._validators import ensure_not_none
from .base import EffectBase, create_effect_with_trace


@dataclass(frozen=True)
class TakeEffect(EffectBase):
    """Suspend the task until an event matching ``pattern`` is dispatched.

    Well-formed patterns are normalised here. A malformed one is kept as given
    and rejected by the scheduler, which fails the yielding task.
    """

    pattern: PatternLike

    def __post_init__(self) -> None:
        try:
            normalised = as_pattern(self.pattern)
        except PatternError:
            return
        object.__setattr__(self, "pattern", normalised)


@dataclass(frozen=True)
class PutEffect(EffectBase):
    """Emit ``event`` to the host bus and resume immediately."""

    event: Any

    def __post_init__(self) -> None:
        ensure_not_none(self.event, name="event")


def Take(pattern: PatternLike = "*") -> TakeEffect:  # noqa: N802
    """Wait for the next event matching ``pattern`` and resume with it.

    ``pattern`` may be a tag string, ``"*"``, a predicate, an event class, or a
    list of those (any of them matches).
    """
    return create_effect_with_trace(TakeEffect(pattern=pattern))


def Put(event: Any) -> PutEffect:  # noqa: N802
    """Emit ``event``; takers see it after the emitting task resumes."""
    return create_effect_with_trace(PutEffect(event=event))


take = Take
put = Put


__all__ = [
    "Put",
    "PutEffect",
    "Take",
    "TakeEffect",
    "put",
    "take",
]
