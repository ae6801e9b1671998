"""Event patterns and the pure matcher used by pending takes.

Patterns form a closed variant: :class:`Exact`, :class:`Wildcard`,
:class:`Predicate` and :class:`AnyOf`. Routine code may pass looser values
(strings, callables, classes, lists) which :func:`as_pattern` normalises once,
when the ``Take`` descriptor is built.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeAlias

from dosaga.errors import PatternError
from dosaga.events import event_tag

WILDCARD_TOKEN = "*"


@dataclass(frozen=True)
class Exact:
    """Matches events whose tag equals ``tag``."""

    tag: str


@dataclass(frozen=True)
class Wildcard:
    """Matches every event."""


@dataclass(frozen=True)
class Predicate:
    """Matches events for which ``fn(event)`` is truthy."""

    fn: Callable[[Any], Any]


@dataclass(frozen=True)
class AnyOf:
    """Matches if any of ``patterns`` matches. Holds leaf patterns only."""

    patterns: tuple[Exact | Wildcard | Predicate, ...]


Pattern: TypeAlias = Exact | Wildcard | Predicate | AnyOf
PatternLike: TypeAlias = Pattern | str | Callable[[Any], Any] | type | list[Any] | tuple[Any, ...]

WILDCARD = Wildcard()


class _IsInstance:
    """Predicate body for class patterns, kept picklable and readable in reprs."""

    __slots__ = ("cls",)

    def __init__(self, cls: type) -> None:
        self.cls = cls

    def __call__(self, event: Any) -> bool:
        return isinstance(event, self.cls)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _IsInstance) and other.cls is self.cls

    def __hash__(self) -> int:
        return hash((_IsInstance, self.cls))

    def __repr__(self) -> str:
        return f"isinstance(event, {self.cls.__qualname__})"


def _as_leaf(value: Any) -> Exact | Wildcard | Predicate:
    if isinstance(value, (Exact, Wildcard, Predicate)):
        return value
    if isinstance(value, AnyOf) or isinstance(value, (list, tuple)):
        raise PatternError("pattern lists are depth-one; nested lists are not allowed")
    if isinstance(value, str):
        return WILDCARD if value == WILDCARD_TOKEN else Exact(value)
    if isinstance(value, type):
        return Predicate(_IsInstance(value))
    if callable(value):
        return Predicate(value)
    raise PatternError(
        "pattern must be a tag string, '*', a predicate, an event class or a list of those, "
        f"got {type(value).__name__}"
    )


def as_pattern(value: PatternLike) -> Pattern:
    """Normalise a pattern-like value into the closed :data:`Pattern` variant."""
    if isinstance(value, AnyOf):
        for leaf in value.patterns:
            if not isinstance(leaf, (Exact, Wildcard, Predicate)):
                raise PatternError(f"AnyOf holds leaf patterns only, got {type(leaf).__name__}")
        return value
    if isinstance(value, (list, tuple)):
        if not value:
            raise PatternError("pattern list must not be empty")
        return AnyOf(tuple(_as_leaf(item) for item in value))
    return _as_leaf(value)


def matches(event: Any, pattern: Pattern) -> bool:
    """Decide whether ``event`` satisfies ``pattern``.

    Pure and deterministic for pure predicates. Exceptions raised by a
    predicate propagate to the caller unchanged.
    """
    match pattern:
        case Wildcard():
            return True
        case Exact(tag=tag):
            return event_tag(event) == tag
        case Predicate(fn=fn):
            return bool(fn(event))
        case AnyOf(patterns=leaves):
            return any(matches(event, leaf) for leaf in leaves)
        case _:
            raise PatternError(f"not a pattern: {pattern!r}")


def describe(pattern: Pattern) -> str:
    """Short human-readable form used in logs and task snapshots."""
    match pattern:
        case Wildcard():
            return WILDCARD_TOKEN
        case Exact(tag=tag):
            return repr(tag)
        case Predicate(fn=fn):
            return getattr(fn, "__qualname__", None) or repr(fn)
        case AnyOf(patterns=leaves):
            return "[" + ", ".join(describe(leaf) for leaf in leaves) + "]"
        case _:
            return repr(pattern)


__all__ = [
    "WILDCARD",
    "WILDCARD_TOKEN",
    "AnyOf",
    "Exact",
    "Pattern",
    "PatternLike",
    "Predicate",
    "Wildcard",
    "as_pattern",
    "describe",
    "matches",
]
