"""Event values exchanged with the host event bus."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from dosaga._vendor import FrozenDict


@dataclass(frozen=True)
class Event:
    """A tagged occurrence dispatched into the host system."""

    tag: str
    payload: Any = None
    meta: FrozenDict = field(default_factory=FrozenDict)

    def __post_init__(self) -> None:
        if not isinstance(self.tag, str):
            raise TypeError(f"tag must be str, got {type(self.tag).__name__}")
        if not isinstance(self.meta, FrozenDict):
            object.__setattr__(self, "meta", FrozenDict(self.meta))


def event_tag(event: Any) -> str | None:
    """Return the tag of ``event``, or ``None`` if it has none.

    Accepts :class:`Event`, any object with a ``tag`` attribute, mappings with a
    ``"tag"`` (or ``"type"``) key, and bare strings.
    """
    if isinstance(event, str):
        return event
    if isinstance(event, Mapping):
        tag = event.get("tag", event.get("type"))
        return tag if isinstance(tag, str) else None
    tag = getattr(event, "tag", None)
    return tag if isinstance(tag, str) else None


__all__ = ["Event", "event_tag"]
