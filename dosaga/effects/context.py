"""Effects that read from the task's capability context."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ._validators import ensure_optional_callable, ensure_tuple
from .base import EffectBase, create_effect_with_trace


@dataclass(frozen=True)
class SelectEffect(EffectBase):
    """Resume with ``selector(state, *args)`` over the host state snapshot."""

    selector: Callable[..., Any] | None = None
    args: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        ensure_optional_callable(self.selector, name="selector")
        ensure_tuple(self.args, name="args")


@dataclass(frozen=True)
class ContextEffect(EffectBase):
    """Resume with the running task's :class:`~dosaga.task.TaskContext`."""


def Select(selector: Callable[..., Any] | None = None, *args: Any) -> SelectEffect:  # noqa: N802
    return create_effect_with_trace(SelectEffect(selector=selector, args=tuple(args)))


def GetContext() -> ContextEffect:  # noqa: N802
    return create_effect_with_trace(ContextEffect())


select = Select
get_context = GetContext


__all__ = [
    "ContextEffect",
    "GetContext",
    "Select",
    "SelectEffect",
    "get_context",
    "select",
]
