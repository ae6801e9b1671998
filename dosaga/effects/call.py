"""Invoke an external operation and resume with its outcome."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from dosaga._vendor import FrozenDict

from ._validators import ensure_callable, ensure_str_keys, ensure_tuple
from .base import EffectBase, create_effect_with_trace


@dataclass(frozen=True)
class CallEffect(EffectBase):
    """Call ``operation(*args, **kwargs)``.

    Plain return values resume the caller at once. Awaitables are scheduled on
    the running asyncio loop, and generators run as a sub-routine task the
    caller waits on. Exceptions are thrown back into the caller.
    """

    operation: Callable[..., Any]
    args: tuple[Any, ...] = ()
    kwargs: FrozenDict = field(default_factory=FrozenDict)

    def __post_init__(self) -> None:
        ensure_callable(self.operation, name="operation")
        ensure_tuple(self.args, name="args")
        ensure_str_keys(self.kwargs, name="kwargs")
        if not isinstance(self.kwargs, FrozenDict):
            object.__setattr__(self, "kwargs", FrozenDict(self.kwargs))


def Call(operation: Callable[..., Any], *args: Any, **kwargs: Any) -> CallEffect:  # noqa: N802
    return create_effect_with_trace(
        CallEffect(operation=operation, args=tuple(args), kwargs=FrozenDict(kwargs))
    )


call = Call


__all__ = ["Call", "CallEffect", "call"]
