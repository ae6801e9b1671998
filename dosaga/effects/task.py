"""Task-tree effects: fork, spawn, join and cancel."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from dosaga._vendor import FrozenDict

from ._validators import ensure_callable, ensure_str_keys, ensure_task_handle, ensure_tuple
from .base import EffectBase, create_effect_with_trace

if TYPE_CHECKING:
    from dosaga.task import TaskHandle


@dataclass(frozen=True)
class ForkEffect(EffectBase):
    """Start ``routine`` as a new task and resume with its handle.

    Attached forks are children of the forking task and are cancelled with it.
    Detached forks (``Spawn``) become new root tasks.
    """

    routine: Callable[..., Any]
    args: tuple[Any, ...] = ()
    kwargs: FrozenDict = field(default_factory=FrozenDict)
    detached: bool = False

    def __post_init__(self) -> None:
        ensure_callable(self.routine, name="routine")
        ensure_tuple(self.args, name="args")
        ensure_str_keys(self.kwargs, name="kwargs")
        if not isinstance(self.kwargs, FrozenDict):
            object.__setattr__(self, "kwargs", FrozenDict(self.kwargs))
        if not isinstance(self.detached, bool):
            raise TypeError(f"detached must be bool, got {type(self.detached).__name__}")


@dataclass(frozen=True)
class JoinEffect(EffectBase):
    """Wait for ``task`` to finish; resume with its result or raise its error."""

    task: TaskHandle

    def __post_init__(self) -> None:
        ensure_task_handle(self.task, name="task")


@dataclass(frozen=True)
class CancelEffect(EffectBase):
    """Cancel ``task`` and its living descendants. ``None`` means the caller."""

    task: TaskHandle | None = None

    def __post_init__(self) -> None:
        ensure_task_handle(self.task, name="task", optional=True)


def Fork(routine: Callable[..., Any], *args: Any, **kwargs: Any) -> ForkEffect:  # noqa: N802
    return create_effect_with_trace(
        ForkEffect(routine=routine, args=tuple(args), kwargs=FrozenDict(kwargs))
    )


def Spawn(routine: Callable[..., Any], *args: Any, **kwargs: Any) -> ForkEffect:  # noqa: N802
    """Like :func:`Fork`, but the new task is a root with no parent."""
    return create_effect_with_trace(
        ForkEffect(routine=routine, args=tuple(args), kwargs=FrozenDict(kwargs), detached=True)
    )


def Join(task: TaskHandle) -> JoinEffect:  # noqa: N802
    return create_effect_with_trace(JoinEffect(task=task))


def Cancel(task: TaskHandle | None = None) -> CancelEffect:  # noqa: N802
    return create_effect_with_trace(CancelEffect(task=task))


fork = Fork
spawn = Spawn
join = Join
cancel = Cancel


__all__ = [
    "Cancel",
    "CancelEffect",
    "Fork",
    "ForkEffect",
    "Join",
    "JoinEffect",
    "Spawn",
    "cancel",
    "fork",
    "join",
    "spawn",
]
