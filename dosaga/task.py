"""Task records, handles and per-task context."""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from dosaga._vendor import Err, Result
from dosaga.errors import InvalidStateError, TaskCancelledError

if TYPE_CHECKING:
    from dosaga.driver import RoutineDriver
    from dosaga.scheduler import Scheduler


class TaskStatus(enum.Enum):
    RUNNING = "running"
    SUSPENDED_ON_TAKE = "suspended-on-take"
    SUSPENDED_ON_CALL = "suspended-on-call"
    SUSPENDED_ON_JOIN = "suspended-on-join"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL

    @property
    def is_suspended(self) -> bool:
        return self in _SUSPENDED


_TERMINAL = frozenset({TaskStatus.CANCELLED, TaskStatus.COMPLETED, TaskStatus.FAILED})
_SUSPENDED = frozenset(
    {TaskStatus.SUSPENDED_ON_TAKE, TaskStatus.SUSPENDED_ON_CALL, TaskStatus.SUSPENDED_ON_JOIN}
)


@dataclass(frozen=True)
class TaskContext:
    """Capabilities handed to a task at creation.

    Replaces ambient lookups: routines reach the host only through ``emit``
    and ``get_state``.
    """

    task: TaskHandle
    emit: Callable[[Any], None]
    get_state: Callable[[], Any]


@dataclass(eq=False)
class Task:
    """Scheduler-private record for one task. Routines only see :class:`TaskHandle`."""

    id: int
    name: str
    driver: RoutineDriver
    parent: Task | None = None
    status: TaskStatus = TaskStatus.RUNNING
    children: dict[int, Task] = field(default_factory=dict)
    observers: list[Task] = field(default_factory=list)
    outcome: Result[Any] | None = None
    # What a suspended task waits on: the joined task, the sub-routine task of a
    # generator Call, or the asyncio future of an awaitable Call.
    joining: Task | None = None
    call_task: Task | None = None
    call_future: asyncio.Future[Any] | None = None
    # Bumped on every suspension so stale resumptions can be recognised.
    wait_token: int = 0
    handle: TaskHandle = field(init=False)
    context: TaskContext | None = None
    scheduler: Scheduler | None = field(default=None, repr=False)
    done_callbacks: list[Callable[[TaskHandle], None]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.handle = TaskHandle(self)

    def __repr__(self) -> str:
        return f"Task(id={self.id}, name={self.name!r}, status={self.status.value})"


class TaskHandle:
    """Public reference to a task, usable with ``Join``/``Cancel`` and from asyncio.

    ``await handle`` resolves with the task's result, or raises its error
    (``TaskCancelledError`` for a cancelled task).
    """

    __slots__ = ("_task",)

    def __init__(self, task: Task) -> None:
        self._task = task

    @property
    def id(self) -> int:
        return self._task.id

    @property
    def name(self) -> str:
        return self._task.name

    @property
    def status(self) -> TaskStatus:
        return self._task.status

    @property
    def scheduler(self) -> Scheduler | None:
        return self._task.scheduler

    @property
    def parent(self) -> TaskHandle | None:
        parent = self._task.parent
        return parent.handle if parent is not None else None

    @property
    def children(self) -> tuple[TaskHandle, ...]:
        return tuple(child.handle for child in self._task.children.values())

    def done(self) -> bool:
        return self._task.status.is_terminal

    def cancelled(self) -> bool:
        return self._task.status is TaskStatus.CANCELLED

    def result(self) -> Any:
        """Return the task's value, or raise its failure."""
        outcome = self._outcome()
        return outcome.unwrap()

    def exception(self) -> BaseException | None:
        outcome = self._outcome()
        if isinstance(outcome, Err):
            if isinstance(outcome.error, TaskCancelledError):
                raise outcome.error
            return outcome.error
        return None

    def add_done_callback(self, fn: Callable[[TaskHandle], None]) -> None:
        """Call ``fn(handle)`` once the task is terminal (immediately if it already is)."""
        if self.done():
            fn(self)
        else:
            self._task.done_callbacks.append(fn)

    def __await__(self) -> Generator[Any, None, Any]:
        if not self.done():
            loop = asyncio.get_running_loop()
            waiter: asyncio.Future[None] = loop.create_future()

            def _wake(_: TaskHandle) -> None:
                if not waiter.done():
                    waiter.set_result(None)

            self.add_done_callback(_wake)
            yield from waiter.__await__()
        return self.result()

    def _outcome(self) -> Result[Any]:
        outcome = self._task.outcome
        if outcome is None:
            raise InvalidStateError(f"task {self._task.id} ({self._task.name}) is not done")
        return outcome

    def _belongs_to(self, scheduler: Scheduler) -> bool:
        return self._task.scheduler is scheduler

    def __repr__(self) -> str:
        return f"<TaskHandle id={self.id} name={self.name!r} status={self.status.value}>"


@dataclass(frozen=True)
class TaskSnapshot:
    """Read-only view of one task and its subtree, for monitoring."""

    id: int
    name: str
    status: TaskStatus
    waiting_on: str | None = None
    children: tuple[TaskSnapshot, ...] = ()

    def walk(self) -> Generator[TaskSnapshot, None, None]:
        yield self
        for child in self.children:
            yield from child.walk()


def cancelled_outcome(task: Task) -> Result[Any]:
    return Err(TaskCancelledError(f"task {task.id} ({task.name}) was cancelled"))


__all__ = [
    "Task",
    "TaskContext",
    "TaskHandle",
    "TaskSnapshot",
    "TaskStatus",
    "cancelled_outcome",
]
