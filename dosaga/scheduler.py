"""Cooperative task scheduler.

One :class:`Scheduler` owns a task tree, a pending-take registry and a FIFO run
queue. All of them are mutated only from :meth:`Scheduler._drain`, so there is
exactly one task step in flight at any time.

The running task keeps stepping inline for as long as its effects resolve
immediately (``Put``, ``Fork``, ``Cancel``, ``Select``, synchronous ``Call``,
``Join`` on a finished task). It gives up control only at a real suspension
point: a ``Take`` waiting for an event, a ``Call`` waiting for an awaitable or
a sub-routine, or a ``Join`` waiting for another task.

Everything else goes through the run queue:

    _Start     first step of a newly forked or launched task
    _Resume    resumption of a suspended task with an Ok/Err outcome
    _Deliver   an event observed on the bus

Events emitted by a ``Put`` come back from the bus as ``_Deliver`` jobs behind
whatever is already queued, so a forked child is started before an event the
parent emits right after forking it.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
import itertools
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from typing import Any, TypeAlias

from dosaga._vendor import Err, Ok, Result, capture
from dosaga.bus import EventBus, InMemoryBus
from dosaga.config import SchedulerConfig
from dosaga.driver import Completed, Failed, RoutineDriver, StepResult, Yielded
from dosaga.effects.bus import PutEffect, TakeEffect
from dosaga.effects.call import CallEffect
from dosaga.effects.context import ContextEffect, SelectEffect
from dosaga.effects.task import CancelEffect, ForkEffect, JoinEffect
from dosaga.errors import (
    ContractViolation,
    InvalidEffectError,
    TaskCancelledError,
    TaskLimitError,
    UnknownTaskError,
)
from dosaga.patterns import as_pattern, describe
from dosaga.registry import PendingTakeRegistry, TakeResolution
from dosaga.task import (
    Task,
    TaskContext,
    TaskHandle,
    TaskSnapshot,
    TaskStatus,
    cancelled_outcome,
)

logger = logging.getLogger(__name__)

UnhandledErrorHook = Callable[[TaskHandle, BaseException], None]


@dataclass(frozen=True)
class _Start:
    task: Task
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class _Resume:
    task: Task
    token: int
    outcome: Result[Any]


@dataclass(frozen=True)
class _Deliver:
    event: Any
    # Already consumed from the registry; set when delivery was interrupted.
    resolved: tuple[TakeResolution, ...] | None = None


_Job: TypeAlias = _Start | _Resume | _Deliver


class _Suspend:
    """Marker returned by effect interpretation when the task must wait."""

    def __repr__(self) -> str:
        return "SUSPEND"


SUSPEND = _Suspend()


def _operation_name(operation: Any) -> str:
    return getattr(operation, "__qualname__", None) or repr(operation)


def _log_unhandled(handle: TaskHandle, error: BaseException) -> None:
    logger.error(
        "root task %d (%s) failed and nobody joined it",
        handle.id,
        handle.name,
        exc_info=(type(error), error, error.__traceback__),
    )


class Scheduler:
    """Interprets effects yielded by routines and drives the task tree.

    Args:
        bus: Host event bus. Defaults to a fresh :class:`~dosaga.bus.InMemoryBus`.
        config: Limits and diagnostics, see :class:`~dosaga.config.SchedulerConfig`.
        on_unhandled_error: Called once with ``(handle, error)`` when a root
            task fails and no ``Join``, awaiter or done-callback observes it.
            Defaults to logging the failure at error level.
    """

    def __init__(
        self,
        bus: EventBus | None = None,
        *,
        config: SchedulerConfig | None = None,
        on_unhandled_error: UnhandledErrorHook | None = None,
    ) -> None:
        self._bus: EventBus = bus if bus is not None else InMemoryBus()
        self._config = config or SchedulerConfig()
        self._on_unhandled_error = on_unhandled_error or _log_unhandled
        self._registry = PendingTakeRegistry(max_pending=self._config.max_pending_takes)
        self._tasks: dict[int, Task] = {}
        self._ids = itertools.count(1)
        self._queue: deque[_Job] = deque()
        self._draining = False
        self._closed = False
        get_state = getattr(self._bus, "get_state", None)
        self._get_state: Callable[[], Any] = get_state if callable(get_state) else (lambda: None)
        self._unsubscribe = self._bus.subscribe(self.dispatch)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    @property
    def task_count(self) -> int:
        """Tasks currently held in the tree, including finished parents of live children."""
        return len(self._tasks)

    @property
    def pending_takes(self) -> int:
        return len(self._registry)

    @property
    def closed(self) -> bool:
        return self._closed

    def run_task(self, routine: Callable[..., Any], *args: Any, **kwargs: Any) -> TaskHandle:
        """Launch ``routine(*args, **kwargs)`` as a root task.

        The task runs up to its first suspension point before this returns,
        unless the scheduler is already busy (a launch from inside a ``Call``),
        in which case it starts once the current work drains.
        """
        self._ensure_open()
        task = self._create_task(routine, parent=None)
        self._queue.append(_Start(task, tuple(args), dict(kwargs)))
        self._drain()
        return task.handle

    def dispatch(self, event: Any) -> None:
        """Offer ``event`` to the pending takes. This is the bus subscription."""
        self._ensure_open()
        self._queue.append(_Deliver(event))
        self._drain()

    def cancel(self, handle: TaskHandle) -> None:
        """Cancel the task behind ``handle`` and every living descendant."""
        task = self._resolve(handle)
        self._cancel_tree(task)
        self._drain()

    def snapshot(self) -> tuple[TaskSnapshot, ...]:
        """Describe every root task and its subtree."""
        return tuple(
            self._snapshot(task) for task in self._tasks.values() if task.parent is None
        )

    def close(self) -> None:
        """Cancel every live task and detach from the bus. Idempotent."""
        if self._closed:
            return
        for task in list(self._tasks.values()):
            if task.status.is_terminal:
                continue
            if task.parent is None or task.parent.status.is_terminal:
                self._cancel_tree(task)
        self._closed = True
        self._unsubscribe()
        self._drain()

    def __enter__(self) -> Scheduler:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Scheduler(tasks={len(self._tasks)}, pending_takes={len(self._registry)}, "
            f"queued={len(self._queue)})"
        )

    # ------------------------------------------------------------------
    # Run queue
    # ------------------------------------------------------------------

    def _drain(self) -> None:
        if self._draining:
            return
        self._draining = True
        try:
            while self._queue:
                self._run_job(self._queue.popleft())
        finally:
            self._draining = False

    def _run_job(self, job: _Job) -> None:
        match job:
            case _Start(task=task, args=args, kwargs=kwargs):
                if task.status.is_terminal:
                    logger.debug("task %d (%s) cancelled before it started", task.id, task.name)
                    return
                logger.debug("starting task %d (%s)", task.id, task.name)
                step = self._guarded(task, partial(task.driver.start, *args, **kwargs))
                self._advance(task, step)
            case _Resume(task=task, token=token, outcome=outcome):
                if not task.status.is_suspended or task.wait_token != token:
                    logger.debug("dropping stale resumption of task %d (%s)", task.id, task.name)
                    return
                self._resume_now(task, outcome)
            case _Deliver(event=event, resolved=resolved):
                self._deliver_event(event, resolved)

    def _deliver_event(
        self, event: Any, resolved: tuple[TakeResolution, ...] | None = None
    ) -> None:
        resolutions = list(resolved) if resolved is not None else self._registry.consume(event)
        if not resolutions:
            logger.debug("event %r matched no pending take", event)
            return
        for index, resolution in enumerate(resolutions):
            task = self._tasks.get(resolution.entry.task_id)
            # An earlier taker may have cancelled this one while handling the event.
            if task is None or task.status is not TaskStatus.SUSPENDED_ON_TAKE:
                continue
            try:
                if resolution.error is not None:
                    self._fail_contract(task, resolution.error)
                else:
                    self._resume_now(task, Ok(event))
            except BaseException:
                # The remaining takers are out of the registry; keep their wake-up queued.
                rest = tuple(resolutions[index + 1 :])
                if rest:
                    self._queue.appendleft(_Deliver(event, rest))
                raise

    def _resume_now(self, task: Task, outcome: Result[Any]) -> None:
        task.status = TaskStatus.RUNNING
        self._advance(task, self._step(task, outcome))

    def _step(self, task: Task, outcome: Result[Any]) -> StepResult:
        if isinstance(outcome, Err):
            return self._guarded(task, partial(task.driver.throw_into, outcome.error))
        return self._guarded(task, partial(task.driver.resume, outcome.ok()))

    def _guarded(self, task: Task, advance: Callable[[], StepResult]) -> StepResult:
        """Run one driver step, settling the task if a BaseException escapes the routine."""
        try:
            return advance()
        except BaseException as exc:
            if task.driver.finished and not task.status.is_terminal:
                self._settle(task, TaskStatus.FAILED, Err(exc), report_unobserved=False)
            raise

    def _advance(self, task: Task, step: StepResult) -> None:
        """Keep stepping ``task`` until it suspends or terminates."""
        while True:
            if task.status is TaskStatus.CANCELLED:
                # Cancelled from inside its own step; the routine is no longer running now.
                task.driver.close()
                return
            match step:
                case Completed(value=value):
                    self._settle(task, TaskStatus.COMPLETED, Ok(value))
                    return
                case Failed(error=error):
                    self._settle(task, TaskStatus.FAILED, Err(error))
                    return
                case Yielded(effect=effect):
                    pass

            try:
                outcome = self._interpret(task, effect)
            except ContractViolation as violation:
                self._fail_contract(task, violation)
                return

            if outcome is SUSPEND or task.status.is_terminal:
                return
            step = self._step(task, outcome)

    # ------------------------------------------------------------------
    # Effect interpretation
    # ------------------------------------------------------------------

    def _interpret(self, task: Task, effect: Any) -> Result[Any] | _Suspend:
        if self._config.debug and hasattr(effect, "describe_origin"):
            logger.debug(
                "task %d (%s) effect %r from %s", task.id, task.name, effect, effect.describe_origin()
            )
        else:
            logger.debug("task %d (%s) effect %s", task.id, task.name, type(effect).__name__)

        match effect:
            case TakeEffect(pattern=pattern):
                # Malformed patterns surface here as a PatternError.
                pattern = as_pattern(pattern)
                try:
                    self._registry.register(task.id, pattern)
                except TaskLimitError as exc:
                    return Err(exc)
                self._suspend(task, TaskStatus.SUSPENDED_ON_TAKE)
                return SUSPEND
            case PutEffect(event=event):
                return capture(self._bus.emit, event)
            case CallEffect():
                return self._call(task, effect)
            case ForkEffect():
                return self._fork(task, effect)
            case JoinEffect(task=handle):
                return self._join(task, handle)
            case CancelEffect(task=handle):
                target = task if handle is None else self._resolve(handle)
                self._cancel_tree(target)
                return Ok(None)
            case SelectEffect(selector=selector, args=args):
                assert task.context is not None
                state = capture(task.context.get_state)
                if selector is None or isinstance(state, Err):
                    return state
                return capture(selector, state.ok(), *args)
            case ContextEffect():
                return Ok(task.context)
            case _:
                raise InvalidEffectError(effect)

    def _call(self, task: Task, effect: CallEffect) -> Result[Any] | _Suspend:
        name = _operation_name(effect.operation)
        result = capture(effect.operation, *effect.args, **effect.kwargs)
        if isinstance(result, Err):
            logger.debug("call %s in task %d raised %r", name, task.id, result.error)
            return result
        produced = result.ok()

        if inspect.isgenerator(produced):
            try:
                sub = self._create_task(
                    RoutineDriver(lambda: produced, name=name), parent=task
                )
            except TaskLimitError as exc:
                produced.close()
                return Err(exc)
            sub.observers.append(task)
            task.call_task = sub
            self._suspend(task, TaskStatus.SUSPENDED_ON_CALL)
            self._queue.append(_Start(sub))
            return SUSPEND

        if isinstance(produced, concurrent.futures.Future) or inspect.isawaitable(produced):
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                if inspect.iscoroutine(produced):
                    produced.close()
                raise ContractViolation(
                    f"Call to {name} returned an awaitable but no asyncio event loop is running"
                ) from None
            if isinstance(produced, concurrent.futures.Future):
                future = asyncio.wrap_future(produced)
            else:
                future = asyncio.ensure_future(produced)
            token = self._suspend(task, TaskStatus.SUSPENDED_ON_CALL)
            task.call_future = future
            future.add_done_callback(partial(self._on_call_done, task, token, name))
            return SUSPEND

        return Ok(produced)

    def _on_call_done(
        self, task: Task, token: int, name: str, future: asyncio.Future[Any]
    ) -> None:
        if future.cancelled():
            outcome: Result[Any] = Err(TaskCancelledError(f"operation {name} was cancelled"))
        elif future.exception() is not None:
            outcome = Err(future.exception())
        else:
            outcome = Ok(future.result())

        if task.call_future is not future or task.wait_token != token:
            if isinstance(outcome, Err) and not future.cancelled():
                logger.warning(
                    "discarding late failure of %s for task %d (%s): %r",
                    name, task.id, task.name, outcome.error,
                )
            else:
                logger.debug("discarding late outcome of %s for task %d", name, task.id)
            return

        task.call_future = None
        self._queue.append(_Resume(task, token, outcome))
        self._drain()

    def _fork(self, task: Task, effect: ForkEffect) -> Result[Any]:
        try:
            child = self._create_task(effect.routine, parent=None if effect.detached else task)
        except TaskLimitError as exc:
            return Err(exc)
        self._queue.append(_Start(child, effect.args, dict(effect.kwargs)))
        return Ok(child.handle)

    def _join(self, task: Task, handle: TaskHandle) -> Result[Any] | _Suspend:
        target = self._resolve(handle)
        if target is task:
            raise ContractViolation(f"task {task.id} ({task.name}) cannot join itself")
        if target.status.is_terminal:
            assert target.outcome is not None
            return target.outcome
        target.observers.append(task)
        task.joining = target
        self._suspend(task, TaskStatus.SUSPENDED_ON_JOIN)
        return SUSPEND

    # ------------------------------------------------------------------
    # Task tree
    # ------------------------------------------------------------------

    def _create_task(self, routine: Callable[..., Any] | RoutineDriver, *, parent: Task | None) -> Task:
        limit = self._config.max_tasks
        if limit is not None and len(self._tasks) >= limit:
            raise TaskLimitError(f"task limit reached ({limit})")
        driver = routine if isinstance(routine, RoutineDriver) else RoutineDriver(routine)
        task = Task(
            id=next(self._ids),
            name=driver.name,
            driver=driver,
            parent=parent,
            scheduler=self,
        )
        task.context = TaskContext(task=task.handle, emit=self._bus.emit, get_state=self._get_state)
        self._tasks[task.id] = task
        if parent is not None:
            parent.children[task.id] = task
        logger.debug(
            "created task %d (%s)%s",
            task.id,
            task.name,
            f" under task {parent.id}" if parent is not None else "",
        )
        return task

    def _resolve(self, handle: Any) -> Task:
        if not isinstance(handle, TaskHandle) or not handle._belongs_to(self):
            raise UnknownTaskError(handle)
        return handle._task

    def _suspend(self, task: Task, status: TaskStatus) -> int:
        task.status = status
        task.wait_token += 1
        return task.wait_token

    def _settle(
        self,
        task: Task,
        status: TaskStatus,
        outcome: Result[Any],
        *,
        report_unobserved: bool = True,
    ) -> None:
        task.status = status
        task.outcome = outcome
        if isinstance(outcome, Err):
            logger.debug("task %d (%s) failed: %r", task.id, task.name, outcome.error)
        else:
            logger.debug("task %d (%s) completed", task.id, task.name)
        # Reaped first so a raising unhandled-error hook cannot leave it in the tree.
        self._reap(task)
        self._notify(task, report_unobserved=report_unobserved)

    def _fail_contract(self, task: Task, violation: ContractViolation) -> None:
        logger.error(
            "contract violation in task %d (%s): %s",
            task.id,
            task.name,
            violation,
            exc_info=(type(violation), violation, violation.__traceback__),
        )
        self._release_waits(task)
        task.driver.close()
        self._settle(task, TaskStatus.FAILED, Err(violation))

    def _release_waits(self, task: Task) -> None:
        """Tear down whatever ``task`` is suspended on."""
        self._registry.discard(task.id)
        if task.joining is not None:
            _remove_observer(task.joining, task)
            task.joining = None
        if task.call_task is not None:
            _remove_observer(task.call_task, task)
            task.call_task = None
        if task.call_future is not None:
            future, task.call_future = task.call_future, None
            future.cancel()

    def _notify(self, task: Task, *, report_unobserved: bool = True) -> None:
        """Settle join observers and done-callbacks of a terminal task."""
        assert task.outcome is not None
        observers, task.observers = task.observers, []
        callbacks, task.done_callbacks = task.done_callbacks, []

        for observer in observers:
            waiting = observer.joining is task or observer.call_task is task
            if not observer.status.is_suspended or not waiting:
                continue
            observer.joining = None
            observer.call_task = None
            self._queue.append(_Resume(observer, observer.wait_token, task.outcome))

        unobserved = not observers and not callbacks
        if task.status is TaskStatus.FAILED and unobserved and report_unobserved:
            error = task.outcome.err()
            assert error is not None
            if task.parent is None:
                self._on_unhandled_error(task.handle, error)
            elif self._config.warn_unobserved_failures:
                logger.warning(
                    "task %d (%s) failed and nobody joined it: %r", task.id, task.name, error
                )

        for callback in callbacks:
            try:
                callback(task.handle)
            except Exception:
                logger.exception("done callback of task %d (%s) raised", task.id, task.name)

    def _cancel_tree(self, root: Task) -> None:
        if root.status.is_terminal:
            return
        doomed: list[Task] = []
        pending = [root]
        while pending:
            node = pending.pop(0)
            if not node.status.is_terminal:
                doomed.append(node)
            pending.extend(node.children.values())

        for task in doomed:
            task.status = TaskStatus.CANCELLED
            task.outcome = cancelled_outcome(task)
            task.wait_token += 1
            self._release_waits(task)
        for task in doomed:
            logger.debug("cancelled task %d (%s)", task.id, task.name)
            if not task.driver.stepping:
                task.driver.close()
            self._notify(task)
        for task in reversed(doomed):
            self._reap(task)

    def _reap(self, task: Task) -> None:
        """Drop finished subtrees from the tree, walking up through finished parents."""
        node: Task | None = task
        while node is not None and node.status.is_terminal and not node.children:
            if self._tasks.pop(node.id, None) is None:
                return
            parent = node.parent
            if parent is not None:
                parent.children.pop(node.id, None)
            node = parent

    def _snapshot(self, task: Task) -> TaskSnapshot:
        waiting_on: str | None = None
        if task.status is TaskStatus.SUSPENDED_ON_TAKE:
            pattern = self._registry.pattern_for(task.id)
            waiting_on = f"take {describe(pattern)}" if pattern is not None else None
        elif task.status is TaskStatus.SUSPENDED_ON_JOIN and task.joining is not None:
            waiting_on = f"join task {task.joining.id}"
        elif task.status is TaskStatus.SUSPENDED_ON_CALL:
            if task.call_task is not None:
                waiting_on = f"call task {task.call_task.id}"
            else:
                waiting_on = "call"
        return TaskSnapshot(
            id=task.id,
            name=task.name,
            status=task.status,
            waiting_on=waiting_on,
            children=tuple(self._snapshot(child) for child in task.children.values()),
        )

    def _ensure_open(self) -> None:
        if self._closed:
            raise ContractViolation("scheduler is closed")


def _remove_observer(target: Task, observer: Task) -> None:
    try:
        target.observers.remove(observer)
    except ValueError:
        pass


__all__ = ["Scheduler", "UnhandledErrorHook"]
