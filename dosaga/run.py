"""
Entry points for launching a root routine without managing a scheduler by hand.

Example:
    >>> from dosaga import Put, Take, run
    >>> def greeter():
    ...     event = yield Take("HELLO")
    ...     yield Put({"tag": "GREETED", "to": event["name"]})
    >>> handle = run(greeter)
    >>> handle.scheduler.dispatch({"tag": "HELLO", "name": "ada"})
    >>> handle.status.value
    'completed'
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from dosaga.bus import EventBus
from dosaga.config import SchedulerConfig
from dosaga.scheduler import Scheduler, UnhandledErrorHook
from dosaga.task import TaskHandle


def run(
    routine: Callable[..., Any],
    *args: Any,
    bus: EventBus | None = None,
    config: SchedulerConfig | None = None,
    on_unhandled_error: UnhandledErrorHook | None = None,
    **kwargs: Any,
) -> TaskHandle:
    """Create a scheduler and launch ``routine`` as its root task.

    The scheduler stays reachable as ``handle.scheduler``.
    """
    scheduler = Scheduler(bus, config=config, on_unhandled_error=on_unhandled_error)
    return scheduler.run_task(routine, *args, **kwargs)


def _reraised_by_caller(handle: TaskHandle, error: BaseException) -> None:
    # async_run awaits the root task, so the failure is raised to its caller.
    return None


async def async_run(
    routine: Callable[..., Any],
    *args: Any,
    bus: EventBus | None = None,
    config: SchedulerConfig | None = None,
    **kwargs: Any,
) -> Any:
    """Launch ``routine`` on the running loop and return its result.

    The root task's failure is raised here. The scheduler is closed on the
    way out, cancelling any task the root left running.
    """
    scheduler = Scheduler(bus, config=config, on_unhandled_error=_reraised_by_caller)
    try:
        handle = scheduler.run_task(routine, *args, **kwargs)
        return await handle
    finally:
        scheduler.close()


__all__ = ["async_run", "run"]
