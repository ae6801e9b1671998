from __future__ import annotations

import asyncio
import logging

import pytest

from dosaga import Call, Fork, InMemoryBus, Scheduler, Take, TaskHandle, TaskStatus, async_run, run


def test_run_launches_a_root_on_a_fresh_scheduler() -> None:
    def routine():
        event = yield Take("GO")
        return event

    handle = run(routine)
    assert isinstance(handle.scheduler, Scheduler)

    handle.scheduler.dispatch("GO")

    assert handle.result() == "GO"
    handle.scheduler.close()


@pytest.mark.asyncio
async def test_async_run_returns_the_root_result() -> None:
    async def fetch() -> int:
        await asyncio.sleep(0)
        return 3

    def routine():
        value = yield Call(fetch)
        return value + 1

    assert await async_run(routine) == 4


@pytest.mark.asyncio
async def test_async_run_raises_the_root_failure() -> None:
    def routine():
        yield Call(lambda: None)
        raise ValueError("root failed")

    with pytest.raises(ValueError, match="root failed"):
        await async_run(routine)


@pytest.mark.asyncio
async def test_async_run_cancels_leftover_tasks() -> None:
    bus = InMemoryBus()
    leftovers: dict[str, TaskHandle] = {}

    def background():
        yield Take("NEVER")

    def routine():
        leftovers["background"] = yield Fork(background)
        return "done"

    assert await async_run(routine, bus=bus) == "done"
    assert leftovers["background"].cancelled()
    assert bus.subscriber_count == 0


def test_unobserved_root_failure_is_reported_once(bus: InMemoryBus) -> None:
    reported: list[tuple[int, type[BaseException]]] = []

    def routine():
        yield Take("GO")
        raise ValueError("unobserved")

    with Scheduler(bus, on_unhandled_error=lambda h, e: reported.append((h.id, type(e)))) as s:
        handle = s.run_task(routine)
        bus.emit("GO")
        bus.emit("GO")

    assert reported == [(handle.id, ValueError)]


def test_observed_root_failure_is_not_reported(bus: InMemoryBus) -> None:
    reported: list[BaseException] = []
    seen: list[TaskHandle] = []

    def routine():
        yield Take("GO")
        raise ValueError("observed")

    with Scheduler(bus, on_unhandled_error=lambda h, e: reported.append(e)) as s:
        handle = s.run_task(routine)
        handle.add_done_callback(seen.append)
        bus.emit("GO")

    assert reported == []
    assert seen == [handle]
    assert handle.status is TaskStatus.FAILED


def test_default_unhandled_hook_logs_error(
    bus: InMemoryBus, caplog: pytest.LogCaptureFixture
) -> None:
    def routine():
        raise RuntimeError("boom")
        yield Take("NEVER")

    with caplog.at_level(logging.ERROR, logger="dosaga.scheduler"):
        with Scheduler(bus) as s:
            s.run_task(routine)

    assert "failed and nobody joined it" in caplog.text
    assert "boom" in caplog.text


def test_raising_unhandled_hook_does_not_strand_other_takers(bus: InMemoryBus) -> None:
    def hook(handle: TaskHandle, error: BaseException) -> None:
        raise RuntimeError("fatal")

    def failing():
        yield Take("X")
        raise ValueError("unobserved")

    def waiter():
        event = yield Take("X")
        return event

    with Scheduler(bus, on_unhandled_error=hook) as s:
        failed = s.run_task(failing)
        waiting = s.run_task(waiter)

        with pytest.raises(RuntimeError, match="fatal"):
            bus.emit("X")

        assert failed.status is TaskStatus.FAILED
        assert s.task_count == 1

        bus.emit("Y")
        assert waiting.result() == "X"
        assert s.task_count == 0


class _Abort(BaseException):
    pass


def test_base_exception_from_routine_settles_the_task(bus: InMemoryBus) -> None:
    done: list[TaskHandle] = []

    def routine():
        yield Take("GO")
        raise _Abort()

    with Scheduler(bus) as s:
        handle = s.run_task(routine)
        handle.add_done_callback(done.append)

        with pytest.raises(_Abort):
            bus.emit("GO")

        assert handle.status is TaskStatus.FAILED
        assert isinstance(handle.exception(), _Abort)
        assert done == [handle]
        assert s.task_count == 0
