"""Take / Put interplay between routines and the host bus."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from dosaga import (
    Event,
    GetContext,
    InMemoryBus,
    InvalidEffectError,
    PatternError,
    PredicateError,
    Put,
    Scheduler,
    SchedulerConfig,
    Select,
    Take,
    TaskStatus,
    event_tag,
)


def test_take_suspends_until_a_matching_event(scheduler: Scheduler, bus: InMemoryBus) -> None:
    def watcher():
        event = yield Take("PING")
        return event

    handle = scheduler.run_task(watcher)
    assert handle.status is TaskStatus.SUSPENDED_ON_TAKE

    bus.emit(Event("OTHER"))
    assert handle.status is TaskStatus.SUSPENDED_ON_TAKE

    bus.emit(Event("PING", payload=1))
    assert handle.status is TaskStatus.COMPLETED
    assert handle.result() == Event("PING", payload=1)
    assert scheduler.pending_takes == 0
    assert scheduler.task_count == 0


def test_put_reaches_the_bus_before_the_emitter_continues(
    scheduler: Scheduler, bus: InMemoryBus
) -> None:
    seen: list[tuple[str, Any]] = []
    bus.subscribe(lambda event: seen.append(("bus", event)))

    def emitter():
        yield Put("HELLO")
        seen.append(("emitter", None))

    scheduler.run_task(emitter)

    assert seen == [("bus", "HELLO"), ("emitter", None)]


def test_taker_observes_a_put_after_the_emitter_resumes(scheduler: Scheduler) -> None:
    order: list[str] = []

    def taker():
        event = yield Take("HELLO")
        order.append(f"taker got {event}")

    def emitter():
        yield Put("HELLO")
        order.append("emitter resumed")

    scheduler.run_task(taker)
    scheduler.run_task(emitter)

    assert order == ["emitter resumed", "taker got HELLO"]


def test_one_event_resolves_each_matching_task_once(scheduler: Scheduler, bus: InMemoryBus) -> None:
    hits: list[tuple[str, Any]] = []

    def watcher(name: str):
        while True:
            event = yield Take(["A", "*"])
            hits.append((name, event))

    scheduler.run_task(watcher, "one")
    scheduler.run_task(watcher, "two")
    bus.emit("A")

    assert hits == [("one", "A"), ("two", "A")]
    assert scheduler.pending_takes == 2


def test_oldest_waiter_is_served_first(scheduler: Scheduler, bus: InMemoryBus) -> None:
    order: list[str] = []

    def waiter(name: str):
        yield Take("GO")
        order.append(name)

    for name in ("a", "b", "c"):
        scheduler.run_task(waiter, name)
    bus.emit("GO")

    assert order == ["a", "b", "c"]


def test_class_and_predicate_patterns(scheduler: Scheduler, bus: InMemoryBus) -> None:
    class Tick:
        def __init__(self, n: int) -> None:
            self.n = n

    def routine():
        tick = yield Take(Tick)
        big = yield Take(lambda event: isinstance(event, Tick) and event.n > 10)
        return tick.n, big.n

    handle = scheduler.run_task(routine)
    bus.emit(Tick(1))
    bus.emit(Tick(5))
    bus.emit(Tick(50))

    assert handle.result() == (1, 50)


def test_put_failure_is_thrown_into_the_emitter() -> None:
    def broken(state: Any, event: Any) -> Any:
        raise ValueError("reducer broke")

    def emitter():
        try:
            yield Put("X")
        except ValueError as exc:
            return str(exc)
        return "unreachable"

    with Scheduler(InMemoryBus(reducer=broken)) as scheduler:
        handle = scheduler.run_task(emitter)

    assert handle.result() == "reducer broke"


def test_select_reads_host_state() -> None:
    def counter(state: int, event: Any) -> int:
        return state + 1 if event_tag(event) == "INC" else state

    def reader():
        yield Take("INC")
        total = yield Select()
        scaled = yield Select(lambda state, factor: state * factor, 10)
        return total, scaled

    bus = InMemoryBus(reducer=counter, initial_state=0)
    with Scheduler(bus) as scheduler:
        handle = scheduler.run_task(reader)
        bus.emit("INC")

    assert handle.result() == (1, 10)


def test_context_exposes_handle_and_emit(scheduler: Scheduler, bus: InMemoryBus) -> None:
    def routine():
        context = yield GetContext()
        context.emit("VIA_CONTEXT")
        return context.task

    handle = scheduler.run_task(routine)

    assert handle.result() is handle
    assert "VIA_CONTEXT" in bus.history


def test_yielding_a_non_effect_fails_the_task(
    scheduler: Scheduler, caplog: pytest.LogCaptureFixture
) -> None:
    def sneaky():
        try:
            yield "not an effect"
        except InvalidEffectError:
            return "caught"
        return "unreachable"

    with caplog.at_level(logging.ERROR, logger="dosaga.scheduler"):
        handle = scheduler.run_task(sneaky)

    assert handle.status is TaskStatus.FAILED
    assert isinstance(handle.exception(), InvalidEffectError)
    assert "contract violation" in caplog.text


def test_broken_predicate_fails_only_its_owner(scheduler: Scheduler, bus: InMemoryBus) -> None:
    def broken(event: Any) -> bool:
        raise ZeroDivisionError

    def fragile():
        yield Take(broken)

    def steady():
        event = yield Take("*")
        return event

    fragile_handle = scheduler.run_task(fragile)
    steady_handle = scheduler.run_task(steady)
    bus.emit("X")

    error = fragile_handle.exception()
    assert isinstance(error, PredicateError)
    assert isinstance(error.__cause__, ZeroDivisionError)
    assert steady_handle.result() == "X"


def test_debug_mode_logs_effect_creation_site(
    bus: InMemoryBus, caplog: pytest.LogCaptureFixture
) -> None:
    def routine():
        yield Take("A")

    with caplog.at_level(logging.DEBUG, logger="dosaga.scheduler"):
        with Scheduler(bus, config=SchedulerConfig(debug=True)) as scheduler:
            scheduler.run_task(routine)

    assert "test_take_put.py" in caplog.text


def test_malformed_take_pattern_fails_the_task_uncatchably(
    scheduler: Scheduler, caplog: pytest.LogCaptureFixture
) -> None:
    def routine():
        try:
            yield Take([])
        except PatternError:
            return "recovered"
        return "unreachable"

    with caplog.at_level(logging.ERROR, logger="dosaga.scheduler"):
        handle = scheduler.run_task(routine)

    assert handle.status is TaskStatus.FAILED
    assert isinstance(handle.exception(), PatternError)
    assert "contract violation" in caplog.text
    assert scheduler.pending_takes == 0


def test_rejected_put_does_not_strand_later_puts() -> None:
    def reducer(state: Any, event: Any) -> Any:
        if event == "BAD":
            raise ValueError("rejected")
        return state

    def emitter():
        yield Take("GO")
        yield Put("BAD")
        yield Put("NEXT")

    def taker():
        event = yield Take("NEXT")
        return event

    bus = InMemoryBus(reducer=reducer)
    with Scheduler(bus) as scheduler:
        emitter_handle = scheduler.run_task(emitter)
        taker_handle = scheduler.run_task(taker)

        with pytest.raises(ValueError, match="rejected"):
            bus.emit("GO")

        assert emitter_handle.status is TaskStatus.COMPLETED
        assert taker_handle.result() == "NEXT"
        assert bus.history == ["GO", "NEXT"]
