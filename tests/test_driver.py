"""RoutineDriver: start / resume / throw_into / close over generator routines."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from dosaga import (
    Call,
    CallEffect,
    Completed,
    ContractViolation,
    Failed,
    Put,
    RoutineDriver,
    Take,
    Yielded,
)


def _noop() -> None:
    return None


def test_start_returns_first_yielded_effect() -> None:
    def routine(tag: str):
        event = yield Take(tag)
        return event

    driver = RoutineDriver(routine)

    step = driver.start("A")

    assert step == Yielded(Take("A"))
    assert driver.resume("event") == Completed("event")
    assert driver.finished


def test_plain_function_completes_at_start() -> None:
    driver = RoutineDriver(lambda value: value * 2)

    assert driver.start(21) == Completed(42)


def test_routine_raising_before_first_yield_fails() -> None:
    def routine():
        raise KeyError("early")
        yield Take("A")

    step = RoutineDriver(routine).start()

    assert isinstance(step, Failed)
    assert isinstance(step.error, KeyError)


def test_throw_into_lets_routine_recover() -> None:
    def routine():
        try:
            yield Call(_noop)
        except ValueError as exc:
            return f"recovered {exc}"
        return "not reached"

    driver = RoutineDriver(routine)
    driver.start()

    assert driver.throw_into(ValueError("bad")) == Completed("recovered bad")


def test_unhandled_throw_into_becomes_failure() -> None:
    def routine():
        yield Call(_noop)

    driver = RoutineDriver(routine)
    driver.start()
    error = ValueError("bad")

    step = driver.throw_into(error)

    assert isinstance(step, Failed)
    assert step.error is error


def test_resume_before_start_is_rejected() -> None:
    def routine():
        yield Take("A")

    with pytest.raises(ContractViolation):
        RoutineDriver(routine).resume(None)


def test_resume_after_completion_is_rejected() -> None:
    driver = RoutineDriver(lambda: "done")
    driver.start()

    with pytest.raises(ContractViolation):
        driver.resume(None)


def test_double_start_is_rejected() -> None:
    def routine():
        yield Take("A")

    driver = RoutineDriver(routine)
    driver.start()

    with pytest.raises(ContractViolation):
        driver.start()


def test_reentrant_step_is_rejected() -> None:
    holder: dict[str, RoutineDriver] = {}

    def routine():
        yield Put("A")
        holder["driver"].resume(None)
        yield Put("B")

    driver = RoutineDriver(routine)
    holder["driver"] = driver
    driver.start()

    step = driver.resume(None)

    assert isinstance(step, Failed)
    assert isinstance(step.error, ContractViolation)


def test_close_runs_finally_blocks() -> None:
    log: list[str] = []

    def routine():
        try:
            yield Take("A")
        finally:
            log.append("cleanup")

    driver = RoutineDriver(routine)
    driver.start()
    driver.close()

    assert log == ["cleanup"]
    assert driver.finished


def test_close_reports_routine_that_yields_while_closing(caplog: pytest.LogCaptureFixture) -> None:
    def routine():
        try:
            yield Take("A")
        finally:
            yield Put("too late")

    driver = RoutineDriver(routine)
    driver.start()

    with caplog.at_level(logging.ERROR, logger="dosaga.driver"):
        driver.close()

    assert "yielded while being cancelled" in caplog.text


def test_async_routine_is_driven_as_a_single_call() -> None:
    async def fetch() -> int:
        return 1

    driver = RoutineDriver(fetch)
    step = driver.start()

    assert isinstance(step, Yielded)
    assert isinstance(step.effect, CallEffect)
    pending: Any = step.effect.args[0]
    pending.close()
    assert driver.resume(5) == Completed(5)


def test_driver_name_defaults_to_qualname() -> None:
    def watcher():
        yield Take("A")

    assert RoutineDriver(watcher).name.endswith("watcher")
    assert RoutineDriver(watcher, name="custom").name == "custom"


class _Abort(BaseException):
    pass


def test_base_exception_propagates_and_finishes_the_driver() -> None:
    def routine():
        yield Take("GO")
        raise _Abort()

    driver = RoutineDriver(routine)
    driver.start()

    with pytest.raises(_Abort):
        driver.resume("GO")
    assert driver.finished
    assert not driver.stepping
