from __future__ import annotations

import dataclasses

import pytest

from dosaga import (
    WILDCARD,
    Call,
    Cancel,
    Event,
    Exact,
    FrozenDict,
    Fork,
    GetContext,
    Join,
    Put,
    Select,
    Spawn,
    Take,
    call,
    fork,
    take,
)


def _routine():
    yield Take("A")


def test_take_normalises_its_pattern() -> None:
    assert Take("A").pattern == Exact("A")
    assert Take().pattern is WILDCARD
    assert Take("A") == Take("A")


def test_malformed_take_pattern_is_kept_for_the_scheduler() -> None:
    assert Take([]).pattern == []


def test_descriptors_are_immutable() -> None:
    effect = Take("A")

    with pytest.raises(dataclasses.FrozenInstanceError):
        effect.pattern = Exact("B")  # type: ignore[misc]


def test_call_captures_arguments() -> None:
    def operation(*args: object, **kwargs: object) -> None:
        return None

    effect = Call(operation, 1, 2, key="value")

    assert effect.operation is operation
    assert effect.args == (1, 2)
    assert effect.kwargs == {"key": "value"}
    assert isinstance(effect.kwargs, FrozenDict)


def test_call_rejects_non_callable() -> None:
    with pytest.raises(TypeError, match="operation must be callable"):
        Call("not callable")  # type: ignore[arg-type]


def test_fork_and_spawn_differ_only_in_detachment() -> None:
    attached = Fork(_routine, 1, flag=True)
    detached = Spawn(_routine, 1, flag=True)

    assert attached.detached is False
    assert detached.detached is True
    assert attached.args == detached.args == (1,)
    assert attached.kwargs == detached.kwargs == {"flag": True}


def test_join_requires_a_task_handle() -> None:
    with pytest.raises(TypeError, match="TaskHandle"):
        Join("task-1")  # type: ignore[arg-type]


def test_cancel_without_target_means_the_caller() -> None:
    assert Cancel().task is None


def test_put_rejects_none() -> None:
    with pytest.raises(TypeError):
        Put(None)


def test_select_validates_selector() -> None:
    assert Select().selector is None
    with pytest.raises(TypeError):
        Select(42)  # type: ignore[arg-type]


def test_lowercase_aliases() -> None:
    assert take is Take
    assert call is Call
    assert fork is Fork


def test_creation_site_is_recorded_outside_equality() -> None:
    effect = Put(Event("A"))

    assert effect.created_at is not None
    assert effect.created_at.filename.endswith("test_effects.py")
    assert effect.created_at.function == "test_creation_site_is_recorded_outside_equality"
    assert "test_effects.py" in effect.describe_origin()
    assert effect == Put(Event("A")).with_created_at(None)
    assert GetContext().describe_origin() != "<unknown>"
