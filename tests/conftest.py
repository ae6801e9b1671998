"""Shared fixtures: an in-memory bus and a scheduler subscribed to it."""

from collections.abc import Iterator

import pytest

from dosaga import InMemoryBus, Scheduler


@pytest.fixture
def bus() -> InMemoryBus:
    return InMemoryBus()


@pytest.fixture
def scheduler(bus: InMemoryBus) -> Iterator[Scheduler]:
    sched = Scheduler(bus)
    yield sched
    sched.close()
