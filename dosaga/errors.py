from __future__ import annotations

from typing import Any


class SagaError(Exception):
    """Base class for every error raised by dosaga itself."""


class ContractViolation(SagaError):
    """A caller broke one of the scheduler's own rules.

    These indicate a defect in routine or launcher code. The scheduler never
    hands them to a routine as a recoverable error.
    """


class DuplicateTakeError(ContractViolation):
    """Raised when a task registers a second pending take."""

    def __init__(self, task_id: int) -> None:
        self.task_id = task_id
        super().__init__(f"task {task_id} already has a pending take")


class UnknownTaskError(ContractViolation):
    """Raised when a handle does not belong to the scheduler it is used with."""

    def __init__(self, handle: Any) -> None:
        self.handle = handle
        super().__init__(f"unknown task handle: {handle!r}")


class PatternError(ContractViolation):
    """Raised for a pattern value that cannot be normalised."""


class PredicateError(ContractViolation):
    """A predicate pattern raised while matching an event.

    The original exception is chained as ``__cause__``.
    """

    def __init__(self, pattern: Any, event: Any) -> None:
        self.pattern = pattern
        self.event = event
        super().__init__(f"predicate {pattern!r} raised while matching {event!r}")


class InvalidEffectError(ContractViolation):
    """A routine yielded something that is not an effect descriptor."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(
            f"routines must yield effect descriptors, got {type(value).__name__}: {value!r}\n"
            "Hint: use Take/Put/Call/Fork/Join/Cancel, or `yield from` to delegate to a sub-routine"
        )


class TaskCancelledError(SagaError):
    """Raised into observers of a cancelled task."""


class TaskLimitError(SagaError):
    """A configured bound on tasks or pending takes was exceeded."""


class InvalidStateError(SagaError):
    """Raised when a task outcome is requested before the task is terminal."""


__all__ = [
    "ContractViolation",
    "DuplicateTakeError",
    "InvalidEffectError",
    "InvalidStateError",
    "PatternError",
    "PredicateError",
    "SagaError",
    "TaskCancelledError",
    "TaskLimitError",
    "UnknownTaskError",
]
