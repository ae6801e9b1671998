"""
dosaga - effect-driven sagas on a cooperative task scheduler.

Routines are generator functions that yield effect descriptors. A
:class:`Scheduler` interprets each descriptor, matches incoming events against
pending takes, and keeps a tree of forked tasks with structural cancellation.

Example:
    >>> from dosaga import Fork, InMemoryBus, Put, Scheduler, Take
    >>>
    >>> def auth_flow():
    ...     while True:
    ...         login = yield Take("LOGIN")
    ...         yield Put({"tag": "WELCOME", "user": login["user"]})
    ...         yield Take("LOGOUT")
    >>>
    >>> bus = InMemoryBus()
    >>> scheduler = Scheduler(bus)
    >>> task = scheduler.run_task(auth_flow)
    >>> bus.emit({"tag": "LOGIN", "user": "ada"})
"""

from dosaga._vendor import Err, FrozenDict, Ok, Result
from dosaga.bus import EventBus, InMemoryBus
from dosaga.config import SchedulerConfig
from dosaga.driver import Completed, Failed, RoutineDriver, StepResult, Yielded
from dosaga.effects import (
    Call,
    CallEffect,
    Cancel,
    CancelEffect,
    ContextEffect,
    EffectBase,
    Fork,
    ForkEffect,
    GetContext,
    Join,
    JoinEffect,
    Put,
    PutEffect,
    Select,
    SelectEffect,
    Spawn,
    Take,
    TakeEffect,
    call,
    cancel,
    fork,
    get_context,
    join,
    put,
    select,
    spawn,
    take,
)
from dosaga.errors import (
    ContractViolation,
    DuplicateTakeError,
    InvalidEffectError,
    InvalidStateError,
    PatternError,
    PredicateError,
    SagaError,
    TaskCancelledError,
    TaskLimitError,
    UnknownTaskError,
)
from dosaga.events import Event, event_tag
from dosaga.helpers import delay, join_all, take_every, take_latest, take_leading
from dosaga.patterns import (
    WILDCARD,
    AnyOf,
    Exact,
    Pattern,
    Predicate,
    Wildcard,
    as_pattern,
    matches,
)
from dosaga.registry import PendingTake, PendingTakeRegistry
from dosaga.run import async_run, run
from dosaga.scheduler import Scheduler
from dosaga.task import TaskContext, TaskHandle, TaskSnapshot, TaskStatus

__version__ = "0.1.0"

__all__ = [
    # Effects
    "Call",
    "CallEffect",
    "Cancel",
    "CancelEffect",
    "ContextEffect",
    "EffectBase",
    "Fork",
    "ForkEffect",
    "GetContext",
    "Join",
    "JoinEffect",
    "Put",
    "PutEffect",
    "Select",
    "SelectEffect",
    "Spawn",
    "Take",
    "TakeEffect",
    "call",
    "cancel",
    "fork",
    "get_context",
    "join",
    "put",
    "select",
    "spawn",
    "take",
    # Patterns and events
    "WILDCARD",
    "AnyOf",
    "Event",
    "Exact",
    "Pattern",
    "Predicate",
    "Wildcard",
    "as_pattern",
    "event_tag",
    "matches",
    # Runtime
    "Completed",
    "EventBus",
    "Failed",
    "InMemoryBus",
    "PendingTake",
    "PendingTakeRegistry",
    "RoutineDriver",
    "Scheduler",
    "SchedulerConfig",
    "StepResult",
    "TaskContext",
    "TaskHandle",
    "TaskSnapshot",
    "TaskStatus",
    "Yielded",
    "async_run",
    "run",
    # Helpers
    "delay",
    "join_all",
    "take_every",
    "take_latest",
    "take_leading",
    # Errors and results
    "ContractViolation",
    "DuplicateTakeError",
    "Err",
    "FrozenDict",
    "InvalidEffectError",
    "InvalidStateError",
    "Ok",
    "PatternError",
    "PredicateError",
    "Result",
    "SagaError",
    "TaskCancelledError",
    "TaskLimitError",
    "UnknownTaskError",
]
