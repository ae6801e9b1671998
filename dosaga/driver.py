"""Routine driver: advances one generator-based routine a step at a time.

The scheduler only talks to routines through :class:`RoutineDriver`, which
turns the generator protocol into explicit :class:`StepResult` values:

    Yielded(effect)    the routine is suspended on ``effect``
    Completed(value)   the routine returned ``value``
    Failed(error)      the routine raised ``error``

Nothing else about generators leaks into the scheduler.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Generator
from dataclasses import dataclass
from typing import Any, TypeAlias

from dosaga.effects.base import EffectBase
from dosaga.effects.call import CallEffect
from dosaga.errors import ContractViolation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Yielded:
    effect: Any


@dataclass(frozen=True)
class Completed:
    value: Any


@dataclass(frozen=True)
class Failed:
    error: BaseException


StepResult: TypeAlias = Yielded | Completed | Failed


def _return_awaited(value: Any) -> Any:
    return value


def _await_once(awaitable: Any) -> Generator[EffectBase, Any, Any]:
    """Adapt an awaitable returned by a routine into a one-step generator."""
    return (yield CallEffect(operation=_return_awaited, args=(awaitable,)))


class RoutineDriver:
    """Wraps one routine instance and steps it on demand.

    At most one step is ever in flight: re-entering ``resume`` or
    ``throw_into`` while a step runs is a :class:`ContractViolation`.
    """

    def __init__(self, routine: Callable[..., Any], *, name: str | None = None) -> None:
        if not callable(routine):
            raise TypeError(f"routine must be callable, got {type(routine).__name__}")
        self._routine = routine
        self.name = name or getattr(routine, "__qualname__", None) or repr(routine)
        self._gen: Generator[Any, Any, Any] | None = None
        self._started = False
        self._finished = False
        self._stepping = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def stepping(self) -> bool:
        return self._stepping

    def start(self, *args: Any, **kwargs: Any) -> StepResult:
        """Call the routine and run it up to its first yield."""
        if self._started:
            raise ContractViolation(f"routine {self.name} was already started")
        self._started = True
        try:
            produced = self._routine(*args, **kwargs)
        except Exception as exc:
            self._finished = True
            return Failed(exc)
        except BaseException:
            self._finished = True
            raise

        if inspect.isgenerator(produced):
            self._gen = produced
        elif inspect.isawaitable(produced):
            self._gen = _await_once(produced)
        else:
            # A plain function is a routine that yields nothing.
            self._finished = True
            return Completed(produced)

        return self._step(lambda gen: next(gen))

    def resume(self, value: Any = None) -> StepResult:
        """Deliver ``value`` as the result of the last suspension point."""
        self._check_resumable("resume")
        return self._step(lambda gen: gen.send(value))

    def throw_into(self, error: BaseException) -> StepResult:
        """Raise ``error`` at the last suspension point."""
        if not isinstance(error, BaseException):
            raise TypeError(f"error must be BaseException, got {type(error).__name__}")
        self._check_resumable("throw_into")
        return self._step(lambda gen: gen.throw(error))

    def close(self) -> None:
        """Stop the routine, running its ``finally`` blocks.

        A routine that yields another effect while being closed cannot be
        honoured; that is logged as a fault of the routine.
        """
        if self._finished or self._gen is None:
            self._finished = True
            return
        if self._stepping:
            raise ContractViolation(f"routine {self.name} cannot be closed mid-step")
        self._finished = True
        try:
            self._gen.close()
        except RuntimeError:
            logger.error("routine %s yielded while being cancelled", self.name, exc_info=True)
        except Exception:
            logger.error("routine %s raised while being cancelled", self.name, exc_info=True)

    def _check_resumable(self, operation: str) -> None:
        if not self._started:
            raise ContractViolation(f"{operation} called before start on routine {self.name}")
        if self._finished:
            raise ContractViolation(f"{operation} called on finished routine {self.name}")

    def _step(self, advance: Callable[[Generator[Any, Any, Any]], Any]) -> StepResult:
        if self._stepping:
            raise ContractViolation(f"routine {self.name} is already running a step")
        assert self._gen is not None
        self._stepping = True
        try:
            effect = advance(self._gen)
        except StopIteration as stop:
            self._finished = True
            return Completed(stop.value)
        except Exception as exc:
            self._finished = True
            return Failed(exc)
        except BaseException:
            # The generator is finished once anything propagates out of it.
            self._finished = True
            raise
        finally:
            self._stepping = False
        return Yielded(effect)

    def __repr__(self) -> str:
        state = "finished" if self._finished else ("running" if self._started else "new")
        return f"RoutineDriver({self.name}, {state})"


__all__ = [
    "Completed",
    "Failed",
    "RoutineDriver",
    "StepResult",
    "Yielded",
]
