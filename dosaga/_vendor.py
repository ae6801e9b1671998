"""
Outcome values and immutable mappings shared across dosaga.

A terminal task keeps its outcome as ``Ok(value)`` or ``Err(error)`` so it can
be joined any number of times without running again. Descriptor keyword
arguments and event metadata use ``FrozenDict`` so effects stay hashable.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, NoReturn, TypeVar

from frozendict import frozendict

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class Result(Generic[T_co]):
    """Outcome of a step, an operation or a whole task."""

    __slots__ = ()

    def ok(self) -> T_co | None:
        """The success value, or ``None`` for an error."""
        return None

    def err(self) -> BaseException | None:
        """The stored error, or ``None`` for a success."""
        return None

    def unwrap(self) -> T_co:
        raise NotImplementedError


@dataclass(frozen=True)
class Ok(Result[T], Generic[T]):
    value: T

    def ok(self) -> T:
        return self.value

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Result[NoReturn]):
    error: BaseException

    def err(self) -> BaseException:
        return self.error

    def unwrap(self) -> NoReturn:
        raise self.error


def capture(fn: Callable[..., T], *args: Any, **kwargs: Any) -> Result[T]:
    """Run ``fn`` and wrap its return value or raised exception."""
    try:
        return Ok(fn(*args, **kwargs))
    except Exception as exc:
        return Err(exc)


FrozenDict = frozendict


__all__ = [
    "Err",
    "FrozenDict",
    "Ok",
    "Result",
    "capture",
]
