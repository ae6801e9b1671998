"""Runtime validators for effect attribute type checking."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def _type_name(value: object) -> str:
    return type(value).__name__


def ensure_callable(value: object, *, name: str) -> None:
    if not callable(value):
        raise TypeError(f"{name} must be callable, got {_type_name(value)}")


def ensure_optional_callable(value: object | None, *, name: str) -> None:
    if value is not None and not callable(value):
        raise TypeError(f"{name} must be callable or None, got {_type_name(value)}")


def ensure_tuple(value: object, *, name: str) -> None:
    if not isinstance(value, tuple):
        raise TypeError(f"{name} must be tuple, got {_type_name(value)}")


def ensure_str_keys(value: object, *, name: str) -> None:
    if not isinstance(value, Mapping):
        raise TypeError(f"{name} must be a mapping, got {_type_name(value)}")
    for key in value:
        if not isinstance(key, str):
            raise TypeError(f"{name} keys must be str, got {_type_name(key)}")


def ensure_task_handle(value: object, *, name: str, optional: bool = False) -> None:
    from dosaga.task import TaskHandle

    if value is None and optional:
        return
    if not isinstance(value, TaskHandle):
        expected = "TaskHandle or None" if optional else "TaskHandle"
        raise TypeError(f"{name} must be {expected}, got {_type_name(value)}")


def ensure_not_none(value: Any, *, name: str) -> None:
    if value is None:
        raise TypeError(f"{name} must not be None")


__all__ = [
    "ensure_callable",
    "ensure_not_none",
    "ensure_optional_callable",
    "ensure_str_keys",
    "ensure_task_handle",
    "ensure_tuple",
]
