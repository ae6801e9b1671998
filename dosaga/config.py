"""Scheduler configuration.

Tree size and pending-take counts are unbounded unless a limit is set here.
``SchedulerConfig.from_env`` reads the same settings from ``DOSAGA_*``
environment variables.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

_TRUTHY = ("1", "true", "yes")
_FALSY = ("0", "false", "no")


def _parse_bound(raw: str | None, *, name: str) -> int | None:
    if raw is None or raw.strip() == "":
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _parse_flag(raw: str | None, *, name: str, default: bool) -> bool:
    if raw is None or raw.strip() == "":
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError(f"{name} must be one of {_TRUTHY + _FALSY}, got {raw!r}")


@dataclass(frozen=True)
class SchedulerConfig:
    """Tunable limits and diagnostics for a :class:`~dosaga.Scheduler`.

    Attributes:
        max_tasks: Upper bound on tasks held in the tree, ``None`` for unbounded.
            Finished parents count until their children finish, matching
            ``Scheduler.task_count``.
        max_pending_takes: Upper bound on outstanding takes, ``None`` for unbounded.
        warn_unobserved_failures: Log a warning when a forked task fails and
            nobody joins it.
        debug: Log every interpreted effect with its creation site.
    """

    max_tasks: int | None = None
    max_pending_takes: int | None = None
    warn_unobserved_failures: bool = True
    debug: bool = False

    def __post_init__(self) -> None:
        for name in ("max_tasks", "max_pending_takes"):
            value = getattr(self, name)
            if value is None:
                continue
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError(f"{name} must be int or None, got {type(value).__name__}")
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SchedulerConfig:
        env = os.environ if environ is None else environ
        return cls(
            max_tasks=_parse_bound(env.get("DOSAGA_MAX_TASKS"), name="DOSAGA_MAX_TASKS"),
            max_pending_takes=_parse_bound(
                env.get("DOSAGA_MAX_PENDING_TAKES"), name="DOSAGA_MAX_PENDING_TAKES"
            ),
            warn_unobserved_failures=_parse_flag(
                env.get("DOSAGA_WARN_UNOBSERVED"), name="DOSAGA_WARN_UNOBSERVED", default=True
            ),
            debug=_parse_flag(env.get("DOSAGA_DEBUG"), name="DOSAGA_DEBUG", default=False),
        )


__all__ = ["SchedulerConfig"]
