"""Public effect API for dosaga."""

from __future__ import annotations

from .base import EffectBase
from .bus import Put, PutEffect, Take, TakeEffect, put, take
from .call import Call, CallEffect, call
from .context import ContextEffect, GetContext, Select, SelectEffect, get_context, select
from .task import (
    Cancel,
    CancelEffect,
    Fork,
    ForkEffect,
    Join,
    JoinEffect,
    Spawn,
    cancel,
    fork,
    join,
    spawn,
)

__all__ = [
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
]
