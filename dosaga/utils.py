"""
Utility functions for the dosaga library.
"""

from __future__ import annotations

import linecache
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from dosaga.effects.base import EffectBase


@dataclass(frozen=True)
class EffectCreationContext:
    """Where an effect descriptor was created."""

    filename: str
    line: int
    function: str
    code: str | None = None

    def format_location(self) -> str:
        return f"{self.filename}:{self.line} in {self.function}"


def _is_dosaga_internal(path: str) -> bool:
    normalized = path.replace("\\", "/").lower()
    return "/dosaga/" in normalized and "/tests/" not in normalized


def capture_creation_context(skip_frames: int = 2) -> EffectCreationContext | None:
    """
    Capture the caller's location for debugging effect creation.

    Args:
        skip_frames: Number of frames to skip (default 2 to skip this function and caller)

    Returns:
        EffectCreationContext for the first frame outside dosaga, or None when
        frame introspection is unavailable.
    """
    try:
        frame = sys._getframe(skip_frames)
    except ValueError:
        return None

    # Skip helper layers such as dosaga.helpers so the location points at user code.
    while frame.f_back is not None and _is_dosaga_internal(frame.f_code.co_filename):
        frame = frame.f_back

    filename = frame.f_code.co_filename
    line = frame.f_lineno
    code = linecache.getline(filename, line).strip() or None
    return EffectCreationContext(
        filename=filename,
        line=line,
        function=frame.f_code.co_name,
        code=code,
    )


E = TypeVar("E", bound="EffectBase")


def create_effect_with_trace(effect: E, skip_frames: int = 3) -> E:
    """Attach creation context metadata to an effect instance."""

    from dosaga.effects.base import EffectBase

    if not isinstance(effect, EffectBase):
        raise TypeError(f"Expected EffectBase, got {type(effect)!r}")

    created_at = capture_creation_context(skip_frames=skip_frames)
    return effect.with_created_at(created_at)


__all__ = [
    "EffectCreationContext",
    "capture_creation_context",
    "create_effect_with_trace",
]
