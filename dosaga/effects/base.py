"""
Base class for effect descriptors.

Every descriptor is a frozen dataclass deriving from :class:`EffectBase`. The
``created_at`` field records where the descriptor was built and is ignored by
equality, so two ``Take("LOGIN")`` values compare equal wherever they came from.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TypeVar

from dosaga.utils import EffectCreationContext, create_effect_with_trace

E = TypeVar("E", bound="EffectBase")


@dataclass(frozen=True)
class EffectBase:
    """Base dataclass for everything a routine may yield."""

    created_at: EffectCreationContext | None = field(
        default=None, compare=False, repr=False, kw_only=True
    )

    def with_created_at(self: E, created_at: EffectCreationContext | None) -> E:
        if created_at is self.created_at:
            return self
        return replace(self, created_at=created_at)

    def describe_origin(self) -> str:
        if self.created_at is None:
            return "<unknown>"
        return self.created_at.format_location()


__all__ = ["EffectBase", "create_effect_with_trace"]
