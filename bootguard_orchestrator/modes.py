"""
Loading modes, ordered from the cheapest fallback to full initialization.

This module has no internal dependencies so that configuration models,
resource scoring and persisted state can all share it.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional


class LoadingMode(str, Enum):
    """How much initialization work an invocation may perform.

    Modes are totally ordered:
        ULTRA_MINIMAL < MINIMAL < PROGRESSIVE < STANDARD < FULL

    Values are persisted as lowercase strings.
    """
    ULTRA_MINIMAL = "ultra_minimal"
    MINIMAL = "minimal"
    PROGRESSIVE = "progressive"
    STANDARD = "standard"
    FULL = "full"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def __lt__(self, other):
        if not isinstance(other, LoadingMode):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, LoadingMode):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, LoadingMode):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, LoadingMode):
            return NotImplemented
        return self.rank >= other.rank

    def downgrade(self) -> Optional["LoadingMode"]:
        """Return the next cheaper mode, or None at ULTRA_MINIMAL."""
        if self.rank == 0:
            return None
        return _ORDER[self.rank - 1]

    @property
    def is_degraded(self) -> bool:
        """Modes that never activate features beyond the fixed core."""
        return self.rank <= _RANKS[LoadingMode.MINIMAL]

    @property
    def label(self) -> str:
        return self.value.replace("_", "-")

    @classmethod
    def ordered(cls) -> list:
        return list(_ORDER)

    @classmethod
    def lowest(cls, modes: Iterable[Optional["LoadingMode"]]) -> "LoadingMode":
        """Return the cheapest of the given modes, ignoring None entries."""
        present = [mode for mode in modes if mode is not None]
        if not present:
            raise ValueError("at least one loading mode is required")
        return min(present, key=lambda mode: mode.rank)


_ORDER = (
    LoadingMode.ULTRA_MINIMAL,
    LoadingMode.MINIMAL,
    LoadingMode.PROGRESSIVE,
    LoadingMode.STANDARD,
    LoadingMode.FULL,
)
_RANKS = {mode: index for index, mode in enumerate(_ORDER)}
