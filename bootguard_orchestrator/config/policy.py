"""Resource scoring policy tables.

Every threshold used to turn a resource snapshot into a loading mode lives
here so that it can be tuned per hosting environment without touching the
scoring algorithm.
"""

from __future__ import annotations

from typing import List, Tuple

from pydantic import BaseModel, Field, model_validator

from ..modes import LoadingMode


# =============================================================================
# Penalty Tiers
# =============================================================================

class MemoryHeadroomTier(BaseModel):
    """Penalty applied when memory headroom is at least `min_headroom_mb`."""
    min_headroom_mb: float = Field(..., ge=0.0, description="Lower bound of this tier in MB")
    penalty: int = Field(..., ge=0, le=100, description="Points subtracted from the score")


class ExecutionTimeTier(BaseModel):
    """Penalty applied when the execution time limit is at least `min_seconds`."""
    min_seconds: float = Field(..., ge=0.0, description="Lower bound of this tier in seconds")
    penalty: int = Field(..., ge=0, le=100, description="Points subtracted from the score")


def _default_memory_tiers() -> List[MemoryHeadroomTier]:
    return [
        MemoryHeadroomTier(min_headroom_mb=256.0, penalty=0),
        MemoryHeadroomTier(min_headroom_mb=128.0, penalty=15),
        MemoryHeadroomTier(min_headroom_mb=64.0, penalty=25),
        MemoryHeadroomTier(min_headroom_mb=32.0, penalty=40),
        MemoryHeadroomTier(min_headroom_mb=0.0, penalty=50),
    ]


def _default_execution_tiers() -> List[ExecutionTimeTier]:
    return [
        ExecutionTimeTier(min_seconds=120.0, penalty=0),
        ExecutionTimeTier(min_seconds=60.0, penalty=10),
        ExecutionTimeTier(min_seconds=30.0, penalty=20),
        ExecutionTimeTier(min_seconds=15.0, penalty=28),
        ExecutionTimeTier(min_seconds=0.0, penalty=35),
    ]


def _validate_tiers(tiers, bound_attr: str, label: str) -> None:
    if not tiers:
        raise ValueError(f"{label} must define at least one tier")
    bounds = [getattr(tier, bound_attr) for tier in tiers]
    if bounds != sorted(bounds, reverse=True) or len(set(bounds)) != len(bounds):
        raise ValueError(f"{label} must be sorted by strictly decreasing {bound_attr}")
    if bounds[-1] != 0.0:
        raise ValueError(f"{label} must end with a tier starting at 0 so every value is covered")
    penalties = [tier.penalty for tier in tiers]
    if penalties != sorted(penalties):
        raise ValueError(f"{label} penalties must not decrease as headroom shrinks")


# =============================================================================
# Runtime Version
# =============================================================================

class RuntimeVersionPolicy(BaseModel):
    """Runtime version requirements."""
    supported: str = Field(default="3.10", description="Runtime version with no penalty")
    minimum_viable: str = Field(default="3.8", description="Oldest runtime that can run at all")
    below_supported_penalty: int = Field(default=10, ge=0, le=100)
    below_minimum_penalty: int = Field(default=20, ge=0, le=100)
    unknown_penalty: int = Field(default=0, ge=0, le=100, description="Penalty when the version cannot be read")

    @model_validator(mode="after")
    def _check_order(self) -> "RuntimeVersionPolicy":
        if parse_version(self.minimum_viable) > parse_version(self.supported):
            raise ValueError("minimum_viable runtime must not be newer than supported")
        if self.below_minimum_penalty < self.below_supported_penalty:
            raise ValueError("below_minimum_penalty must be at least below_supported_penalty")
        return self


def parse_version(value: str) -> Tuple[int, ...]:
    """Parse a dotted version string into a tuple, ignoring non-numeric suffixes.

    Raises ValueError when no numeric component can be read.
    """
    parts = []
    for chunk in str(value).strip().split("."):
        digits = ""
        for char in chunk:
            if not char.isdigit():
                break
            digits += char
        if not digits:
            break
        parts.append(int(digits))
    if not parts:
        raise ValueError(f"Unparseable version: {value!r}")
    return tuple(parts)


# =============================================================================
# Mode Breakpoints
# =============================================================================

class ModeBreakpoints(BaseModel):
    """Score breakpoints; a score below a breakpoint maps to that mode."""
    ultra_minimal_below: int = Field(default=20, ge=0, le=100)
    minimal_below: int = Field(default=40, ge=0, le=100)
    progressive_below: int = Field(default=60, ge=0, le=100)
    standard_below: int = Field(default=85, ge=0, le=101)

    @model_validator(mode="after")
    def _check_increasing(self) -> "ModeBreakpoints":
        values = [
            self.ultra_minimal_below,
            self.minimal_below,
            self.progressive_below,
            self.standard_below,
        ]
        if any(lower >= upper for lower, upper in zip(values, values[1:])):
            raise ValueError("mode breakpoints must be strictly increasing")
        return self

    def mode_for(self, score: int) -> LoadingMode:
        if score < self.ultra_minimal_below:
            return LoadingMode.ULTRA_MINIMAL
        if score < self.minimal_below:
            return LoadingMode.MINIMAL
        if score < self.progressive_below:
            return LoadingMode.PROGRESSIVE
        if score < self.standard_below:
            return LoadingMode.STANDARD
        return LoadingMode.FULL

    def lower_bound(self, mode: LoadingMode) -> int:
        """Lowest score that maps to `mode`."""
        bounds = {
            LoadingMode.ULTRA_MINIMAL: 0,
            LoadingMode.MINIMAL: self.ultra_minimal_below,
            LoadingMode.PROGRESSIVE: self.minimal_below,
            LoadingMode.STANDARD: self.progressive_below,
            LoadingMode.FULL: self.standard_below,
        }
        return bounds[mode]


class ScoringPolicy(BaseModel):
    """Complete scoring policy for the resource scorer."""
    memory_tiers: List[MemoryHeadroomTier] = Field(default_factory=_default_memory_tiers)
    execution_tiers: List[ExecutionTimeTier] = Field(default_factory=_default_execution_tiers)
    runtime: RuntimeVersionPolicy = Field(default_factory=RuntimeVersionPolicy)
    breakpoints: ModeBreakpoints = Field(default_factory=ModeBreakpoints)

    @model_validator(mode="after")
    def _check_tiers(self) -> "ScoringPolicy":
        _validate_tiers(self.memory_tiers, "min_headroom_mb", "memory_tiers")
        _validate_tiers(self.execution_tiers, "min_seconds", "execution_tiers")
        return self
