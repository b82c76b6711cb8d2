"""
Data models for resource scoring.

This module contains the dataclasses used throughout the resources package.
It has no internal dependencies beyond the loading mode enum so that it can
serve as a stable foundation layer.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import List, Optional

from ..modes import LoadingMode

UNLIMITED_MEMORY = -1
UNLIMITED_TIME = 0


@dataclass(frozen=True)
class ResourceSnapshot:
    """Resources available to the current invocation.

    memory_limit_bytes is -1 when unlimited and execution_time_limit_seconds
    is 0 when unlimited. Timestamp and load average are informational and do
    not take part in equality, so equal limits always score the same.
    """

    memory_limit_bytes: int
    memory_used_bytes: int
    execution_time_limit_seconds: float
    runtime_version: str
    timestamp: float = field(default_factory=time.time, compare=False)
    load_average: Optional[float] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        for name in ("memory_limit_bytes", "memory_used_bytes", "execution_time_limit_seconds"):
            value = getattr(self, name)
            if value < -1:
                raise ValueError(f"{name} must be >= -1, got {value}")
        if self.memory_used_bytes < 0:
            raise ValueError(f"memory_used_bytes must be >= 0, got {self.memory_used_bytes}")

    @property
    def memory_unlimited(self) -> bool:
        return self.memory_limit_bytes == UNLIMITED_MEMORY

    @property
    def execution_unlimited(self) -> bool:
        return self.execution_time_limit_seconds <= UNLIMITED_TIME

    @property
    def memory_headroom_bytes(self) -> int:
        """Free memory below the limit, -1 when unlimited."""
        if self.memory_unlimited:
            return UNLIMITED_MEMORY
        return max(0, self.memory_limit_bytes - self.memory_used_bytes)

    @property
    def memory_headroom_mb(self) -> Optional[float]:
        if self.memory_unlimited:
            return None
        return self.memory_headroom_bytes / (1024 * 1024)

    def to_dict(self) -> dict:
        return {
            "memory_limit_bytes": self.memory_limit_bytes,
            "memory_used_bytes": self.memory_used_bytes,
            "memory_headroom_bytes": self.memory_headroom_bytes,
            "execution_time_limit_seconds": self.execution_time_limit_seconds,
            "runtime_version": self.runtime_version,
            "load_average": self.load_average,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ResourceScore:
    """Score in [0, 100] and the loading mode it maps to."""

    score: int
    mode: LoadingMode
    memory_penalty: int = 0
    execution_penalty: int = 0
    runtime_penalty: int = 0


@dataclass
class ConstraintFinding:
    """One resource dimension that lowered the score."""

    dimension: str  # "memory", "execution_time", "runtime_version"
    observed: str
    penalty: int
    required: str
    unlocks: LoadingMode


@dataclass
class ModeExplanation:
    """Why a snapshot maps to its mode and what would lift it."""

    score: ResourceScore
    findings: List[ConstraintFinding] = field(default_factory=list)

    @property
    def constrained(self) -> bool:
        return bool(self.findings)

    def summary(self) -> str:
        head = f"Loading mode {self.score.mode.label} (score {self.score.score}/100)."
        if not self.findings:
            return head
        parts = [
            f"{finding.dimension.replace('_', ' ')} is {finding.observed}; "
            f"raising it to {finding.required} would allow {finding.unlocks.label}"
            for finding in self.findings
        ]
        return head + " Constrained by " + "; ".join(parts) + "."
