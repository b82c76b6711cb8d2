"""Scheduling settings and the feature catalog."""

from __future__ import annotations

import math
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..modes import LoadingMode


# =============================================================================
# Batch Sizes
# =============================================================================

class ModeBatchSizes(BaseModel):
    """Features activated per invocation for each loading mode.

    None means unbounded. The degraded modes must stay at zero so that only
    core features ever run there.
    """
    ultra_minimal: int = Field(default=0, ge=0, le=0)
    minimal: int = Field(default=0, ge=0, le=0)
    progressive: Optional[int] = Field(default=2, ge=1)
    standard: Optional[int] = Field(default=None, ge=1)
    full: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _check_monotonic(self) -> "ModeBatchSizes":
        sizes = [self.for_mode(mode) for mode in LoadingMode.ordered()]
        for lower, upper in zip(sizes, sizes[1:]):
            if upper is not None and (lower is None or upper < lower):
                raise ValueError("batch sizes must not shrink as the loading mode increases")
        return self

    def for_mode(self, mode: LoadingMode) -> Optional[int]:
        return getattr(self, LoadingMode(mode).value)


class SchedulingSettings(BaseModel):
    """Progressive scheduler configuration."""
    batch_sizes: ModeBatchSizes = Field(default_factory=ModeBatchSizes)
    execution_budget_fraction: float = Field(
        default=0.5, gt=0.0, le=1.0,
        description="Share of the execution time limit batches may consume",
    )
    slowest_activation_seconds: float = Field(
        default=5.0, gt=0.0,
        description="Assumed worst-case duration of a single feature activation",
    )
    max_attempts: int = Field(default=2, ge=1, le=10, description="Activation attempts before a feature is skipped")
    consecutive_failure_limit: int = Field(
        default=2, ge=1, le=10,
        description="Fully failed batches in a row before the supervisor is engaged",
    )
    core_features: List[str] = Field(default_factory=lambda: ["core"])
    deferred_delay_seconds: int = Field(default=30, ge=1, le=3600)
    continuation_task_id: str = Field(default="bootguard.continue_installation", min_length=1)
    skip_wizard: bool = Field(default=False, description="Skip guided setup and install catalog defaults")

    @field_validator("core_features")
    @classmethod
    def _unique_core(cls, value: List[str]) -> List[str]:
        if len(set(value)) != len(value):
            raise ValueError("core_features must be unique")
        return value

    def batch_size_for(self, mode: LoadingMode, execution_limit_seconds: float) -> Optional[int]:
        """Batch size for `mode`, capped by the execution time budget.

        Returns None for an unbounded batch.
        """
        size = self.batch_sizes.for_mode(mode)
        if size == 0:
            return 0
        if execution_limit_seconds and execution_limit_seconds > 0:
            budget = math.floor(
                execution_limit_seconds * self.execution_budget_fraction / self.slowest_activation_seconds
            )
            budget = max(budget, 1)
            size = budget if size is None else min(size, budget)
        return size


# =============================================================================
# Feature Catalog
# =============================================================================

class FeatureDefinition(BaseModel):
    """A selectable feature offered during guided setup."""
    id: str = Field(..., min_length=1)
    title: str = ""
    description: str = ""
    default_enabled: bool = False


def _default_catalog() -> List[FeatureDefinition]:
    return [
        FeatureDefinition(id="bookings", title="Booking management", default_enabled=True,
                          description="Core booking and reservation handling"),
        FeatureDefinition(id="resources", title="Resources", default_enabled=True,
                          description="Guides, equipment and vehicle allocation"),
        FeatureDefinition(id="reviews", title="Reviews", default_enabled=True,
                          description="Customer review collection"),
        FeatureDefinition(id="distribution", title="Distribution channels",
                          description="External booking channel synchronisation"),
        FeatureDefinition(id="commissions", title="Commissions",
                          description="Reseller commission tracking"),
        FeatureDefinition(id="analytics", title="Analytics",
                          description="Reporting and dashboards"),
        FeatureDefinition(id="automations", title="Automations",
                          description="Scheduled reminders and follow-ups"),
    ]
