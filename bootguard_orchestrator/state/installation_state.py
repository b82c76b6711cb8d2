"""
Persisted installation state.

One InstallationState exists per deployment. It is persisted as a single
JSON blob and mutated only by the scheduler and the supervisor; operator
actions go through the scheduler's transition helpers.

Models:
- InstallationStatus: Enum for the installation lifecycle
- InstallationState: The persisted record with its invariants
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from ..exceptions import InvalidStateTransitionError, StateInvariantError
from ..modes import LoadingMode


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InstallationStatus(str, Enum):
    """State machine for the installation lifecycle.

    States:
        NOT_STARTED: Nothing has run yet
        WIZARD_REQUIRED: Waiting for the operator to finish guided setup
        IN_PROGRESS: Selected features are being activated batch by batch
        COMPLETE: Every selected feature was activated or skipped
        FAILED: Automatic recovery gave up, operator reset required

    State Transitions:
        NOT_STARTED → WIZARD_REQUIRED (first invocation)
        NOT_STARTED → IN_PROGRESS (guided setup skipped)
        WIZARD_REQUIRED → IN_PROGRESS (operator acknowledgement)
        IN_PROGRESS → COMPLETE (pending queue empty)
        COMPLETE → IN_PROGRESS (new features selected)
        any → FAILED (failure at the lowest loading mode)
        any → NOT_STARTED (operator reset only)
    """
    NOT_STARTED = "not_started"
    WIZARD_REQUIRED = "wizard_required"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    FAILED = "failed"


ALLOWED_TRANSITIONS: Dict[InstallationStatus, frozenset] = {
    InstallationStatus.NOT_STARTED: frozenset({
        InstallationStatus.WIZARD_REQUIRED,
        InstallationStatus.IN_PROGRESS,
        InstallationStatus.FAILED,
    }),
    InstallationStatus.WIZARD_REQUIRED: frozenset({
        InstallationStatus.IN_PROGRESS,
        InstallationStatus.FAILED,
    }),
    InstallationStatus.IN_PROGRESS: frozenset({
        InstallationStatus.COMPLETE,
        InstallationStatus.FAILED,
    }),
    InstallationStatus.COMPLETE: frozenset({
        InstallationStatus.IN_PROGRESS,
        InstallationStatus.FAILED,
    }),
    InstallationStatus.FAILED: frozenset(),
}


class InstallationState(BaseModel):
    """The persisted installation record.

    Invariants:
        - selected_features and pending_features contain no duplicates
        - every pending feature is selected
        - a complete installation has nothing pending
    """
    status: InstallationStatus = InstallationStatus.NOT_STARTED
    effective_mode: Optional[LoadingMode] = Field(
        default=None, description="Highest mode allowed; only lowered automatically"
    )
    selected_features: List[str] = Field(default_factory=list)
    pending_features: List[str] = Field(default_factory=list)
    last_activity_at: Optional[datetime] = None

    activated_features: List[str] = Field(default_factory=list)
    skipped_features: List[str] = Field(default_factory=list)
    attempts: Dict[str, int] = Field(default_factory=dict)
    consecutive_failed_batches: int = Field(default=0, ge=0)

    mode_ceiling: Optional[LoadingMode] = Field(default=None, description="Operator-chosen loading mode")
    wizard_skipped: bool = False
    last_notified_mode: Optional[LoadingMode] = None
    failure_reason: Optional[str] = None
    revision: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _validate_invariants(self) -> "InstallationState":
        self.check_invariants()
        return self

    def check_invariants(self) -> None:
        if len(set(self.selected_features)) != len(self.selected_features):
            raise StateInvariantError("selected_features contains duplicates")
        if len(set(self.pending_features)) != len(self.pending_features):
            raise StateInvariantError("pending_features contains duplicates")
        stray = [f for f in self.pending_features if f not in self.selected_features]
        if stray:
            raise StateInvariantError(
                f"pending features are not selected: {', '.join(stray)}"
            )
        if self.status == InstallationStatus.COMPLETE and self.pending_features:
            raise StateInvariantError("a complete installation cannot have pending features")

    def can_transition_to(self, target: InstallationStatus) -> bool:
        return target == self.status or target in ALLOWED_TRANSITIONS[self.status]

    def transition_to(self, target: InstallationStatus) -> None:
        """Move to `target`, raising InvalidStateTransitionError if forbidden."""
        if not self.can_transition_to(target):
            raise InvalidStateTransitionError(self.status.value, target.value)
        self.status = target

    def lower_effective_mode(self, mode: LoadingMode) -> bool:
        """Record `mode` if it is below the current effective mode."""
        if self.effective_mode is None or mode < self.effective_mode:
            self.effective_mode = mode
            return True
        return False

    def touch(self, now: Optional[datetime] = None) -> None:
        self.last_activity_at = now or utcnow()

    def is_settled(self, feature_id: str) -> bool:
        """True once a feature was activated or permanently skipped."""
        return feature_id in self.activated_features or feature_id in self.skipped_features

    @property
    def has_pending_work(self) -> bool:
        return self.status == InstallationStatus.IN_PROGRESS and bool(self.pending_features)

    def progress(self) -> Dict[str, int]:
        settled = [f for f in self.selected_features if self.is_settled(f)]
        return {
            "selected": len(self.selected_features),
            "settled": len(settled),
            "pending": len(self.pending_features),
            "skipped": len([f for f in self.skipped_features if f in self.selected_features]),
        }
