"""
Progressive feature scheduler.

`advance` is the single transition function of the installation. Organic
invocations and the deferred continuation task both go through it, so an
installation makes the same progress whichever trigger fires first.

Each call activates the fixed core features (if not yet active) and then at
most one batch of selected features. Batch size depends on the loading mode
and on the execution time budget. A feature is attempted at most
`max_attempts` times across all invocations before it is skipped for good,
so a permanently broken feature can never block the queue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional

from ..config.scheduling import SchedulingSettings
from ..exceptions import (
    BatchFailureError,
    CoreActivationError,
    ExecutionContext,
    FeatureActivationError,
    InvalidStateTransitionError,
    RUNTIME_FAILURES,
    SchedulerInfrastructureError,
)
from ..logger import BootstrapLogger, emit_event
from ..modes import LoadingMode
from ..resources.data_models import ResourceSnapshot
from ..state.installation_state import InstallationState, InstallationStatus, utcnow
from ..utils import time_block
from .registry import (
    ActivationOutcome,
    ActivationResult,
    ActivationStatus,
    FeatureActivationRecord,
    FeatureRegistry,
)

logger = logging.getLogger(__name__)


class InvocationTrigger(str, Enum):
    """What caused an invocation."""
    ORGANIC = "organic"
    DEFERRED = "deferred"
    OPERATOR = "operator"


@dataclass
class SchedulerResult:
    """Outcome of one `advance` call."""

    state: InstallationState
    mode: LoadingMode
    trigger: InvocationTrigger
    batch_size: Optional[int] = None
    records: List[FeatureActivationRecord] = field(default_factory=list)
    halted_reason: Optional[str] = None
    escalation: Optional[SchedulerInfrastructureError] = None
    completed: bool = False

    @property
    def needs_continuation(self) -> bool:
        """Work remains and this mode is allowed to make progress on it."""
        return self.state.has_pending_work and self.batch_size != 0

    @property
    def activated(self) -> List[str]:
        return [r.feature_id for r in self.records if r.outcome == ActivationOutcome.SUCCESS]

    @property
    def failed(self) -> List[str]:
        return [r.feature_id for r in self.records if r.outcome != ActivationOutcome.SUCCESS]


def _unique(features: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for feature in features:
        if feature not in seen:
            seen.add(feature)
            ordered.append(feature)
    return ordered


class ProgressiveFeatureScheduler:
    """Drives the installation state machine one batch at a time."""

    def __init__(
        self,
        registry: FeatureRegistry,
        settings: Optional[SchedulingSettings] = None,
        *,
        default_features: Optional[List[str]] = None,
        known_features: Optional[List[str]] = None,
        event_logger: Optional[BootstrapLogger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.registry = registry
        self.settings = settings or SchedulingSettings()
        self.default_features = list(default_features or [])
        self.known_features = set(known_features) if known_features is not None else None
        self.event_logger = event_logger
        self._clock = clock

    # ------------------------------------------------------------------
    # Transition function
    # ------------------------------------------------------------------

    def advance(
        self,
        state: InstallationState,
        mode: LoadingMode,
        snapshot: ResourceSnapshot,
        trigger: InvocationTrigger = InvocationTrigger.ORGANIC,
    ) -> SchedulerResult:
        """Run at most one batch of work for `state` under `mode`.

        Mutates `state` in place; the caller persists it. A call with nothing
        to do leaves `state` unchanged.
        """
        result = SchedulerResult(state=state, mode=mode, trigger=trigger)

        if state.status == InstallationStatus.FAILED:
            result.halted_reason = "installation failed; operator reset required"
            return result

        if state.status == InstallationStatus.NOT_STARTED:
            if state.wizard_skipped or self.settings.skip_wizard:
                self.skip_wizard(state)
            else:
                state.transition_to(InstallationStatus.WIZARD_REQUIRED)
                state.touch(self._clock())
                result.halted_reason = "guided setup required"
                return result

        if state.status == InstallationStatus.WIZARD_REQUIRED:
            result.halted_reason = "guided setup required"
            return result

        if state.status == InstallationStatus.COMPLETE:
            if not self._reconcile(state):
                return result

        result.batch_size = self.effective_batch_size(mode, snapshot)

        if not self._activate_core(state, result):
            state.touch(self._clock())
            return result

        self._run_batch(state, result)

        if not state.pending_features:
            state.transition_to(InstallationStatus.COMPLETE)
            result.completed = True
            emit_event(logger, self.event_logger, "info", "Installation complete", status=state.status.value,
                       activated=len(state.activated_features), skipped=len(state.skipped_features))

        # Idle calls leave the record unchanged
        if result.records or result.completed:
            state.touch(self._clock())
        return result

    def effective_batch_size(self, mode: LoadingMode, snapshot: ResourceSnapshot) -> Optional[int]:
        """Features allowed per invocation; None for unbounded."""
        return self.settings.batch_size_for(mode, snapshot.execution_time_limit_seconds)

    # ------------------------------------------------------------------
    # Operator transitions
    # ------------------------------------------------------------------

    def acknowledge(
        self,
        state: InstallationState,
        features: Iterable[str],
        mode_ceiling: Optional[LoadingMode] = None,
    ) -> InstallationState:
        """Record the guided setup choices and start installing."""
        if state.status not in (InstallationStatus.NOT_STARTED, InstallationStatus.WIZARD_REQUIRED):
            raise InvalidStateTransitionError(state.status.value, InstallationStatus.IN_PROGRESS.value)

        selected = self._selectable(features)
        state.selected_features = selected
        state.pending_features = [f for f in selected if not state.is_settled(f)]
        state.mode_ceiling = mode_ceiling
        state.transition_to(InstallationStatus.IN_PROGRESS)
        state.touch(self._clock())
        emit_event(logger, self.event_logger, "info", "Guided setup acknowledged", selected=selected,
                   mode_ceiling=mode_ceiling.value if mode_ceiling else None)
        return state

    def skip_wizard(self, state: InstallationState) -> InstallationState:
        """Start installing without guided setup.

        Uses the previously selected features when there are any (after a
        reset), otherwise the catalog defaults.
        """
        if state.status not in (InstallationStatus.NOT_STARTED, InstallationStatus.WIZARD_REQUIRED):
            raise InvalidStateTransitionError(state.status.value, InstallationStatus.IN_PROGRESS.value)

        if not state.selected_features:
            state.selected_features = self._selectable(self.default_features)
        state.pending_features = [f for f in state.selected_features if not state.is_settled(f)]
        state.wizard_skipped = True
        state.transition_to(InstallationStatus.IN_PROGRESS)
        state.touch(self._clock())
        emit_event(logger, self.event_logger, "info", "Guided setup skipped", selected=state.selected_features)
        return state

    def enable_features(self, state: InstallationState, features: Iterable[str]) -> List[str]:
        """Add features after setup, or retry previously skipped ones.

        Returns the features that were queued.
        """
        if state.status not in (InstallationStatus.IN_PROGRESS, InstallationStatus.COMPLETE):
            raise InvalidStateTransitionError(state.status.value, InstallationStatus.IN_PROGRESS.value)

        queued = []
        for feature in self._selectable(features):
            if feature in state.activated_features or feature in state.pending_features:
                continue
            if feature not in state.selected_features:
                state.selected_features.append(feature)
            if feature in state.skipped_features:
                state.skipped_features.remove(feature)
                state.attempts.pop(feature, None)
            state.pending_features.append(feature)
            queued.append(feature)

        if queued and state.status == InstallationStatus.COMPLETE:
            state.transition_to(InstallationStatus.IN_PROGRESS)
        state.touch(self._clock())
        return queued

    def reset(self, state: InstallationState) -> InstallationState:
        """Return a fresh record that re-queues the previously selected features."""
        selected = list(state.selected_features)
        fresh = InstallationState(
            selected_features=selected,
            pending_features=list(selected),
            revision=state.revision,
        )
        fresh.touch(self._clock())
        emit_event(logger, self.event_logger, "warning", "Installation reset",
                   previous_status=state.status.value, selected=selected)
        return fresh

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _selectable(self, features: Iterable[str]) -> List[str]:
        selected = [f for f in _unique(features) if f not in self.settings.core_features]
        if self.known_features is not None:
            unknown = [f for f in selected if f not in self.known_features]
            if unknown:
                raise ValueError(f"Unknown features: {', '.join(unknown)}")
        return selected

    def _reconcile(self, state: InstallationState) -> bool:
        missing = [
            f for f in state.selected_features
            if not state.is_settled(f) and f not in state.pending_features
        ]
        if not missing:
            return False
        state.pending_features.extend(missing)
        state.transition_to(InstallationStatus.IN_PROGRESS)
        emit_event(logger, self.event_logger, "info", "Re-entering installation for newly selected features",
                   features=missing)
        return True

    def _activate_core(self, state: InstallationState, result: SchedulerResult) -> bool:
        for feature in self.settings.core_features:
            if feature in state.activated_features:
                continue
            record = self._activate(feature, 1)
            result.records.append(record)
            if record.outcome != ActivationOutcome.SUCCESS:
                result.escalation = CoreActivationError(
                    feature,
                    record.reason,
                    context=self._context(result.mode, state, feature),
                )
                return False
            state.activated_features.append(feature)
        return True

    def _run_batch(self, state: InstallationState, result: SchedulerResult) -> None:
        limit = result.batch_size
        if limit == 0 or not state.pending_features:
            return

        attempted = 0
        succeeded = 0
        retry_later: List[str] = []
        while state.pending_features and (limit is None or attempted < limit):
            feature = state.pending_features.pop(0)
            if state.is_settled(feature):
                continue

            attempted += 1
            attempt = state.attempts.get(feature, 0) + 1
            state.attempts[feature] = attempt
            record = self._activate(feature, attempt)

            if record.outcome == ActivationOutcome.SUCCESS:
                succeeded += 1
                state.activated_features.append(feature)
            elif record.outcome == ActivationOutcome.FAILED and attempt < self.settings.max_attempts:
                retry_later.append(feature)
            else:
                record.outcome = ActivationOutcome.SKIPPED
                state.skipped_features.append(feature)
                emit_event(logger, self.event_logger, "warning", f"Feature {feature} skipped permanently",
                           feature_id=feature, reason=record.reason, attempts=attempt)
            result.records.append(record)

        state.pending_features.extend(retry_later)

        if attempted == 0:
            return
        if succeeded:
            state.consecutive_failed_batches = 0
            return

        state.consecutive_failed_batches += 1
        if state.consecutive_failed_batches >= self.settings.consecutive_failure_limit:
            failures = state.consecutive_failed_batches
            state.consecutive_failed_batches = 0
            result.escalation = BatchFailureError(
                failures,
                context=self._context(result.mode, state),
            )

    def _activate(self, feature: str, attempt: int) -> FeatureActivationRecord:
        """Activate one feature, containing every failure except runtime exhaustion."""
        with time_block(f"activate:{feature}") as timing:
            try:
                outcome = self.registry.activate(feature)
            except RUNTIME_FAILURES:
                raise
            except FeatureActivationError as e:
                outcome = ActivationResult.recoverable_failure(e.message)
            except Exception as e:
                outcome = ActivationResult.recoverable_failure(f"{type(e).__name__}: {e}")

        if not isinstance(outcome, ActivationResult):
            outcome = ActivationResult.fatal_failure(
                f"registry returned {type(outcome).__name__} instead of an activation result"
            )

        if outcome.status == ActivationStatus.SUCCESS:
            record_outcome = ActivationOutcome.SUCCESS
        elif outcome.status == ActivationStatus.RECOVERABLE_FAILURE:
            record_outcome = ActivationOutcome.FAILED
        else:
            record_outcome = ActivationOutcome.SKIPPED

        record = FeatureActivationRecord(
            feature_id=feature,
            outcome=record_outcome,
            reason=outcome.reason,
            duration_millis=timing.elapsed_ms,
            attempt=attempt,
        )
        level = "info" if record_outcome == ActivationOutcome.SUCCESS else "warning"
        emit_event(logger, self.event_logger, level, f"Feature activation {record_outcome.value}: {feature}",
                   event="feature_activation", **record.to_dict())
        return record

    def _context(self, mode: LoadingMode, state: InstallationState, feature: Optional[str] = None) -> ExecutionContext:
        return ExecutionContext(
            component="scheduler",
            feature_id=feature,
            loading_mode=mode.value,
            installation_status=state.status.value,
        )
