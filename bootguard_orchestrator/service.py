"""
Bootstrap service.

Composes the probe, scorer, state repository, scheduler, supervisor and fatal
trap into the operations a host application calls:

- run_invocation: one bootstrap step, from an organic invocation or the
  deferred continuation task
- acknowledge_setup, skip_setup, enable_features, reset_installation: the
  operator control surface
- status and assess: read-only views for operators
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .config.loader import BootguardConfig
from .exceptions import RUNTIME_FAILURES, BootguardError
from .fatal_trap import FatalTrap
from .logger import BootstrapLogger, emit_event
from .modes import LoadingMode
from .notifications import NotificationLevel, NotificationSink, SafeNotificationSink
from .resources.data_models import ModeExplanation, ResourceScore, ResourceSnapshot
from .resources.probe import EnvironmentProbe
from .resources.scorer import ResourceScorer
from .scheduling.registry import FeatureRegistry
from .scheduling.scheduler import InvocationTrigger, ProgressiveFeatureScheduler, SchedulerResult
from .scheduling.task_queue import TaskQueue
from .state.installation_state import InstallationState, InstallationStatus
from .state.repository import InstallationStateRepository
from .state.stores import ConfigStore
from .supervisor import DegradedModeSupervisor, describe_error

logger = logging.getLogger(__name__)


@dataclass
class InvocationReport:
    """What one invocation did."""

    invocation_id: str
    trigger: InvocationTrigger
    snapshot: Optional[ResourceSnapshot] = None
    score: Optional[ResourceScore] = None
    recommended_mode: Optional[LoadingMode] = None
    effective_mode: Optional[LoadingMode] = None
    status: Optional[InstallationStatus] = None
    activated: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    halted_reason: Optional[str] = None
    skipped_reason: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    continuation_scheduled: bool = False
    tripped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invocation_id": self.invocation_id,
            "trigger": self.trigger.value,
            "score": self.score.score if self.score else None,
            "recommended_mode": self.recommended_mode.value if self.recommended_mode else None,
            "effective_mode": self.effective_mode.value if self.effective_mode else None,
            "status": self.status.value if self.status else None,
            "activated": self.activated,
            "failed": self.failed,
            "halted_reason": self.halted_reason,
            "skipped_reason": self.skipped_reason,
            "errors": self.errors,
            "continuation_scheduled": self.continuation_scheduled,
            "tripped": self.tripped,
        }


@dataclass
class StatusReport:
    state: InstallationState
    disabled_flag: Optional[Dict[str, Any]] = None
    continuation_scheduled: Optional[bool] = None

    @property
    def disabled(self) -> bool:
        return self.disabled_flag is not None


class BootstrapService:
    """Entry point for host applications and the operator CLI."""

    def __init__(
        self,
        config: BootguardConfig,
        *,
        store: ConfigStore,
        task_queue: TaskQueue,
        registry: FeatureRegistry,
        notifier: NotificationSink,
        probe: Optional[EnvironmentProbe] = None,
        event_logger: Optional[BootstrapLogger] = None,
        register_exit_hook: bool = True,
    ):
        self.config = config
        self.store = store
        self.task_queue = task_queue
        self.notifier = notifier if isinstance(notifier, SafeNotificationSink) else SafeNotificationSink(notifier)
        self.probe = probe or EnvironmentProbe()
        self.event_logger = event_logger

        self.repository = InstallationStateRepository(store, key=config.storage.state_key)
        self.scheduler = ProgressiveFeatureScheduler(
            registry,
            config.scheduling,
            default_features=config.default_features(),
            known_features=config.feature_ids(),
            event_logger=event_logger,
        )
        self.supervisor = DegradedModeSupervisor(self.repository, self.notifier, event_logger)
        self.trap = FatalTrap(
            store,
            self.notifier,
            flag_key=config.storage.disabled_flag_key,
            event_logger=event_logger,
            register_exit_hook=register_exit_hook,
        )

    # ------------------------------------------------------------------
    # Invocations
    # ------------------------------------------------------------------

    def run_invocation(self, trigger: InvocationTrigger = InvocationTrigger.ORGANIC) -> InvocationReport:
        """Run one bootstrap step. Never raises into the host."""
        report = InvocationReport(invocation_id=str(uuid.uuid4())[:8], trigger=InvocationTrigger(trigger))

        with self.trap.guard(report.invocation_id):
            if self.trap.is_disabled():
                report.skipped_reason = "bootstrap disabled after a fatal runtime failure; reset required"
                emit_event(logger, self.event_logger, "warning", report.skipped_reason,
                           invocation_id=report.invocation_id)
                return report

            snapshot = self.probe.snapshot()
            scorer = ResourceScorer(self.config.scoring)
            score = scorer.score(snapshot)
            report.snapshot = snapshot
            report.score = score
            report.recommended_mode = score.mode

            requested = LoadingMode.lowest([score.mode, *self._recorded_modes()])
            emit_event(logger, self.event_logger, "info",
                       f"Invocation {report.invocation_id} starting in {requested.value} mode",
                       event="mode_decision", invocation_id=report.invocation_id, trigger=report.trigger.value,
                       score=score.score, recommended_mode=score.mode.value, effective_mode=requested.value,
                       snapshot=snapshot.to_dict())

            explanation = scorer.explain(snapshot)

            def work(mode: LoadingMode) -> SchedulerResult:
                return self._advance(mode, snapshot, report.trigger, explanation)

            outcome = self.supervisor.run_with_fallback(requested, work)
            report.effective_mode = outcome.final_mode
            report.errors = list(outcome.errors)

            result: Optional[SchedulerResult] = outcome.value
            if result is not None:
                report.status = result.state.status
                report.activated = result.activated
                report.failed = result.failed
                report.halted_reason = result.halted_reason
                report.continuation_scheduled = self._sync_continuation(result)
            elif outcome.failed:
                report.status = InstallationStatus.FAILED

        report.tripped = self.trap.tripped
        return report

    def handle_deferred_task(self, task_id: str) -> Optional[InvocationReport]:
        """Entry point for the deferred task queue."""
        if task_id != self.config.scheduling.continuation_task_id:
            logger.warning("Ignoring unknown deferred task %s", task_id)
            return None
        return self.run_invocation(InvocationTrigger.DEFERRED)

    def run_due_tasks(self, now: Optional[float] = None) -> List[InvocationReport]:
        reports = []
        for task_id in self.task_queue.pop_due(now):
            report = self.handle_deferred_task(task_id)
            if report is not None:
                reports.append(report)
        return reports

    # ------------------------------------------------------------------
    # Operator control surface
    # ------------------------------------------------------------------

    def acknowledge_setup(
        self,
        features: Optional[List[str]] = None,
        loading_mode: Optional[LoadingMode] = None,
    ) -> InstallationState:
        """Finish guided setup with the chosen features and optional loading mode."""
        state = self.repository.load()
        chosen = self.config.default_features() if features is None else features
        self.scheduler.acknowledge(state, chosen, mode_ceiling=loading_mode)
        # Operator choice lifts any automatically lowered mode
        state.effective_mode = None
        self.repository.save(state)
        self._arm_continuation()
        return state

    def skip_setup(self) -> InstallationState:
        state = self.repository.load()
        self.scheduler.skip_wizard(state)
        self.repository.save(state)
        self._arm_continuation()
        return state

    def enable_features(self, features: List[str]) -> List[str]:
        state = self.repository.load()
        queued = self.scheduler.enable_features(state, features)
        self.repository.save(state)
        if queued:
            self._arm_continuation()
        return queued

    def reset_installation(self) -> InstallationState:
        """Return the installation to not started and re-enable bootstrap work."""
        try:
            previous = self.repository.load()
        except BootguardError as e:
            logger.warning("Resetting over unreadable installation state: %s", e.message)
            previous = InstallationState()

        fresh = self.scheduler.reset(previous)
        self.repository.save(fresh)
        self.trap.reset()
        self.task_queue.clear(self.config.scheduling.continuation_task_id)
        return fresh

    def status(self) -> StatusReport:
        report = StatusReport(state=self.repository.load(), disabled_flag=self.trap.disabled_flag())
        is_scheduled = getattr(self.task_queue, "is_scheduled", None)
        if is_scheduled is not None:
            report.continuation_scheduled = is_scheduled(self.config.scheduling.continuation_task_id)
        return report

    def assess(self) -> ModeExplanation:
        """Probe and score the environment without touching any state."""
        return ResourceScorer(self.config.scoring).explain(self.probe.snapshot())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _recorded_modes(self) -> List[Optional[LoadingMode]]:
        try:
            state = self.repository.load()
        except BootguardError:
            # The supervised work reloads and reports the same failure
            return []
        return [state.effective_mode, state.mode_ceiling]

    def _advance(
        self,
        mode: LoadingMode,
        snapshot: ResourceSnapshot,
        trigger: InvocationTrigger,
        explanation: ModeExplanation,
    ) -> SchedulerResult:
        """One load, advance and save cycle.

        The record is written only when this invocation changed it, so an
        idle invocation never overwrites an operator's concurrent update.
        """
        state = self.repository.load()
        before = state.model_dump()
        if state.status != InstallationStatus.FAILED:
            state.lower_effective_mode(mode)
        result = self.scheduler.advance(state, mode, snapshot, trigger)

        notice = None
        if result.escalation is None and state.status != InstallationStatus.FAILED:
            notice = self._mode_notice(state, mode, explanation)

        if state.model_dump() != before:
            self.repository.save(state)
        if result.escalation is not None:
            raise result.escalation
        if notice is not None:
            self.notifier.notify(*notice)
        return result

    def _sync_continuation(self, result: SchedulerResult) -> bool:
        """Arm the deferred continuation while work remains, clear it when done."""
        task_id = self.config.scheduling.continuation_task_id
        try:
            if result.needs_continuation:
                scheduled = self.task_queue.schedule_once(self.config.scheduling.deferred_delay_seconds, task_id)
                if scheduled:
                    emit_event(logger, self.event_logger, "info", "Deferred continuation scheduled",
                               event="continuation_scheduled",
                               task_id=task_id, delay_seconds=self.config.scheduling.deferred_delay_seconds)
                return True
            if result.state.status == InstallationStatus.COMPLETE:
                self.task_queue.clear(task_id)
        except RUNTIME_FAILURES:
            raise
        except Exception as e:
            # Organic invocations still continue the installation
            emit_event(logger, self.event_logger, "warning",
                       f"Could not update deferred continuation: {describe_error(e)}",
                       event="continuation_failed", task_id=task_id)
        return False

    def _arm_continuation(self) -> None:
        task_id = self.config.scheduling.continuation_task_id
        try:
            self.task_queue.schedule_once(self.config.scheduling.deferred_delay_seconds, task_id)
        except BootguardError as e:
            emit_event(logger, self.event_logger, "warning",
                       f"Could not schedule deferred continuation: {e.message}",
                       event="continuation_failed", task_id=task_id)

    @staticmethod
    def _mode_notice(
        state: InstallationState,
        mode: LoadingMode,
        explanation: ModeExplanation,
    ) -> Optional[Tuple[NotificationLevel, str, Dict[str, Any]]]:
        """Record `mode` as notified and return the notification, once per change of mode."""
        if state.last_notified_mode == mode:
            return None
        if mode == explanation.score.mode:
            message = explanation.summary()
        else:
            message = (
                f"Loading mode {mode.label} (resources allow {explanation.score.mode.label}, "
                f"score {explanation.score.score}/100); lowered after earlier failures or by operator choice."
            )
        level = NotificationLevel.WARNING if mode.is_degraded or explanation.constrained else NotificationLevel.INFO
        state.last_notified_mode = mode
        return level, message, {
            "mode": mode.value,
            "score": explanation.score.score,
            "constraints": [finding.dimension for finding in explanation.findings],
        }
