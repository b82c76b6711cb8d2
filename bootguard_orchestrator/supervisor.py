"""
Degraded-mode supervisor.

Wraps one invocation's scheduler work in escalating fallback tiers. When the
work fails for a reason other than a single feature (state load or save,
repeated batch failures, core activation, anything unexpected), the loading
mode is lowered one tier, the lower mode is persisted and the work is retried
exactly once. A failure with no lower tier left marks the installation
failed and stops automatic recovery until an operator reset. So does a
state that still cannot be read on the retry after its downgrade could not
be persisted, since no later invocation could walk further down.

Because every downgrade is persisted and the effective mode never rises on
its own, each tier is tried at most once per invocation and at most once
across invocations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from .error_catalog import get_error_catalog
from .exceptions import RUNTIME_FAILURES, BootguardError, StateLoadError
from .logger import BootstrapLogger, emit_event
from .modes import LoadingMode
from .notifications import NotificationLevel, NotificationSink
from .state.installation_state import InstallationState, InstallationStatus
from .state.repository import InstallationStateRepository

logger = logging.getLogger(__name__)


@dataclass
class SupervisorOutcome:
    """How an invocation's work ended under supervision."""

    requested_mode: LoadingMode
    final_mode: LoadingMode
    value: Any = None
    attempted_modes: List[LoadingMode] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    succeeded: bool = False
    failed: bool = False

    @property
    def downgraded(self) -> bool:
        return self.final_mode < self.requested_mode


def describe_error(error: BaseException) -> str:
    if isinstance(error, BootguardError):
        return error.message
    return f"{type(error).__name__}: {error}"


class DegradedModeSupervisor:
    """Runs work under a loading mode with one downgrade-and-retry."""

    def __init__(
        self,
        repository: InstallationStateRepository,
        notifier: NotificationSink,
        event_logger: Optional[BootstrapLogger] = None,
    ):
        self.repository = repository
        self.notifier = notifier
        self.event_logger = event_logger

    def run_with_fallback(self, mode: LoadingMode, work: Callable[[LoadingMode], Any]) -> SupervisorOutcome:
        outcome = SupervisorOutcome(requested_mode=mode, final_mode=mode)

        current: Optional[LoadingMode] = mode
        recorded = True
        for attempt in (1, 2):
            outcome.attempted_modes.append(current)
            try:
                outcome.value = work(current)
                outcome.final_mode = current
                outcome.succeeded = True
                return outcome
            except RUNTIME_FAILURES:
                raise
            except Exception as e:
                reason = describe_error(e)
                outcome.errors.append(reason)
                emit_event(logger, self.event_logger, "warning",
                           f"Bootstrap work failed in {current.value} mode: {reason}",
                           event="supervisor_failure", loading_mode=current.value,
                           attempt=attempt, error_type=type(e).__name__)
                error = e

            if isinstance(error, StateLoadError) and not recorded:
                # An unrecorded downgrade is never seen by later invocations
                outcome.final_mode = current
                outcome.failed = True
                self._mark_failed(
                    error,
                    f"Installation state could not be read after falling back to {current.label} mode",
                )
                return outcome

            lower = current.downgrade()
            if lower is None:
                outcome.final_mode = current
                outcome.failed = True
                self._mark_failed(error, f"Bootstrap failed even in {current.label} mode")
                return outcome

            recorded = self._persist_mode(lower)
            outcome.final_mode = lower
            current = lower

        emit_event(logger, self.event_logger, "warning",
                   f"Retry failed; invocation stopped, next invocation starts in {current.value} mode",
                   event="supervisor_stopped", loading_mode=current.value)
        return outcome

    def _persist_mode(self, mode: LoadingMode) -> bool:
        """Best-effort write of a lowered effective mode; False when it could not be recorded."""
        try:
            state = self.repository.load()
            if state.lower_effective_mode(mode):
                self.repository.save(state)
            emit_event(logger, self.event_logger, "warning", f"Loading mode downgraded to {mode.value}",
                       event="mode_downgrade", loading_mode=mode.value)
            return True
        except RUNTIME_FAILURES:
            raise
        except Exception as e:
            emit_event(logger, self.event_logger, "error",
                       f"Could not persist downgrade to {mode.value}: {describe_error(e)}",
                       event="mode_downgrade_failed", loading_mode=mode.value)
            return False

    def _mark_failed(self, error: BaseException, headline: str) -> None:
        reason = describe_error(error)
        try:
            try:
                state = self.repository.load()
            except RUNTIME_FAILURES:
                raise
            except Exception:
                # Unreadable state is replaced by a fresh failed record
                state = InstallationState()
            state.transition_to(InstallationStatus.FAILED)
            state.failure_reason = reason
            state.lower_effective_mode(LoadingMode.ULTRA_MINIMAL)
            self.repository.save(state)
        except RUNTIME_FAILURES:
            raise
        except Exception as e:
            emit_event(logger, self.event_logger, "error", f"Could not persist failed status: {describe_error(e)}",
                       event="failure_persist_failed")

        hints = get_error_catalog().find_resolution_hints(reason)
        context = {"reason": reason}
        if hints:
            context["resolution"] = hints[0].title
        self.notifier.notify(
            NotificationLevel.ERROR,
            f"{headline}: {reason}. "
            "Automatic recovery has stopped; reset the installation once the cause is fixed.",
            context,
        )
        emit_event(logger, self.event_logger, "critical", "Installation marked failed",
                   event="installation_failed", reason=reason)
