"""
Tests for the ProgressiveFeatureScheduler.

Covers the three reference scenarios, bounded retries, batch failure
escalation, idempotence under overlapping invocations and the operator
transitions.
"""

import pytest

from bootguard_orchestrator.config.scheduling import SchedulingSettings
from bootguard_orchestrator.exceptions import (
    BatchFailureError,
    CoreActivationError,
    InvalidStateTransitionError,
)
from bootguard_orchestrator.modes import LoadingMode
from bootguard_orchestrator.scheduling.registry import ActivationOutcome, LedgerFeatureRegistry
from bootguard_orchestrator.scheduling.scheduler import InvocationTrigger, ProgressiveFeatureScheduler
from bootguard_orchestrator.state.installation_state import InstallationState, InstallationStatus

from tests.fixtures import FIVE_FEATURES, FailingConfigStore, RecordingRegistry


def make_scheduler(registry, **settings) -> ProgressiveFeatureScheduler:
    return ProgressiveFeatureScheduler(
        registry,
        SchedulingSettings(**settings),
        default_features=["a", "b", "c"],
        known_features=FIVE_FEATURES,
    )


def acknowledged(scheduler, features=FIVE_FEATURES) -> InstallationState:
    state = InstallationState()
    scheduler.acknowledge(state, features)
    return state


class TestReferenceScenarios:
    """The three scenarios every implementation must reproduce."""

    def test_fresh_deployment_requires_wizard(self, recording_registry, fresh_snapshot):
        scheduler = make_scheduler(recording_registry)
        state = InstallationState()

        result = scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)

        assert state.status == InstallationStatus.WIZARD_REQUIRED
        assert result.halted_reason == "guided setup required"
        assert recording_registry.calls == []
        assert state.last_activity_at is not None

    def test_wizard_required_stays_halted(self, recording_registry, fresh_snapshot):
        scheduler = make_scheduler(recording_registry)
        state = InstallationState(status=InstallationStatus.WIZARD_REQUIRED)

        scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)
        scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)

        assert state.status == InstallationStatus.WIZARD_REQUIRED
        assert recording_registry.calls == []

    def test_ultra_minimal_leaves_queue_untouched(self, recording_registry, constrained_snapshot):
        scheduler = make_scheduler(recording_registry)
        state = acknowledged(scheduler)

        result = scheduler.advance(state, LoadingMode.ULTRA_MINIMAL, constrained_snapshot)

        assert result.batch_size == 0
        assert state.status == InstallationStatus.IN_PROGRESS
        assert state.pending_features == FIVE_FEATURES
        assert state.attempts == {}
        # Core features run in every mode
        assert recording_registry.calls == ["core"]
        assert not result.needs_continuation

    def test_progressive_batches_of_two(self, recording_registry, progressive_snapshot):
        scheduler = make_scheduler(recording_registry)
        state = acknowledged(scheduler)

        first = scheduler.advance(state, LoadingMode.PROGRESSIVE, progressive_snapshot)
        assert first.activated == ["core", "a", "b"]
        assert state.pending_features == ["c", "d", "e"]
        assert state.status == InstallationStatus.IN_PROGRESS
        assert first.needs_continuation

        second = scheduler.advance(state, LoadingMode.PROGRESSIVE, progressive_snapshot)
        assert second.activated == ["c", "d"]
        assert state.pending_features == ["e"]

        third = scheduler.advance(state, LoadingMode.PROGRESSIVE, progressive_snapshot)
        assert third.activated == ["e"]
        assert state.pending_features == []
        assert state.status == InstallationStatus.COMPLETE
        assert third.completed
        assert not third.needs_continuation

        assert recording_registry.calls == ["core", "a", "b", "c", "d", "e"]


class TestBatchSizing:
    def test_full_mode_runs_everything(self, recording_registry, fresh_snapshot):
        scheduler = make_scheduler(recording_registry)
        state = acknowledged(scheduler)

        result = scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)

        assert result.batch_size == 30
        assert state.status == InstallationStatus.COMPLETE
        assert state.activated_features == ["core"] + FIVE_FEATURES

    def test_execution_budget_caps_batch(self, recording_registry, fresh_snapshot):
        from dataclasses import replace

        scheduler = make_scheduler(recording_registry)
        short = replace(fresh_snapshot, execution_time_limit_seconds=10)
        assert scheduler.effective_batch_size(LoadingMode.FULL, short) == 1
        assert scheduler.effective_batch_size(LoadingMode.PROGRESSIVE, short) == 1

    def test_settled_features_do_not_consume_batch(self, recording_registry, progressive_snapshot):
        scheduler = make_scheduler(recording_registry)
        state = InstallationState(
            status=InstallationStatus.IN_PROGRESS,
            selected_features=["a", "b", "c"],
            pending_features=["a", "b", "c"],
            activated_features=["core", "a"],
        )

        scheduler.advance(state, LoadingMode.PROGRESSIVE, progressive_snapshot)

        assert recording_registry.calls == ["b", "c"]
        assert state.status == InstallationStatus.COMPLETE


class TestBoundedRetries:
    """A broken feature can never block the queue."""

    def test_recoverable_failure_attempted_twice_then_skipped(self, fresh_snapshot):
        registry = RecordingRegistry(recoverable={"b"})
        scheduler = make_scheduler(registry)
        state = acknowledged(scheduler)

        first = scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)
        assert first.failed == ["b"]
        assert state.pending_features == ["b"]
        assert state.attempts["b"] == 1

        second = scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)
        assert [r.outcome for r in second.records] == [ActivationOutcome.SKIPPED]
        assert state.skipped_features == ["b"]
        assert state.status == InstallationStatus.COMPLETE

        scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)
        assert registry.count("b") == 2

    def test_failed_feature_moves_to_back_of_queue(self, progressive_snapshot):
        registry = RecordingRegistry(recoverable={"a"})
        scheduler = make_scheduler(registry, max_attempts=3)
        state = acknowledged(scheduler)

        scheduler.advance(state, LoadingMode.PROGRESSIVE, progressive_snapshot)

        assert state.pending_features == ["c", "d", "e", "a"]

    def test_fatal_failure_skips_immediately(self, fresh_snapshot):
        registry = RecordingRegistry(fatal={"c"})
        scheduler = make_scheduler(registry)
        state = acknowledged(scheduler)

        scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)

        assert registry.count("c") == 1
        assert state.skipped_features == ["c"]
        assert state.status == InstallationStatus.COMPLETE

    def test_registry_exception_is_contained(self, fresh_snapshot):
        registry = RecordingRegistry(raises={"a": RuntimeError("boom")})
        scheduler = make_scheduler(registry)
        state = acknowledged(scheduler)

        result = scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)

        failed = [r for r in result.records if r.feature_id == "a"][0]
        assert failed.outcome == ActivationOutcome.FAILED
        assert "RuntimeError: boom" in failed.reason
        assert state.activated_features == ["core", "b", "c", "d", "e"]

    def test_runtime_failure_escapes(self, fresh_snapshot):
        registry = RecordingRegistry(raises={"a": MemoryError()})
        scheduler = make_scheduler(registry)
        state = acknowledged(scheduler)

        with pytest.raises(MemoryError):
            scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)

    def test_non_result_return_is_fatal(self, fresh_snapshot):
        class OddRegistry:
            def activate(self, feature_id):
                return "yes"

        scheduler = make_scheduler(OddRegistry())
        state = acknowledged(scheduler, ["a"])

        result = scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)

        # the core feature itself fails first
        assert isinstance(result.escalation, CoreActivationError)


class TestEscalation:
    """Failures the scheduler cannot absorb are handed to the supervisor."""

    def test_consecutive_failed_batches(self, progressive_snapshot):
        registry = RecordingRegistry(recoverable=set(FIVE_FEATURES))
        scheduler = make_scheduler(registry, max_attempts=5)
        state = acknowledged(scheduler)

        first = scheduler.advance(state, LoadingMode.PROGRESSIVE, progressive_snapshot)
        assert first.escalation is None
        assert state.consecutive_failed_batches == 1

        second = scheduler.advance(state, LoadingMode.PROGRESSIVE, progressive_snapshot)
        assert isinstance(second.escalation, BatchFailureError)
        assert state.consecutive_failed_batches == 0

    def test_partial_success_resets_counter(self, progressive_snapshot):
        registry = RecordingRegistry(recoverable={"a", "b", "c"})
        scheduler = make_scheduler(registry, max_attempts=5)
        state = acknowledged(scheduler)

        scheduler.advance(state, LoadingMode.PROGRESSIVE, progressive_snapshot)
        assert state.consecutive_failed_batches == 1
        result = scheduler.advance(state, LoadingMode.PROGRESSIVE, progressive_snapshot)
        # c fails, d succeeds
        assert result.escalation is None
        assert state.consecutive_failed_batches == 0

    def test_core_failure_escalates_without_batch(self, fresh_snapshot):
        registry = RecordingRegistry(fatal={"core"})
        scheduler = make_scheduler(registry)
        state = acknowledged(scheduler)

        result = scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)

        assert isinstance(result.escalation, CoreActivationError)
        assert result.escalation.feature_id == "core"
        assert registry.calls == ["core"]
        assert state.pending_features == FIVE_FEATURES

    def test_failed_installation_is_halted(self, recording_registry, fresh_snapshot):
        scheduler = make_scheduler(recording_registry)
        state = InstallationState(status=InstallationStatus.FAILED)

        result = scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)

        assert "reset" in result.halted_reason
        assert recording_registry.calls == []


class TestIdempotence:
    """Overlapping invocations must not activate a feature twice."""

    def test_overlapping_invocations_share_ledger(self, memory_store, progressive_snapshot):
        inner = RecordingRegistry()
        scheduler = make_scheduler(LedgerFeatureRegistry(inner, memory_store))
        state = acknowledged(scheduler)

        # Two invocations load the same record before either saves
        first_view = state.model_copy(deep=True)
        second_view = state.model_copy(deep=True)
        scheduler.advance(first_view, LoadingMode.PROGRESSIVE, progressive_snapshot)
        second = scheduler.advance(second_view, LoadingMode.PROGRESSIVE, progressive_snapshot)

        assert inner.count("a") == 1
        assert inner.count("b") == 1
        assert inner.count("core") == 1
        assert second.activated == ["core", "a", "b"]

    def test_ledger_write_failure_does_not_repeat_activation(self, progressive_snapshot):
        inner = RecordingRegistry()
        store = FailingConfigStore(fail_on={"set"}, fail_keys={"bootguard_feature_a"})
        scheduler = make_scheduler(LedgerFeatureRegistry(inner, store))
        state = acknowledged(scheduler)

        first = scheduler.advance(state, LoadingMode.PROGRESSIVE, progressive_snapshot)
        store.fail_on.clear()
        scheduler.advance(state, LoadingMode.PROGRESSIVE, progressive_snapshot)

        assert first.activated == ["core", "a", "b"]
        assert "a" in state.activated_features
        assert "a" not in state.pending_features
        assert inner.count("a") == 1

    def test_dual_trigger_uses_same_transition(self, recording_registry, progressive_snapshot):
        scheduler = make_scheduler(recording_registry)
        state = acknowledged(scheduler)

        organic = scheduler.advance(state, LoadingMode.PROGRESSIVE, progressive_snapshot, InvocationTrigger.ORGANIC)
        deferred = scheduler.advance(state, LoadingMode.PROGRESSIVE, progressive_snapshot, InvocationTrigger.DEFERRED)

        assert organic.trigger == InvocationTrigger.ORGANIC
        assert deferred.trigger == InvocationTrigger.DEFERRED
        assert organic.activated + deferred.activated == ["core", "a", "b", "c", "d"]


class TestOperatorTransitions:
    def test_acknowledge_strips_core_and_duplicates(self, recording_registry):
        scheduler = make_scheduler(recording_registry)
        state = InstallationState(status=InstallationStatus.WIZARD_REQUIRED)

        scheduler.acknowledge(state, ["a", "core", "a", "b"], mode_ceiling=LoadingMode.PROGRESSIVE)

        assert state.selected_features == ["a", "b"]
        assert state.pending_features == ["a", "b"]
        assert state.mode_ceiling == LoadingMode.PROGRESSIVE
        assert state.status == InstallationStatus.IN_PROGRESS

    def test_acknowledge_unknown_feature(self, recording_registry):
        scheduler = make_scheduler(recording_registry)
        with pytest.raises(ValueError):
            scheduler.acknowledge(InstallationState(), ["nope"])

    def test_acknowledge_twice(self, recording_registry):
        scheduler = make_scheduler(recording_registry)
        state = acknowledged(scheduler)
        with pytest.raises(InvalidStateTransitionError):
            scheduler.acknowledge(state, ["a"])

    def test_skip_wizard_setting_installs_defaults(self, recording_registry, fresh_snapshot):
        scheduler = make_scheduler(recording_registry, skip_wizard=True)
        state = InstallationState()

        scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)

        assert state.wizard_skipped
        assert state.selected_features == ["a", "b", "c"]
        assert state.status == InstallationStatus.COMPLETE

    def test_skip_wizard_reuses_previous_selection(self, recording_registry):
        scheduler = make_scheduler(recording_registry)
        state = InstallationState(selected_features=["d", "e"], pending_features=["d", "e"])

        scheduler.skip_wizard(state)

        assert state.selected_features == ["d", "e"]
        assert state.pending_features == ["d", "e"]

    def test_enable_after_complete(self, recording_registry, fresh_snapshot):
        scheduler = make_scheduler(recording_registry)
        state = acknowledged(scheduler, ["a", "b"])
        scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)
        assert state.status == InstallationStatus.COMPLETE

        queued = scheduler.enable_features(state, ["c", "a", "core"])

        assert queued == ["c"]
        assert state.status == InstallationStatus.IN_PROGRESS
        scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)
        assert state.status == InstallationStatus.COMPLETE
        assert "c" in state.activated_features

    def test_enable_retries_skipped_feature(self, fresh_snapshot):
        registry = RecordingRegistry(fatal={"b"})
        scheduler = make_scheduler(registry)
        state = acknowledged(scheduler, ["a", "b"])
        scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)
        assert state.skipped_features == ["b"]

        registry.fatal.clear()
        assert scheduler.enable_features(state, ["b"]) == ["b"]
        assert state.skipped_features == []
        assert "b" not in state.attempts

        scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)
        assert "b" in state.activated_features

    def test_enable_before_setup(self, recording_registry):
        scheduler = make_scheduler(recording_registry)
        with pytest.raises(InvalidStateTransitionError):
            scheduler.enable_features(InstallationState(status=InstallationStatus.WIZARD_REQUIRED), ["a"])

    def test_reconcile_complete_installation(self, recording_registry, fresh_snapshot):
        scheduler = make_scheduler(recording_registry)
        state = InstallationState(
            status=InstallationStatus.COMPLETE,
            selected_features=["a", "b"],
            activated_features=["core", "a"],
        )

        result = scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)

        assert result.activated == ["b"]
        assert state.status == InstallationStatus.COMPLETE

    def test_complete_without_changes_is_noop(self, recording_registry, fresh_snapshot):
        scheduler = make_scheduler(recording_registry)
        state = acknowledged(scheduler, ["a"])
        scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)
        recording_registry.calls.clear()

        result = scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)

        assert result.records == []
        assert recording_registry.calls == []

    def test_reset(self, recording_registry, fresh_snapshot):
        scheduler = make_scheduler(recording_registry)
        state = acknowledged(scheduler, ["a", "b"])
        scheduler.advance(state, LoadingMode.FULL, fresh_snapshot)
        state.revision = 7

        fresh = scheduler.reset(state)

        assert fresh.status == InstallationStatus.NOT_STARTED
        assert fresh.selected_features == ["a", "b"]
        assert fresh.pending_features == ["a", "b"]
        assert fresh.activated_features == []
        assert fresh.effective_mode is None
        assert fresh.revision == 7
