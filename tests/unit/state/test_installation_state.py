"""
Tests for InstallationState invariants and status transitions.
"""

import pytest

from bootguard_orchestrator.exceptions import InvalidStateTransitionError, StateInvariantError
from bootguard_orchestrator.modes import LoadingMode
from bootguard_orchestrator.state.installation_state import (
    ALLOWED_TRANSITIONS,
    InstallationState,
    InstallationStatus,
)


class TestInvariants:
    """The record refuses to exist in an inconsistent shape."""

    def test_fresh_state(self):
        state = InstallationState()
        assert state.status == InstallationStatus.NOT_STARTED
        assert state.effective_mode is None
        assert state.pending_features == []
        assert not state.has_pending_work

    def test_duplicate_selected_features(self):
        with pytest.raises(StateInvariantError):
            InstallationState(selected_features=["a", "a"])

    def test_duplicate_pending_features(self):
        with pytest.raises(StateInvariantError):
            InstallationState(selected_features=["a"], pending_features=["a", "a"])

    def test_pending_must_be_selected(self):
        with pytest.raises(StateInvariantError) as exc_info:
            InstallationState(selected_features=["a"], pending_features=["b"])
        assert "b" in exc_info.value.message

    def test_complete_cannot_have_pending(self):
        with pytest.raises(StateInvariantError):
            InstallationState(
                status=InstallationStatus.COMPLETE,
                selected_features=["a"],
                pending_features=["a"],
            )

    def test_check_invariants_after_mutation(self):
        state = InstallationState(selected_features=["a"])
        state.pending_features.append("z")
        with pytest.raises(StateInvariantError):
            state.check_invariants()


class TestTransitions:
    """Tests for the status state machine."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (InstallationStatus.NOT_STARTED, InstallationStatus.WIZARD_REQUIRED),
            (InstallationStatus.NOT_STARTED, InstallationStatus.IN_PROGRESS),
            (InstallationStatus.WIZARD_REQUIRED, InstallationStatus.IN_PROGRESS),
            (InstallationStatus.IN_PROGRESS, InstallationStatus.COMPLETE),
            (InstallationStatus.COMPLETE, InstallationStatus.IN_PROGRESS),
            (InstallationStatus.IN_PROGRESS, InstallationStatus.FAILED),
            (InstallationStatus.WIZARD_REQUIRED, InstallationStatus.FAILED),
        ],
    )
    def test_allowed(self, current, target):
        state = InstallationState(status=current)
        state.transition_to(target)
        assert state.status == target

    @pytest.mark.parametrize(
        "current,target",
        [
            (InstallationStatus.NOT_STARTED, InstallationStatus.COMPLETE),
            (InstallationStatus.WIZARD_REQUIRED, InstallationStatus.COMPLETE),
            (InstallationStatus.IN_PROGRESS, InstallationStatus.WIZARD_REQUIRED),
            (InstallationStatus.COMPLETE, InstallationStatus.NOT_STARTED),
            (InstallationStatus.FAILED, InstallationStatus.IN_PROGRESS),
            (InstallationStatus.FAILED, InstallationStatus.NOT_STARTED),
        ],
    )
    def test_forbidden(self, current, target):
        state = InstallationState(status=current)
        with pytest.raises(InvalidStateTransitionError):
            state.transition_to(target)
        assert state.status == current

    def test_same_status_is_allowed(self):
        state = InstallationState(status=InstallationStatus.IN_PROGRESS)
        assert state.can_transition_to(InstallationStatus.IN_PROGRESS)

    def test_failed_is_terminal(self):
        assert ALLOWED_TRANSITIONS[InstallationStatus.FAILED] == frozenset()

    def test_every_status_can_fail(self):
        for status in InstallationStatus:
            assert InstallationState(status=status).can_transition_to(InstallationStatus.FAILED)


class TestEffectiveMode:
    """effective_mode only ever moves down on its own."""

    def test_first_mode_is_recorded(self):
        state = InstallationState()
        assert state.lower_effective_mode(LoadingMode.FULL)
        assert state.effective_mode == LoadingMode.FULL

    def test_lowering(self):
        state = InstallationState(effective_mode=LoadingMode.STANDARD)
        assert state.lower_effective_mode(LoadingMode.MINIMAL)
        assert state.effective_mode == LoadingMode.MINIMAL

    def test_never_raised(self):
        state = InstallationState(effective_mode=LoadingMode.MINIMAL)
        assert not state.lower_effective_mode(LoadingMode.FULL)
        assert state.effective_mode == LoadingMode.MINIMAL


class TestProgress:
    def test_progress_counts(self):
        state = InstallationState(
            status=InstallationStatus.IN_PROGRESS,
            selected_features=["a", "b", "c", "d"],
            pending_features=["c", "d"],
            activated_features=["core", "a"],
            skipped_features=["b"],
        )
        assert state.progress() == {"selected": 4, "settled": 2, "pending": 2, "skipped": 1}
        assert state.has_pending_work
        assert state.is_settled("a")
        assert state.is_settled("b")
        assert not state.is_settled("c")

    def test_pending_outside_progress_is_not_work(self):
        state = InstallationState(
            status=InstallationStatus.WIZARD_REQUIRED,
            selected_features=["a"],
            pending_features=["a"],
        )
        assert not state.has_pending_work
