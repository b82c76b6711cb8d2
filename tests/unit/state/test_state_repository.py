"""
Tests for InstallationStateRepository persistence and integrity checks.
"""

import pytest

from bootguard_orchestrator.exceptions import (
    StateCorruptionError,
    StateInvariantError,
    StateLoadError,
    StatePersistenceError,
)
from bootguard_orchestrator.modes import LoadingMode
from bootguard_orchestrator.state.installation_state import InstallationState, InstallationStatus
from bootguard_orchestrator.state.repository import InstallationStateRepository

from tests.fixtures import FailingConfigStore

KEY = "bootguard_installation_state"


@pytest.fixture
def repository(memory_store):
    return InstallationStateRepository(memory_store, key=KEY)


def _in_progress_state() -> InstallationState:
    return InstallationState(
        status=InstallationStatus.IN_PROGRESS,
        effective_mode=LoadingMode.PROGRESSIVE,
        selected_features=["a", "b", "c"],
        pending_features=["b", "c"],
        activated_features=["core", "a"],
        attempts={"a": 1},
    )


class TestLoadSave:
    """Round trips through the configuration store."""

    def test_load_without_record_is_fresh(self, repository):
        state = repository.load()
        assert state.status == InstallationStatus.NOT_STARTED
        assert state.revision == 0

    def test_round_trip(self, repository):
        repository.save(_in_progress_state())
        loaded = repository.load()

        assert loaded.status == InstallationStatus.IN_PROGRESS
        assert loaded.effective_mode == LoadingMode.PROGRESSIVE
        assert loaded.pending_features == ["b", "c"]
        assert loaded.attempts == {"a": 1}
        assert loaded.revision == 1

    def test_revision_increments(self, repository):
        state = _in_progress_state()
        repository.save(state)
        repository.save(state)
        assert state.revision == 2
        assert repository.load().revision == 2

    def test_blob_layout(self, repository, memory_store):
        repository.save(_in_progress_state())
        blob = memory_store.get(KEY)
        assert set(blob) == {"format_version", "integrity_hash", "payload"}
        assert blob["payload"]["status"] == "in_progress"
        assert blob["payload"]["effective_mode"] == "progressive"

    def test_save_rejects_broken_invariants(self, repository, memory_store):
        state = _in_progress_state()
        state.pending_features.append("zzz")
        with pytest.raises(StateInvariantError):
            repository.save(state)
        assert memory_store.get(KEY) is None

    def test_clear(self, repository, memory_store):
        repository.save(_in_progress_state())
        repository.clear()
        assert memory_store.get(KEY) is None


class TestCorruption:
    """A persisted record that cannot be trusted is reported, never guessed at."""

    def test_checksum_mismatch(self, repository, memory_store):
        repository.save(_in_progress_state())
        blob = memory_store.get(KEY)
        blob["payload"]["pending_features"] = ["c"]
        memory_store.set(KEY, blob)

        with pytest.raises(StateCorruptionError) as exc_info:
            repository.load()
        assert "checksum" in exc_info.value.message

    @pytest.mark.parametrize("blob", ["garbage", {"payload": {}}, {"payload": [], "integrity_hash": "x"}])
    def test_unexpected_structure(self, repository, memory_store, blob):
        memory_store.set(KEY, blob)
        with pytest.raises(StateCorruptionError):
            repository.load()

    def test_invalid_payload_with_valid_hash(self, repository, memory_store):
        payload = {"status": "in_progress", "selected_features": ["a"], "pending_features": ["b"]}
        memory_store.set(KEY, {
            "format_version": 1,
            "integrity_hash": InstallationStateRepository._calculate_integrity_hash(payload),
            "payload": payload,
        })
        with pytest.raises(StateCorruptionError):
            repository.load()

    def test_unknown_status(self, repository, memory_store):
        payload = {"status": "exploded"}
        memory_store.set(KEY, {
            "format_version": 1,
            "integrity_hash": InstallationStateRepository._calculate_integrity_hash(payload),
            "payload": payload,
        })
        with pytest.raises(StateCorruptionError):
            repository.load()

    def test_corruption_is_a_load_error(self):
        assert issubclass(StateCorruptionError, StateLoadError)


class TestStoreFailures:
    def test_read_failure(self):
        repository = InstallationStateRepository(FailingConfigStore(fail_on={"get"}), key=KEY)
        with pytest.raises(StateLoadError) as exc_info:
            repository.load()
        assert not isinstance(exc_info.value, StateCorruptionError)
        assert exc_info.value.original_exception is not None

    def test_write_failure_keeps_revision(self):
        repository = InstallationStateRepository(FailingConfigStore(fail_on={"set"}), key=KEY)
        state = _in_progress_state()
        with pytest.raises(StatePersistenceError):
            repository.save(state)
        assert state.revision == 0
