"""
Installation state repository.

Reads and writes the InstallationState as one JSON blob under a single
configuration store key, guarded by an integrity hash. Every call goes to the
store; nothing is cached between calls.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Dict

from pydantic import ValidationError

from ..exceptions import (
    StateCorruptionError,
    StateInvariantError,
    StateLoadError,
    StatePersistenceError,
    StoreError,
)
from .installation_state import InstallationState
from .stores import ConfigStore

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
DEFAULT_STATE_KEY = "bootguard_installation_state"


class InstallationStateRepository:
    """Persists the installation record.

    Writes are last-writer-wins: concurrent invocations may each replace the
    blob, and a reader may observe an older revision.
    """

    def __init__(self, store: ConfigStore, key: str = DEFAULT_STATE_KEY):
        self.store = store
        self.key = key

    def load(self) -> InstallationState:
        """Return the persisted state, or a fresh one when nothing is stored."""
        try:
            blob = self.store.get(self.key)
        except StoreError as e:
            raise StateLoadError(f"Failed to read installation state: {e.message}", original_exception=e) from e

        if blob is None:
            logger.debug("No installation state stored under %s, starting fresh", self.key)
            return InstallationState()

        if not isinstance(blob, dict) or "payload" not in blob or "integrity_hash" not in blob:
            raise StateCorruptionError("Installation state blob has an unexpected structure")

        payload = blob["payload"]
        if not isinstance(payload, dict):
            raise StateCorruptionError("Installation state payload is not an object")
        if self._calculate_integrity_hash(payload) != blob["integrity_hash"]:
            raise StateCorruptionError("Installation state checksum mismatch")

        try:
            return InstallationState.model_validate(payload)
        except (ValidationError, StateInvariantError) as e:
            raise StateCorruptionError(f"Installation state is invalid: {e}", original_exception=e) from e

    def save(self, state: InstallationState) -> InstallationState:
        """Persist `state` as a whole, bumping its revision on success."""
        state.check_invariants()

        payload = state.model_dump(mode="json")
        payload["revision"] = state.revision + 1
        blob = {
            "format_version": FORMAT_VERSION,
            "integrity_hash": self._calculate_integrity_hash(payload),
            "payload": payload,
        }

        try:
            self.store.set(self.key, blob)
        except StoreError as e:
            raise StatePersistenceError(f"Failed to save installation state: {e.message}", original_exception=e) from e

        state.revision = payload["revision"]
        logger.debug("Saved installation state revision %s (status=%s)", state.revision, state.status.value)
        return state

    def clear(self) -> None:
        try:
            self.store.delete(self.key)
        except StoreError as e:
            raise StatePersistenceError(f"Failed to clear installation state: {e.message}", original_exception=e) from e

    @staticmethod
    def _calculate_integrity_hash(payload: Dict[str, Any]) -> str:
        json_str = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(json_str.encode("utf-8")).hexdigest()
