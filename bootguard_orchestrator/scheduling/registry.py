"""
Feature activation registries.

A registry activates one feature by identifier and reports how it went. The
scheduler never assumes a registry is well behaved: exceptions it raises are
contained per feature by the scheduler itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol

from ..exceptions import StoreError
from ..state.stores import ConfigStore

logger = logging.getLogger(__name__)


class ActivationStatus(str, Enum):
    SUCCESS = "success"
    RECOVERABLE_FAILURE = "recoverable_failure"
    FATAL_FAILURE = "fatal_failure"


@dataclass(frozen=True)
class ActivationResult:
    """What a registry reports for one activation."""

    status: ActivationStatus
    reason: Optional[str] = None

    @classmethod
    def success(cls, reason: Optional[str] = None) -> "ActivationResult":
        return cls(ActivationStatus.SUCCESS, reason)

    @classmethod
    def recoverable_failure(cls, reason: str) -> "ActivationResult":
        return cls(ActivationStatus.RECOVERABLE_FAILURE, reason)

    @classmethod
    def fatal_failure(cls, reason: str) -> "ActivationResult":
        return cls(ActivationStatus.FATAL_FAILURE, reason)

    @property
    def ok(self) -> bool:
        return self.status == ActivationStatus.SUCCESS


class ActivationOutcome(str, Enum):
    """Logged outcome of one activation attempt."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class FeatureActivationRecord:
    """Transient record of one activation attempt, emitted to the log."""

    feature_id: str
    outcome: ActivationOutcome
    reason: Optional[str] = None
    duration_millis: float = 0.0
    attempt: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature_id": self.feature_id,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "duration_millis": round(self.duration_millis, 3),
            "attempt": self.attempt,
        }


class FeatureRegistry(Protocol):
    def activate(self, feature_id: str) -> ActivationResult: ...


Activator = Callable[[], Any]


class CallableFeatureRegistry:
    """Maps feature identifiers to activation callables.

    An activator may return an ActivationResult, or None/True for success
    and False for a recoverable failure. Unknown identifiers are a fatal
    failure since retrying cannot make them exist.
    """

    def __init__(self, activators: Optional[Dict[str, Activator]] = None):
        self._activators: Dict[str, Activator] = dict(activators or {})

    def register(self, feature_id: str, activator: Activator) -> None:
        self._activators[feature_id] = activator

    def __contains__(self, feature_id: str) -> bool:
        return feature_id in self._activators

    def activate(self, feature_id: str) -> ActivationResult:
        activator = self._activators.get(feature_id)
        if activator is None:
            return ActivationResult.fatal_failure(f"no activator registered for '{feature_id}'")

        result = activator()
        if isinstance(result, ActivationResult):
            return result
        if result is False:
            return ActivationResult.recoverable_failure("activator reported failure")
        return ActivationResult.success()


class LedgerFeatureRegistry:
    """Makes any registry idempotent by recording successes in the config store.

    Each successful activation is written under its own key, so a feature
    activated by an invocation whose state save was lost is not run again.
    """

    def __init__(self, inner: FeatureRegistry, store: ConfigStore, key_prefix: str = "bootguard_feature_"):
        self.inner = inner
        self.store = store
        self.key_prefix = key_prefix

    def _key(self, feature_id: str) -> str:
        return f"{self.key_prefix}{feature_id}"

    def is_activated(self, feature_id: str) -> bool:
        return bool(self.store.get(self._key(feature_id)))

    def activate(self, feature_id: str) -> ActivationResult:
        if self.is_activated(feature_id):
            logger.debug("Feature %s already in activation ledger, skipping call", feature_id)
            return ActivationResult.success("already activated")

        result = self.inner.activate(feature_id)
        if result.ok:
            try:
                self.store.set(self._key(feature_id), {
                    "activated_at": datetime.now(timezone.utc).isoformat(),
                })
            except StoreError as e:
                # The activation already happened; the state blob still records it
                logger.error("Could not record activation of %s in the ledger: %s", feature_id, e.message)
        return result

    def forget(self, feature_id: str) -> None:
        self.store.delete(self._key(feature_id))
