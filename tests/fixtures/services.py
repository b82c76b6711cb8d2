"""Bootstrap service fixtures wired with in-memory collaborators."""

from typing import Optional

import pytest

from bootguard_orchestrator.config import BootguardConfig
from bootguard_orchestrator.notifications import RecordingNotificationSink
from bootguard_orchestrator.resources.probe import EnvironmentProbe, StaticEnvironmentInspector
from bootguard_orchestrator.scheduling.registry import LedgerFeatureRegistry
from bootguard_orchestrator.scheduling.task_queue import InMemoryTaskQueue
from bootguard_orchestrator.service import BootstrapService
from bootguard_orchestrator.state.stores import InMemoryConfigStore

from .registries import RecordingRegistry, fresh_inspector


class ServiceHarness:
    """A BootstrapService plus handles on every collaborator it was built from."""

    def __init__(
        self,
        config: BootguardConfig,
        *,
        registry: Optional[RecordingRegistry] = None,
        inspector: Optional[StaticEnvironmentInspector] = None,
        store: Optional[InMemoryConfigStore] = None,
        queue: Optional[InMemoryTaskQueue] = None,
        ledger: bool = True,
    ):
        self.config = config
        self.registry = registry or RecordingRegistry()
        self.store = store if store is not None else InMemoryConfigStore()
        self.queue = queue if queue is not None else InMemoryTaskQueue()
        self.notifier = RecordingNotificationSink()
        self.inspector = inspector or fresh_inspector()
        self.ledger = ledger
        self.service = self.build()

    def build(self) -> BootstrapService:
        """Construct a new service over the same store, as a new process would."""
        registry = LedgerFeatureRegistry(self.registry, self.store) if self.ledger else self.registry
        return BootstrapService(
            self.config,
            store=self.store,
            task_queue=self.queue,
            registry=registry,
            notifier=self.notifier,
            probe=EnvironmentProbe(self.inspector),
            register_exit_hook=False,
        )

    def use_inspector(self, inspector: StaticEnvironmentInspector) -> None:
        self.inspector = inspector
        self.service = self.build()

    @property
    def state(self):
        return self.service.repository.load()


@pytest.fixture
def harness(minimal_config) -> ServiceHarness:
    """
    In-memory service with the five feature catalog and a full-mode environment.

    Usage:
        def test_first_invocation(harness):
            report = harness.service.run_invocation()
            assert report.status.value == "wizard_required"
    """
    return ServiceHarness(minimal_config)
