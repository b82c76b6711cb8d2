"""
Bootguard: adaptive, resource-aware bootstrap scheduling.

Decides on every process invocation how much add-on initialization can run
safely given the host's memory and execution time budget, and completes a
multi-step installation progressively across many short invocations.
"""

from .config import BootguardConfig, load_bootguard_config
from .exceptions import (
    BootguardError,
    BootstrapDisabledError,
    ConfigurationError,
    InvalidConfigurationError,
    SchedulerInfrastructureError,
    StateCorruptionError,
    StateLoadError,
    StatePersistenceError,
    StoreError,
)
from .factory import create_bootstrap_service
from .fatal_trap import FatalTrap
from .modes import LoadingMode
from .notifications import (
    LoggingNotificationSink,
    NotificationLevel,
    RecordingNotificationSink,
    SafeNotificationSink,
)
from .resources import EnvironmentProbe, ResourceScorer, ResourceSnapshot
from .scheduling import (
    ActivationResult,
    CallableFeatureRegistry,
    InvocationTrigger,
    LedgerFeatureRegistry,
    ProgressiveFeatureScheduler,
)
from .service import BootstrapService, InvocationReport, StatusReport
from .state import InstallationState, InstallationStatus
from .supervisor import DegradedModeSupervisor

__all__ = [
    "BootguardConfig",
    "load_bootguard_config",
    "BootguardError",
    "BootstrapDisabledError",
    "ConfigurationError",
    "InvalidConfigurationError",
    "SchedulerInfrastructureError",
    "StateCorruptionError",
    "StateLoadError",
    "StatePersistenceError",
    "StoreError",
    "create_bootstrap_service",
    "FatalTrap",
    "LoadingMode",
    "LoggingNotificationSink",
    "NotificationLevel",
    "RecordingNotificationSink",
    "SafeNotificationSink",
    "EnvironmentProbe",
    "ResourceScorer",
    "ResourceSnapshot",
    "ActivationResult",
    "CallableFeatureRegistry",
    "InvocationTrigger",
    "LedgerFeatureRegistry",
    "ProgressiveFeatureScheduler",
    "BootstrapService",
    "InvocationReport",
    "StatusReport",
    "InstallationState",
    "InstallationStatus",
    "DegradedModeSupervisor",
]
