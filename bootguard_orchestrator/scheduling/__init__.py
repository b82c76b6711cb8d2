"""
Scheduling package for Bootguard.

Provides the progressive feature scheduler together with the feature
activation registries and deferred task queues it drives.
"""

from .registry import (
    ActivationOutcome,
    ActivationResult,
    ActivationStatus,
    CallableFeatureRegistry,
    FeatureActivationRecord,
    FeatureRegistry,
    LedgerFeatureRegistry,
)
from .scheduler import InvocationTrigger, ProgressiveFeatureScheduler, SchedulerResult
from .task_queue import DuckDBTaskQueue, InMemoryTaskQueue, TaskQueue

__all__ = [
    "ActivationOutcome",
    "ActivationResult",
    "ActivationStatus",
    "CallableFeatureRegistry",
    "FeatureActivationRecord",
    "FeatureRegistry",
    "LedgerFeatureRegistry",
    "InvocationTrigger",
    "ProgressiveFeatureScheduler",
    "SchedulerResult",
    "DuckDBTaskQueue",
    "InMemoryTaskQueue",
    "TaskQueue",
]
