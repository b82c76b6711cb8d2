"""
Structured exception hierarchy with execution context for Bootguard.

All exceptions include:
- correlation_id: Trace errors across the steps of one bootstrap invocation
- execution_context: Invocation, component, feature, loading mode
- resolution_hints: Actionable suggestions for operators
- severity: CRITICAL, ERROR, RECOVERABLE, WARNING

Errors are grouped in three tiers:
- Feature errors: contained by the scheduler, never escalate
- Scheduler infrastructure errors: escalated to the degraded-mode supervisor
- Runtime-level failures: only the fatal trap sees them
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorSeverity(str, Enum):
    """Error severity levels for triage and alerting"""
    CRITICAL = "critical"      # Bootstrap disabled, operator reset required
    ERROR = "error"            # Invocation failed, degraded mode engaged
    RECOVERABLE = "recoverable"  # Retry possible on a later invocation
    WARNING = "warning"        # Non-blocking issue


class ErrorCategory(str, Enum):
    """Error categories for diagnostics and resolution routing"""
    STORAGE = "storage"                # Configuration store reads and writes
    CONFIGURATION = "configuration"    # Invalid config, missing parameters
    RESOURCE = "resource"              # Memory or execution time exhaustion
    FEATURE = "feature"                # Feature activation failures
    STATE = "state"                    # Installation state corruption, bad transitions
    SCHEDULING = "scheduling"          # Batch and continuation failures


@dataclass
class ExecutionContext:
    """Execution context attached to every Bootguard error"""

    invocation_id: Optional[str] = None
    component: Optional[str] = None
    feature_id: Optional[str] = None
    loading_mode: Optional[str] = None
    installation_status: Optional[str] = None

    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize context for logging and storage"""
        return {
            k: v for k, v in self.__dict__.items()
            if v is not None and not k.startswith('_')
        }

    def format_summary(self) -> str:
        """Human-readable one-line summary"""
        parts = []
        if self.component:
            parts.append(f"component={self.component}")
        if self.feature_id:
            parts.append(f"feature={self.feature_id}")
        if self.loading_mode:
            parts.append(f"mode={self.loading_mode}")
        if self.correlation_id:
            parts.append(f"correlation_id={self.correlation_id}")
        return " | ".join(parts)


@dataclass
class ResolutionHint:
    """Actionable resolution guidance for common error patterns"""

    title: str
    description: str
    steps: List[str]
    estimated_resolution_time: Optional[str] = None


class BootguardError(Exception):
    """
    Base exception for Bootguard with structured context.

    All Bootguard exceptions inherit from this class so that every component
    boundary can classify what it catches.
    """

    def __init__(
        self,
        message: str,
        *,
        context: Optional[ExecutionContext] = None,
        category: ErrorCategory = ErrorCategory.SCHEDULING,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        resolution_hints: Optional[List[ResolutionHint]] = None,
        original_exception: Optional[BaseException] = None,
        **kwargs
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ExecutionContext()
        self.category = category
        self.severity = severity
        self.resolution_hints = resolution_hints or []
        self.original_exception = original_exception
        self.additional_data = kwargs

    def format_diagnostic_message(self) -> str:
        """
        Format a multi-line diagnostic message for logs and the CLI.

        Includes severity, execution context, resolution hints and the
        original exception (type and message only, never a traceback).
        """
        lines = [
            f"{'='*80}",
            f"ERROR: {self.message}",
            f"Severity: {self.severity.value.upper()} | Category: {self.category.value}",
            f"{'='*80}",
            "",
            "EXECUTION CONTEXT:",
        ]

        context_dict = self.context.to_dict()
        for key, value in context_dict.items():
            if key == 'metadata' and isinstance(value, dict):
                for meta_key, meta_value in value.items():
                    lines.append(f"  {meta_key}: {meta_value}")
            else:
                lines.append(f"  {key}: {value}")

        if self.resolution_hints:
            lines.append("")
            lines.append("RESOLUTION HINTS:")
            for i, hint in enumerate(self.resolution_hints, 1):
                lines.append(f"\n{i}. {hint.title}")
                lines.append(f"   {hint.description}")
                if hint.steps:
                    lines.append("   Steps:")
                    for step in hint.steps:
                        lines.append(f"     - {step}")
                if hint.estimated_resolution_time:
                    lines.append(f"   Est. Time: {hint.estimated_resolution_time}")

        if self.original_exception:
            lines.append("")
            lines.append("ORIGINAL EXCEPTION:")
            lines.append(
                f"  {type(self.original_exception).__name__}: {self.original_exception}"
            )

        lines.append("")
        lines.append(f"{'='*80}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for structured logging and storage"""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "context": self.context.to_dict(),
            "resolution_hints": [
                {
                    "title": hint.title,
                    "description": hint.description,
                    "steps": hint.steps,
                    "estimated_time": hint.estimated_resolution_time,
                }
                for hint in self.resolution_hints
            ],
            "original_exception": str(self.original_exception) if self.original_exception else None,
            **self.additional_data
        }


# Configuration Errors
class ConfigurationError(BootguardError):
    """Configuration-related errors"""
    def __init__(self, message: str, **kwargs):
        super().__init__(message, category=ErrorCategory.CONFIGURATION, **kwargs)


class InvalidConfigurationError(ConfigurationError):
    """Invalid configuration parameter or structure"""
    def __init__(self, message: str, config_path: Optional[str] = None, **kwargs):
        if config_path:
            message = f"{message} (config_path: {config_path})"
        if "resolution_hints" not in kwargs:
            kwargs["resolution_hints"] = [
                ResolutionHint(
                    title="Fix Bootguard Configuration",
                    description="The configuration file failed validation",
                    steps=[
                        "Open config/bootguard.yaml",
                        "Compare the reported field with the documented defaults",
                        "Validate again: bootguard probe --config <path>",
                    ],
                    estimated_resolution_time="5 minutes",
                )
            ]
        super().__init__(message, severity=ErrorSeverity.ERROR, **kwargs)


# Storage Errors
class StoreError(BootguardError):
    """Configuration store or task queue I/O failure"""
    def __init__(self, message: str, key: Optional[str] = None, **kwargs):
        if key:
            kwargs["metadata"] = kwargs.get("metadata", {})
            kwargs["metadata"]["key"] = key
        super().__init__(message, category=ErrorCategory.STORAGE, severity=ErrorSeverity.RECOVERABLE, **kwargs)


# Feature Errors (tier 1: contained by the scheduler)
class FeatureActivationError(BootguardError):
    """A single feature failed to activate"""
    def __init__(self, message: str, feature_id: Optional[str] = None, **kwargs):
        if feature_id:
            message = f"{message} (feature: {feature_id})"
        super().__init__(message, category=ErrorCategory.FEATURE, severity=ErrorSeverity.RECOVERABLE, **kwargs)


# State Errors
class StateError(BootguardError):
    """Installation state management errors"""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.STATE)
        super().__init__(message, **kwargs)


class InvalidStateTransitionError(StateError):
    """A status transition that the installation state machine forbids"""
    def __init__(self, current: str, target: str, **kwargs):
        super().__init__(
            f"Invalid installation status transition: {current} -> {target}",
            severity=ErrorSeverity.ERROR,
            **kwargs
        )
        self.current = current
        self.target = target


class StateInvariantError(StateError):
    """Installation state violates a structural invariant"""
    def __init__(self, message: str, **kwargs):
        super().__init__(message, severity=ErrorSeverity.ERROR, **kwargs)


# Scheduler Infrastructure Errors (tier 2: escalated to the supervisor)
class SchedulerInfrastructureError(BootguardError):
    """Failure of the scheduling machinery itself, not of a single feature"""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.SCHEDULING)
        kwargs.setdefault("severity", ErrorSeverity.ERROR)
        super().__init__(message, **kwargs)


class StateLoadError(SchedulerInfrastructureError):
    """Installation state could not be read from the configuration store"""
    def __init__(self, message: str = "Failed to load installation state", **kwargs):
        kwargs.setdefault("category", ErrorCategory.STORAGE)
        super().__init__(message, **kwargs)


class StateCorruptionError(StateLoadError):
    """Persisted installation state is unreadable or fails its checksum"""
    def __init__(self, message: str = "Persisted installation state is corrupt", **kwargs):
        if "resolution_hints" not in kwargs:
            kwargs["resolution_hints"] = [
                ResolutionHint(
                    title="Reset Installation State",
                    description="The stored installation record cannot be trusted",
                    steps=[
                        "Inspect the current record: bootguard status",
                        "Reset the installation: bootguard reset --yes",
                        "Complete guided setup again: bootguard setup",
                    ],
                    estimated_resolution_time="5 minutes",
                )
            ]
        kwargs.setdefault("category", ErrorCategory.STATE)
        super().__init__(message, **kwargs)


class StatePersistenceError(SchedulerInfrastructureError):
    """Installation state could not be written to the configuration store"""
    def __init__(self, message: str = "Failed to save installation state", **kwargs):
        kwargs.setdefault("category", ErrorCategory.STORAGE)
        super().__init__(message, **kwargs)


class BatchFailureError(SchedulerInfrastructureError):
    """Consecutive batches failed for every feature they attempted"""
    def __init__(self, consecutive_failures: int, **kwargs):
        super().__init__(
            f"{consecutive_failures} consecutive feature batches failed",
            **kwargs
        )
        self.consecutive_failures = consecutive_failures


class CoreActivationError(SchedulerInfrastructureError):
    """A fixed core feature could not be activated"""
    def __init__(self, feature_id: str, reason: Optional[str] = None, **kwargs):
        message = f"Core feature '{feature_id}' failed to activate"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, **kwargs)
        self.feature_id = feature_id


# Runtime-level failures (tier 3: fatal trap)
class BootstrapDisabledError(BootguardError):
    """Bootstrap work was disabled by the fatal trap"""
    def __init__(self, reason: str, **kwargs):
        if "resolution_hints" not in kwargs:
            kwargs["resolution_hints"] = [
                ResolutionHint(
                    title="Re-enable Bootstrap",
                    description="A runtime failure disabled all bootstrap work",
                    steps=[
                        "Review the recorded failure: bootguard status",
                        "Raise the memory or execution time limit if they were exhausted",
                        "Reset the installation: bootguard reset --yes",
                    ],
                    estimated_resolution_time="10 minutes",
                )
            ]
        super().__init__(
            f"Bootstrap disabled: {reason}",
            category=ErrorCategory.RESOURCE,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


# Interpreter-level failures that only the fatal trap may contain
RUNTIME_FAILURES = (MemoryError, RecursionError, SystemError)
