"""
Resources package for Bootguard.

Measures the resources available to an invocation and scores them into a
loading mode.
"""

from .data_models import (
    UNLIMITED_MEMORY,
    UNLIMITED_TIME,
    ResourceSnapshot,
    ResourceScore,
    ConstraintFinding,
    ModeExplanation,
)
from .probe import (
    EnvironmentInspector,
    ProcessEnvironmentInspector,
    StaticEnvironmentInspector,
    EnvironmentProbe,
    parse_memory_value,
)
from .scorer import ResourceScorer

__all__ = [
    # Data models
    "UNLIMITED_MEMORY",
    "UNLIMITED_TIME",
    "ResourceSnapshot",
    "ResourceScore",
    "ConstraintFinding",
    "ModeExplanation",
    # Probe
    "EnvironmentInspector",
    "ProcessEnvironmentInspector",
    "StaticEnvironmentInspector",
    "EnvironmentProbe",
    "parse_memory_value",
    # Scoring
    "ResourceScorer",
]
