"""
Error catalog with resolution patterns for common bootstrap failures.

Provides:
- Pattern matching for known failure signatures
- Resolution suggestions attached to fatal trap notifications
- Match frequency tracking
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern

from .exceptions import BootguardError, ErrorCategory, ResolutionHint


@dataclass
class ErrorPattern:
    """Pattern for identifying and resolving known errors"""

    pattern: Pattern[str]
    category: ErrorCategory
    title: str
    description: str
    resolution_hints: List[ResolutionHint]
    frequency: int = 0

    def matches(self, error_message: str) -> bool:
        """Check if error message matches this pattern"""
        return self.pattern.search(error_message) is not None


class ErrorCatalog:
    """
    Central repository of known failure patterns and resolutions.

    Usage:
        catalog = ErrorCatalog()
        hints = catalog.find_resolution_hints("MemoryError: cannot allocate")
    """

    def __init__(self):
        self.patterns: List[ErrorPattern] = []
        self._initialize_patterns()

    def _initialize_patterns(self) -> None:
        """Initialize catalog with known failure patterns"""

        self.patterns.append(ErrorPattern(
            pattern=re.compile(r"(memoryerror|out of memory|memory exhausted|cannot allocate|unable to allocate)", re.IGNORECASE),
            category=ErrorCategory.RESOURCE,
            title="Memory Exhaustion",
            description="The host process ran out of memory during bootstrap",
            resolution_hints=[
                ResolutionHint(
                    title="Raise the Memory Limit",
                    description="Bootstrap needs more memory headroom than the host allows",
                    steps=[
                        "Check the measured limits: bootguard probe",
                        "Raise the process memory limit (BOOTGUARD_MEMORY_LIMIT or the container limit) to 256M or more",
                        "Deselect heavy features (analytics, distribution) until the limit is raised",
                        "Reset the installation: bootguard reset --yes",
                    ],
                    estimated_resolution_time="10 minutes",
                )
            ]
        ))

        self.patterns.append(ErrorPattern(
            pattern=re.compile(r"(recursionerror|maximum recursion depth|stack overflow)", re.IGNORECASE),
            category=ErrorCategory.RESOURCE,
            title="Stack Exhaustion",
            description="A feature activation recursed beyond the interpreter limit",
            resolution_hints=[
                ResolutionHint(
                    title="Isolate the Failing Feature",
                    description="One activation unit is recursing without bound",
                    steps=[
                        "Find the last activated feature in the bootstrap log",
                        "Deselect it and reset the installation: bootguard reset --yes",
                        "Report the failing feature to its maintainer",
                    ],
                    estimated_resolution_time="15 minutes",
                )
            ]
        ))

        self.patterns.append(ErrorPattern(
            pattern=re.compile(r"(time limit|timed out|timeout|execution time|cpu time)", re.IGNORECASE),
            category=ErrorCategory.RESOURCE,
            title="Execution Time Exhaustion",
            description="The invocation exceeded the host's execution time ceiling",
            resolution_hints=[
                ResolutionHint(
                    title="Raise the Execution Time Limit",
                    description="Batches must fit inside the execution time budget",
                    steps=[
                        "Check the measured limits: bootguard probe",
                        "Raise BOOTGUARD_MAX_EXECUTION_TIME or the host's CPU limit to 60s or more",
                        "Lower scheduling.slowest_activation_seconds only if activations are faster than assumed",
                    ],
                    estimated_resolution_time="10 minutes",
                )
            ]
        ))

        self.patterns.append(ErrorPattern(
            pattern=re.compile(r"(conflicting lock|could not set lock|database.*locked|lock.*database)", re.IGNORECASE),
            category=ErrorCategory.STORAGE,
            title="Configuration Store Lock Conflict",
            description="Another process holds the configuration store",
            resolution_hints=[
                ResolutionHint(
                    title="Release the Store",
                    description="DuckDB allows a single writing process per database file",
                    steps=[
                        "Close interactive sessions holding the bootguard database",
                        "Check for other workers: ps aux | grep bootguard",
                        "Retry the invocation: bootguard run",
                    ],
                    estimated_resolution_time="1-2 minutes",
                )
            ]
        ))

        self.patterns.append(ErrorPattern(
            pattern=re.compile(r"(checksum|corrupt|invalid json|expecting value)", re.IGNORECASE),
            category=ErrorCategory.STATE,
            title="Corrupt Installation State",
            description="The persisted installation record cannot be decoded",
            resolution_hints=[
                ResolutionHint(
                    title="Reset Installation State",
                    description="A fresh record is rebuilt from guided setup",
                    steps=[
                        "Reset the installation: bootguard reset --yes",
                        "Complete guided setup again: bootguard setup",
                    ],
                    estimated_resolution_time="5 minutes",
                )
            ]
        ))

    def find_resolution_hints(self, error_message: str) -> List[ResolutionHint]:
        """Find resolution hints for an error message"""
        hints = []
        for pattern in self.patterns:
            if pattern.matches(error_message):
                pattern.frequency += 1
                hints.extend(pattern.resolution_hints)
        return hints

    def match(self, error_message: str) -> Optional[ErrorPattern]:
        """Return the first pattern matching the message"""
        for pattern in self.patterns:
            if pattern.matches(error_message):
                pattern.frequency += 1
                return pattern
        return None

    def enrich_error(self, error: BootguardError) -> BootguardError:
        """Add catalog hints to an error that carries none"""
        if not error.resolution_hints:
            error.resolution_hints = self.find_resolution_hints(error.message)
        return error


_catalog: Optional[ErrorCatalog] = None


def get_error_catalog() -> ErrorCatalog:
    """Get the process-wide error catalog instance"""
    global _catalog
    if _catalog is None:
        _catalog = ErrorCatalog()
    return _catalog
