"""
Installation state package.

Provides the persisted installation record, its repository and the
configuration stores it is written to.
"""

from .installation_state import (
    ALLOWED_TRANSITIONS,
    InstallationState,
    InstallationStatus,
)
from .repository import InstallationStateRepository
from .stores import ConfigStore, DuckDBConfigStore, InMemoryConfigStore

__all__ = [
    "ALLOWED_TRANSITIONS",
    "InstallationState",
    "InstallationStatus",
    "InstallationStateRepository",
    "ConfigStore",
    "DuckDBConfigStore",
    "InMemoryConfigStore",
]
