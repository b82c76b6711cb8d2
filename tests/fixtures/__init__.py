"""
Shared Test Fixtures for Bootguard

This package contains reusable test fixtures organized by category:
- activators.py: Host activator table loaded through the activators setting
- config.py: Configuration fixtures and YAML helpers
- database.py: In-memory and DuckDB store/queue fixtures, failing store fake
- registries.py: Feature registry fakes and resource snapshot scenarios
- services.py: Bootstrap service harness wired with in-memory collaborators
"""

from .activators import ACTIVATION_CALLS, HOST_ACTIVATORS
from .config import (
    FIVE_FEATURES,
    HOST_ACTIVATORS_PATH,
    bare_duckdb_config_file,
    minimal_config,
    shipped_config,
    duckdb_config_file,
    write_config,
)
from .database import (
    FailingConfigStore,
    ManualClock,
    clock,
    duckdb_path,
    duckdb_queue,
    duckdb_store,
    memory_queue,
    memory_store,
)
from .registries import (
    MB,
    RecordingRegistry,
    constrained_inspector,
    constrained_snapshot,
    fresh_inspector,
    fresh_snapshot,
    progressive_inspector,
    progressive_snapshot,
    recording_registry,
    snapshot_of,
)
from .services import ServiceHarness, harness

__all__ = [
    # Host activators
    "ACTIVATION_CALLS",
    "HOST_ACTIVATORS",

    # Configuration fixtures
    "FIVE_FEATURES",
    "HOST_ACTIVATORS_PATH",
    "bare_duckdb_config_file",
    "minimal_config",
    "shipped_config",
    "duckdb_config_file",
    "write_config",

    # Store and queue fixtures
    "FailingConfigStore",
    "ManualClock",
    "clock",
    "duckdb_path",
    "duckdb_queue",
    "duckdb_store",
    "memory_queue",
    "memory_store",

    # Registry and snapshot fixtures
    "MB",
    "RecordingRegistry",
    "constrained_inspector",
    "constrained_snapshot",
    "fresh_inspector",
    "fresh_snapshot",
    "progressive_inspector",
    "progressive_snapshot",
    "recording_registry",
    "snapshot_of",

    # Service fixtures
    "ServiceHarness",
    "harness",
]
