"""Configuration module for Bootguard.

Submodules:
    - paths: Project root, config file and database path utilities
    - policy: Resource scoring tiers and mode breakpoints
    - scheduling: Batch sizes, retry limits and the feature catalog
    - loader: BootguardConfig and config loading
"""

from .paths import (
    get_project_root,
    get_database_path,
    get_default_config_path,
)

from .policy import (
    MemoryHeadroomTier,
    ExecutionTimeTier,
    RuntimeVersionPolicy,
    ModeBreakpoints,
    ScoringPolicy,
    parse_version,
)

from .scheduling import (
    ModeBatchSizes,
    SchedulingSettings,
    FeatureDefinition,
)

from .loader import (
    StorageSettings,
    LoggingSettings,
    BootguardConfig,
    load_bootguard_config,
)

__all__ = [
    "get_project_root",
    "get_database_path",
    "get_default_config_path",
    "MemoryHeadroomTier",
    "ExecutionTimeTier",
    "RuntimeVersionPolicy",
    "ModeBreakpoints",
    "ScoringPolicy",
    "parse_version",
    "ModeBatchSizes",
    "SchedulingSettings",
    "FeatureDefinition",
    "StorageSettings",
    "LoggingSettings",
    "BootguardConfig",
    "load_bootguard_config",
]
