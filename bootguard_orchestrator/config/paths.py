"""Path utilities for configuration management."""

from __future__ import annotations

import os
from pathlib import Path


def get_project_root() -> Path:
    """Get project root directory.

    Returns:
        Path: Absolute path to project root
    """
    # This file lives at bootguard_orchestrator/config/paths.py
    return Path(__file__).resolve().parent.parent.parent


def get_database_path() -> Path:
    """Get the configuration store database path.

    Uses the BOOTGUARD_DATABASE_PATH environment variable if set, otherwise
    '.bootguard/bootguard.duckdb'. The parent directory is created if missing.

    Returns:
        Path: Absolute path to the DuckDB file backing the configuration store
    """
    db_path = os.getenv("BOOTGUARD_DATABASE_PATH", ".bootguard/bootguard.duckdb")
    path = Path(db_path)

    path.parent.mkdir(parents=True, exist_ok=True)

    return path.resolve()


def get_default_config_path() -> Path:
    """Get the configuration file path, honouring BOOTGUARD_CONFIG."""
    override = os.getenv("BOOTGUARD_CONFIG")
    if override:
        return Path(override)
    return get_project_root() / "config" / "bootguard.yaml"
