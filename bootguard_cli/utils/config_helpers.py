"""
Configuration helper utilities for the Bootguard CLI

Functions to locate the configuration file and build services from it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from bootguard_orchestrator.config import BootguardConfig, get_default_config_path, load_bootguard_config
from bootguard_orchestrator.exceptions import InvalidConfigurationError
from bootguard_orchestrator.factory import create_bootstrap_service
from bootguard_orchestrator.resources.probe import EnvironmentInspector
from bootguard_orchestrator.service import BootstrapService


def find_default_config() -> Path:
    """Find the Bootguard configuration file."""
    if os.getenv("BOOTGUARD_CONFIG"):
        return get_default_config_path()

    default_paths = [
        Path("config/bootguard.yaml"),
        Path("bootguard.yaml"),
    ]

    for config_path in default_paths:
        if config_path.exists():
            return config_path

    # Project default next to the package
    return get_default_config_path()


def load_config(config: Optional[str] = None) -> BootguardConfig:
    config_path = Path(config) if config else find_default_config()
    return load_bootguard_config(config_path)


def build_service(
    config: Optional[str] = None,
    *,
    inspector: Optional[EnvironmentInspector] = None,
    verbose: bool = False,
    require_activators: bool = False,
) -> BootstrapService:
    """Build a service for one CLI command; the exit hook stays unregistered.

    Commands that activate features require the `activators` setting.
    """
    cfg = load_config(config)
    if require_activators and not cfg.activators:
        raise InvalidConfigurationError(
            "No feature activators configured; set 'activators: package.module:attribute' "
            "in the configuration or BOOTGUARD__ACTIVATORS"
        )
    return create_bootstrap_service(
        cfg,
        inspector=inspector,
        console_logging=verbose,
        register_exit_hook=False,
    )


def split_features(values: Optional[List[str]]) -> Optional[List[str]]:
    """Accept repeated options and comma separated lists alike."""
    if not values:
        return None
    features: List[str] = []
    for value in values:
        features.extend(part.strip() for part in value.split(",") if part.strip())
    return features
