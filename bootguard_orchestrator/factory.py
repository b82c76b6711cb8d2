"""
Factory wiring a BootstrapService from configuration.

Host applications supply the activation callables for their features, either
directly or through the `activators` setting (a `module:attribute` path).
Every other collaborator is built from the configuration's storage and
logging sections unless passed in explicitly.
"""

from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

from .config.loader import BootguardConfig, load_bootguard_config
from .exceptions import InvalidConfigurationError
from .logger import BootstrapLogger
from .notifications import LoggingNotificationSink, NotificationSink
from .resources.probe import EnvironmentInspector, EnvironmentProbe
from .scheduling.registry import Activator, CallableFeatureRegistry, FeatureRegistry, LedgerFeatureRegistry
from .scheduling.task_queue import DuckDBTaskQueue, InMemoryTaskQueue, TaskQueue
from .service import BootstrapService
from .state.stores import ConfigStore, DuckDBConfigStore, InMemoryConfigStore

logger = logging.getLogger(__name__)


def load_activators(target: str) -> Dict[str, Activator]:
    """Import the host's activators from a `module:attribute` path.

    The attribute is either a mapping of feature id to callable, or a
    callable returning one.
    """
    module_name, _, attribute = target.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise InvalidConfigurationError(f"Cannot import activator module '{module_name}': {e}") from e

    activators = getattr(module, attribute, None)
    if activators is None:
        raise InvalidConfigurationError(f"Module '{module_name}' has no attribute '{attribute}'")
    if callable(activators) and not isinstance(activators, dict):
        activators = activators()
    if not isinstance(activators, dict) or not all(callable(fn) for fn in activators.values()):
        raise InvalidConfigurationError(
            f"'{target}' must be a mapping of feature id to callable, or a callable returning one"
        )

    logger.info("Loaded %d feature activators from %s", len(activators), target)
    return dict(activators)

def build_storage(config: BootguardConfig) -> Tuple[ConfigStore, TaskQueue]:
    """Create the configuration store and task queue for the configured backend."""
    storage = config.storage
    if storage.backend == "memory":
        return InMemoryConfigStore(), InMemoryTaskQueue()
    db_path = storage.resolved_db_path()
    return (
        DuckDBConfigStore(db_path, retries=storage.max_retries),
        DuckDBTaskQueue(db_path, retries=storage.max_retries),
    )


def build_registry(
    config: BootguardConfig,
    store: ConfigStore,
    activators: Optional[Dict[str, Activator]] = None,
) -> FeatureRegistry:
    """Callable registry made idempotent by a ledger.

    Core and catalog features without an activator are reported as fatal
    failures when scheduled; nothing is marked active without running.
    """
    table: Dict[str, Activator] = dict(activators or {})
    known = list(config.scheduling.core_features) + config.feature_ids()
    missing = [feature_id for feature_id in known if feature_id not in table]
    if activators and missing:
        logger.warning("No activator registered for: %s", ", ".join(missing))
    return LedgerFeatureRegistry(CallableFeatureRegistry(table), store)


def create_bootstrap_service(
    config: Optional[BootguardConfig] = None,
    *,
    config_path: Optional[Path] = None,
    activators: Optional[Dict[str, Activator]] = None,
    registry: Optional[FeatureRegistry] = None,
    notifier: Optional[NotificationSink] = None,
    inspector: Optional[EnvironmentInspector] = None,
    event_logger: Optional[BootstrapLogger] = None,
    console_logging: bool = False,
    register_exit_hook: bool = True,
) -> BootstrapService:
    """Build a ready-to-use BootstrapService.

    Args:
        config: Parsed configuration; loaded from `config_path` when omitted
        config_path: YAML file to load (BOOTGUARD_CONFIG or the shipped default when omitted)
        activators: Feature id to activation callable; loaded from the `activators` setting when omitted
        registry: Full registry override; `activators` is ignored when given
        notifier: Operator notification sink; logs notifications when omitted
        inspector: Environment inspector; reads the current process when omitted
        event_logger: Structured logger; built from the logging section when omitted
        console_logging: Echo structured events to the console
        register_exit_hook: Register the fatal trap's interpreter exit hook

    Returns:
        Configured BootstrapService
    """
    config = config or load_bootguard_config(config_path)
    if event_logger is None:
        event_logger = BootstrapLogger(
            log_level=config.logging.level,
            log_dir=config.logging.log_dir,
            console=console_logging,
        )

    store, task_queue = build_storage(config)
    if registry is None:
        if activators is None and config.activators:
            activators = load_activators(config.activators)
        registry = build_registry(config, store, activators)

    return BootstrapService(
        config,
        store=store,
        task_queue=task_queue,
        registry=registry,
        notifier=notifier or LoggingNotificationSink(event_logger),
        probe=EnvironmentProbe(inspector) if inspector is not None else None,
        event_logger=event_logger,
        register_exit_hook=register_exit_hook,
    )
