"""
Setup commands for the Bootguard CLI

Operator control surface: guided setup, feature enablement and reset.
"""

from __future__ import annotations

from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from bootguard_orchestrator.exceptions import BootguardError
from bootguard_orchestrator.modes import LoadingMode

from ..ui.messages import show_error_message, show_success_message, show_warning_message
from ..utils.config_helpers import build_service, load_config, split_features

console = Console()


def _parse_mode(mode: Optional[str]) -> Optional[LoadingMode]:
    if mode is None:
        return None
    try:
        return LoadingMode(mode.strip().lower().replace("-", "_"))
    except ValueError:
        choices = ", ".join(m.label for m in LoadingMode.ordered())
        show_error_message(f"Unknown loading mode '{mode}'", f"Choose one of: {choices}")
        raise typer.Exit(1)


def list_features(config: Optional[str] = None):
    """Show the feature catalog and which features are enabled by default."""
    try:
        cfg = load_config(config)
    except BootguardError as e:
        show_error_message(f"Failed to load configuration: {e.message}")
        raise typer.Exit(1)

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Feature", style="cyan")
    table.add_column("Title")
    table.add_column("Default", justify="center")
    for core_id in cfg.scheduling.core_features:
        table.add_row(core_id, "[dim]core[/dim]", "always")
    for feature in cfg.features:
        table.add_row(feature.id, feature.title, "✅" if feature.default_enabled else "-")
    console.print(table)


def complete_setup(
    config: Optional[str] = None,
    features: Optional[List[str]] = None,
    mode: Optional[str] = None,
):
    """Acknowledge guided setup with the chosen features."""
    loading_mode = _parse_mode(mode)
    try:
        service = build_service(config)
        state = service.acknowledge_setup(split_features(features), loading_mode=loading_mode)
    except ValueError as e:
        show_error_message("Invalid feature selection", str(e))
        raise typer.Exit(1)
    except BootguardError as e:
        show_error_message(f"Setup failed: {e.message}")
        raise typer.Exit(1)

    show_success_message(
        f"Setup complete: {len(state.pending_features)} feature(s) queued",
        ", ".join(state.selected_features) or None,
    )
    if loading_mode is not None:
        console.print(f"🎚️ Loading mode capped at [bold]{loading_mode.label}[/bold]")


def skip_setup(config: Optional[str] = None):
    """Skip guided setup and install the default features."""
    try:
        service = build_service(config)
        state = service.skip_setup()
    except BootguardError as e:
        show_error_message(f"Failed to skip setup: {e.message}")
        raise typer.Exit(1)

    show_success_message(
        "Guided setup skipped; default features queued",
        ", ".join(state.pending_features) or None,
    )


def enable_features(config: Optional[str] = None, features: Optional[List[str]] = None):
    """Queue additional features for background activation."""
    requested = split_features(features)
    if not requested:
        show_error_message("No features given")
        raise typer.Exit(1)

    try:
        service = build_service(config)
        queued = service.enable_features(requested)
    except ValueError as e:
        show_error_message("Invalid feature selection", str(e))
        raise typer.Exit(1)
    except BootguardError as e:
        show_error_message(f"Failed to enable features: {e.message}")
        raise typer.Exit(1)

    if queued:
        show_success_message(f"Queued {len(queued)} feature(s)", ", ".join(queued))
    else:
        show_warning_message("Nothing to queue", "The requested features are already active or pending")


def reset_installation(config: Optional[str] = None, yes: bool = False):
    """Return the installation to not started and re-enable bootstrap work."""
    if not yes:
        confirmed = typer.confirm("Reset the installation and clear the disabled flag?")
        if not confirmed:
            console.print("❌ [yellow]Reset cancelled[/yellow]")
            raise typer.Exit(0)

    try:
        service = build_service(config)
        state = service.reset_installation()
    except BootguardError as e:
        show_error_message(f"Reset failed: {e.message}")
        raise typer.Exit(1)

    show_success_message(
        "Installation reset",
        f"{len(state.pending_features)} previously selected feature(s) will be activated again",
    )
