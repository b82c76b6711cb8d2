#!/usr/bin/env python3
"""
Bootguard CLI

Rich-based operator CLI for the Bootguard bootstrap scheduler.
Wraps bootguard_orchestrator services with terminal-friendly output.
"""

from __future__ import annotations

from typing import List, Optional

import typer
from rich.console import Console

from .commands.bootstrap import run_bootstrap, run_worker
from .commands.setup import complete_setup, enable_features, list_features, reset_installation, skip_setup
from .commands.status import probe_environment, show_status

# Initialize Rich console
console = Console()

# Main app
app = typer.Typer(
    name="bootguard",
    help="Bootguard CLI - adaptive, resource-aware bootstrap scheduling",
    rich_markup_mode="rich",
    no_args_is_help=True,
    add_completion=True,
)


def version_callback(value: bool):
    if value:
        from bootguard_cli import __version__
        console.print(f"Bootguard v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version information"
    ),
):
    """
    [bold blue]Bootguard CLI[/bold blue]

    Inspect the environment, drive guided setup and run bootstrap steps for
    installations that complete progressively across many short invocations.

    [dim]Examples:[/dim]
        bootguard probe                     # Score the current environment
        bootguard setup -f bookings         # Finish guided setup
        bootguard run                       # Run one bootstrap step
        bootguard status --detailed         # Show installation progress
    """
    pass


@app.command("probe")
def probe(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to bootguard config YAML"),
    memory_limit: Optional[str] = typer.Option(None, "--memory-limit", help="Simulate a memory limit (e.g. '64M', '-1')"),
    memory_used: Optional[str] = typer.Option(None, "--memory-used", help="Simulate memory already in use (e.g. '40M')"),
    execution_time: Optional[float] = typer.Option(None, "--execution-time", help="Simulate an execution time limit in seconds (0 = unlimited)"),
    runtime_version: Optional[str] = typer.Option(None, "--runtime-version", help="Simulate a runtime version (e.g. '3.9')"),
):
    """🔬 Probe resources and show the recommended loading mode."""
    probe_environment(
        config=config,
        memory_limit=memory_limit,
        memory_used=memory_used,
        execution_time=execution_time,
        runtime_version=runtime_version,
    )


@app.command("status")
def status(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to bootguard config YAML"),
    detailed: bool = typer.Option(False, "--detailed", "-d", help="Show per-feature progress"),
):
    """🔍 Show installation status, effective mode and disabled flag."""
    show_status(config=config, detailed=detailed)


@app.command("run")
def run(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to bootguard config YAML"),
    deferred: bool = typer.Option(False, "--deferred", help="Run as the deferred continuation task"),
    memory_limit: Optional[str] = typer.Option(None, "--memory-limit", help="Simulate a memory limit (e.g. '64M')"),
    memory_used: Optional[str] = typer.Option(None, "--memory-used", help="Simulate memory already in use"),
    execution_time: Optional[float] = typer.Option(None, "--execution-time", help="Simulate an execution time limit in seconds"),
    runtime_version: Optional[str] = typer.Option(None, "--runtime-version", help="Simulate a runtime version"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Echo structured events"),
):
    """🚀 Run one bootstrap invocation."""
    run_bootstrap(
        config=config,
        deferred=deferred,
        memory_limit=memory_limit,
        memory_used=memory_used,
        execution_time=execution_time,
        runtime_version=runtime_version,
        verbose=verbose,
    )


@app.command("worker")
def worker(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to bootguard config YAML"),
    watch: bool = typer.Option(False, "--watch", "-w", help="Keep polling for due tasks"),
    interval: float = typer.Option(5.0, "--interval", help="Polling interval in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Echo structured events"),
):
    """⏱️ Run due deferred continuation tasks."""
    run_worker(config=config, watch=watch, interval=interval, verbose=verbose)


@app.command("features")
def features(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to bootguard config YAML"),
):
    """📋 List the feature catalog."""
    list_features(config=config)


@app.command("setup")
def setup(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to bootguard config YAML"),
    feature: Optional[List[str]] = typer.Option(None, "--feature", "-f", help="Feature to install (repeatable or comma-separated; defaults when omitted)"),
    mode: Optional[str] = typer.Option(None, "--mode", help="Cap the loading mode (ultra-minimal, minimal, progressive, standard, full)"),
):
    """🧭 Complete guided setup with the chosen features."""
    complete_setup(config=config, features=feature, mode=mode)


@app.command("skip-setup")
def skip_setup_cmd(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to bootguard config YAML"),
):
    """⏭️ Skip guided setup and install the default features."""
    skip_setup(config=config)


@app.command("enable")
def enable(
    features: List[str] = typer.Argument(..., help="Features to queue"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to bootguard config YAML"),
):
    """➕ Queue additional features."""
    enable_features(config=config, features=features)


@app.command("reset")
def reset(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to bootguard config YAML"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
):
    """♻️ Reset the installation and clear the disabled flag."""
    reset_installation(config=config, yes=yes)


if __name__ == "__main__":
    app()
