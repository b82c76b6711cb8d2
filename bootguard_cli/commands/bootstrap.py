"""
Bootstrap commands for the Bootguard CLI

Run one bootstrap invocation or drain the deferred continuation queue.
"""

from __future__ import annotations

import time
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from bootguard_orchestrator.exceptions import BootguardError, BootstrapDisabledError
from bootguard_orchestrator.scheduling.scheduler import InvocationTrigger
from bootguard_orchestrator.service import BootstrapService, InvocationReport
from bootguard_orchestrator.state.installation_state import InstallationStatus

from ..ui.messages import (
    MODE_STYLES,
    STATUS_STYLES,
    show_error_message,
    show_success_message,
    show_warning_message,
    styled,
)
from ..utils.config_helpers import build_service
from .status import simulated_inspector

console = Console()


def _print_report(report: InvocationReport) -> None:
    table = Table(show_header=True, header_style="bold blue", title=f"Invocation {report.invocation_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Trigger", report.trigger.value)
    table.add_row("Score", f"{report.score.score}/100" if report.score else "-")
    table.add_row("Recommended mode", styled(report.recommended_mode.value if report.recommended_mode else None, MODE_STYLES))
    table.add_row("Effective mode", styled(report.effective_mode.value if report.effective_mode else None, MODE_STYLES))
    table.add_row("Status", styled(report.status.value if report.status else None, STATUS_STYLES))
    table.add_row("Activated", ", ".join(report.activated) or "-")
    table.add_row("Failed", ", ".join(report.failed) or "-")
    if report.halted_reason:
        table.add_row("Halted", report.halted_reason)
    table.add_row("Continuation", "scheduled" if report.continuation_scheduled else "-")
    console.print(table)

    for error in report.errors:
        show_warning_message("Recovered from a bootstrap failure", error)


def _disabled_diagnostic(service: BootstrapService) -> BootstrapDisabledError:
    flag = service.trap.disabled_flag() or {}
    return BootstrapDisabledError(flag.get("reason", "unknown runtime failure"))


def run_bootstrap(
    config: Optional[str] = None,
    deferred: bool = False,
    memory_limit: Optional[str] = None,
    memory_used: Optional[str] = None,
    execution_time: Optional[float] = None,
    runtime_version: Optional[str] = None,
    verbose: bool = False,
):
    """Run one bootstrap invocation, as a host process would on startup."""
    try:
        inspector = simulated_inspector(memory_limit, memory_used, execution_time, runtime_version)
        service = build_service(config, inspector=inspector, verbose=verbose, require_activators=True)
        trigger = InvocationTrigger.DEFERRED if deferred else InvocationTrigger.OPERATOR
        report = service.run_invocation(trigger)
    except (BootguardError, ValueError) as e:
        show_error_message(f"Bootstrap invocation failed: {e}")
        raise typer.Exit(1)

    if report.skipped_reason:
        console.print(_disabled_diagnostic(service).format_diagnostic_message(), markup=False)
        raise typer.Exit(1)

    _print_report(report)

    if report.tripped:
        show_error_message("Bootstrap disabled after a fatal runtime failure", "Run: bootguard status")
        raise typer.Exit(1)
    if report.status == InstallationStatus.FAILED:
        show_error_message("Installation failed", "Run: bootguard status --detailed")
        raise typer.Exit(1)
    if report.halted_reason:
        show_warning_message(report.halted_reason)
    elif report.status == InstallationStatus.COMPLETE:
        show_success_message("Installation complete")


def run_worker(
    config: Optional[str] = None,
    watch: bool = False,
    interval: float = 5.0,
    verbose: bool = False,
):
    """Run due deferred tasks once, or keep polling with --watch."""
    try:
        service = build_service(config, verbose=verbose, require_activators=True)
    except BootguardError as e:
        show_error_message(f"Failed to start worker: {e.message}")
        raise typer.Exit(1)

    processed: List[InvocationReport] = []
    try:
        while True:
            reports = service.run_due_tasks()
            for report in reports:
                _print_report(report)
            processed.extend(reports)
            if not watch:
                break
            time.sleep(interval)
    except KeyboardInterrupt:
        console.print("\n⏹️ [yellow]Worker stopped[/yellow]")
    except BootguardError as e:
        show_error_message(f"Deferred task processing failed: {e.message}")
        raise typer.Exit(1)

    if not processed:
        console.print("💤 [dim]No deferred tasks due[/dim]")
    else:
        show_success_message(f"Processed {len(processed)} deferred task(s)")
