"""
Status commands for the Bootguard CLI

Environment probing and installation state inspection with Rich formatting.
"""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from bootguard_orchestrator.exceptions import BootguardError
from bootguard_orchestrator.resources.data_models import ResourceSnapshot
from bootguard_orchestrator.resources.probe import StaticEnvironmentInspector, parse_memory_value

from ..ui.messages import MODE_STYLES, STATUS_STYLES, show_error_message, show_warning_message, styled
from ..utils.config_helpers import build_service

console = Console()


def _format_memory(value: int) -> str:
    if value < 0:
        return "unlimited"
    return f"{value / (1024 * 1024):.0f} MB"


def _format_seconds(value: float) -> str:
    if value <= 0:
        return "unlimited"
    return f"{value:g}s"


def simulated_inspector(
    memory_limit: Optional[str],
    memory_used: Optional[str],
    execution_time: Optional[float],
    runtime_version: Optional[str],
) -> Optional[StaticEnvironmentInspector]:
    """Static inspector for the given overrides, None when nothing is overridden."""
    if memory_limit is None and memory_used is None and execution_time is None and runtime_version is None:
        return None
    return StaticEnvironmentInspector(
        memory_limit_bytes=parse_memory_value(memory_limit) if memory_limit is not None else -1,
        memory_used_bytes=max(parse_memory_value(memory_used), 0) if memory_used is not None else 0,
        execution_time_limit_seconds=execution_time if execution_time is not None else 0,
        runtime_version=runtime_version,
    )


def _snapshot_table(snapshot: ResourceSnapshot) -> Table:
    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Resource", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Memory limit", _format_memory(snapshot.memory_limit_bytes))
    table.add_row("Memory used", _format_memory(snapshot.memory_used_bytes))
    table.add_row("Memory headroom", _format_memory(snapshot.memory_headroom_bytes))
    table.add_row("Execution time limit", _format_seconds(snapshot.execution_time_limit_seconds))
    table.add_row("Runtime version", snapshot.runtime_version)
    if snapshot.load_average is not None:
        table.add_row("Load average", f"{snapshot.load_average:.2f}")
    return table


def probe_environment(
    config: Optional[str] = None,
    memory_limit: Optional[str] = None,
    memory_used: Optional[str] = None,
    execution_time: Optional[float] = None,
    runtime_version: Optional[str] = None,
):
    """Probe and score the environment without touching installation state."""
    try:
        inspector = simulated_inspector(memory_limit, memory_used, execution_time, runtime_version)
        service = build_service(config, inspector=inspector)
        snapshot = service.probe.snapshot()
        explanation = service.assess()

        if inspector is not None:
            console.print("🧪 [dim]Using simulated resource limits[/dim]")
        console.print(_snapshot_table(snapshot))

        score = explanation.score
        console.print(
            f"\n📈 Score [bold]{score.score}/100[/bold] → mode {styled(score.mode.value, MODE_STYLES)}"
        )

        if explanation.findings:
            table = Table(show_header=True, header_style="bold blue", title="Constraints")
            table.add_column("Dimension", style="cyan")
            table.add_column("Observed")
            table.add_column("Penalty", justify="right")
            table.add_column("Raise to")
            table.add_column("Would allow")
            for finding in explanation.findings:
                table.add_row(
                    finding.dimension,
                    finding.observed,
                    str(finding.penalty),
                    finding.required,
                    styled(finding.unlocks.value, MODE_STYLES),
                )
            console.print(table)
        else:
            console.print("✅ [green]No resource constraints detected[/green]")

    except (BootguardError, ValueError) as e:
        show_error_message(f"Failed to probe environment: {e}")
        raise typer.Exit(1)


def show_status(config: Optional[str] = None, detailed: bool = False):
    """Show installation progress, effective mode and the disabled flag."""
    try:
        service = build_service(config)
        report = service.status()
        state = report.state
        progress = state.progress()

        table = Table(show_header=True, header_style="bold blue")
        table.add_column("Field", style="cyan")
        table.add_column("Value")

        table.add_row("Status", styled(state.status.value, STATUS_STYLES))
        table.add_row("Effective mode", styled(state.effective_mode.value if state.effective_mode else None, MODE_STYLES))
        table.add_row("Mode ceiling", styled(state.mode_ceiling.value if state.mode_ceiling else None, MODE_STYLES))
        table.add_row("Progress", f"{progress['settled']}/{progress['selected']} settled, {progress['pending']} pending")
        table.add_row("Last activity", state.last_activity_at.isoformat() if state.last_activity_at else "-")
        if report.continuation_scheduled is not None:
            table.add_row("Continuation", "scheduled" if report.continuation_scheduled else "not scheduled")
        console.print(table)

        if detailed:
            features = Table(show_header=True, header_style="bold blue", title="Features")
            features.add_column("Feature", style="cyan")
            features.add_column("State", justify="center")
            features.add_column("Attempts", justify="right")
            for feature_id in state.selected_features:
                if feature_id in state.activated_features:
                    marker = "✅ active"
                elif feature_id in state.skipped_features:
                    marker = "⚠️ skipped"
                else:
                    marker = "⏳ pending"
                features.add_row(feature_id, marker, str(state.attempts.get(feature_id, 0)))
            console.print(features)

        if state.failure_reason:
            show_error_message("Installation failed", state.failure_reason)

        if report.disabled:
            flag = report.disabled_flag or {}
            resolution = flag.get("resolution") or ["Run: bootguard reset --yes"]
            console.print(Panel(
                f"[bold red]Bootstrap disabled[/bold red]\n"
                f"Reason: {flag.get('reason', 'unknown')}\n"
                f"Since: {flag.get('tripped_at', 'unknown')}\n"
                + "\n".join(f"[dim]💡 {hint}[/dim]" for hint in resolution),
                border_style="red",
            ))
        elif state.skipped_features:
            show_warning_message(
                f"{len(state.skipped_features)} feature(s) skipped after repeated failures",
                "Re-enable them with: bootguard enable <feature>",
            )

    except BootguardError as e:
        show_error_message(f"Failed to read installation status: {e.message}")
        raise typer.Exit(1)
