"""Rich message helpers shared by the Bootguard CLI commands."""

from __future__ import annotations

from typing import Optional

from rich.console import Console

console = Console()

MODE_STYLES = {
    "ultra_minimal": "bold red",
    "minimal": "red",
    "progressive": "yellow",
    "standard": "green",
    "full": "bold green",
}

STATUS_STYLES = {
    "not_started": "dim",
    "wizard_required": "yellow",
    "in_progress": "blue",
    "complete": "green",
    "failed": "bold red",
}


def styled(value: Optional[str], styles: dict) -> str:
    if value is None:
        return "[dim]-[/dim]"
    style = styles.get(value, "white")
    return f"[{style}]{value}[/{style}]"


def show_success_message(message: str, details: Optional[str] = None):
    """Show a formatted success message."""
    console.print(f"✅ [bold green]{message}[/bold green]")
    if details:
        console.print(f"   [dim]{details}[/dim]")


def show_warning_message(message: str, details: Optional[str] = None):
    """Show a formatted warning message."""
    console.print(f"⚠️ [bold yellow]{message}[/bold yellow]")
    if details:
        console.print(f"   [dim]{details}[/dim]")


def show_error_message(message: str, details: Optional[str] = None):
    """Show a formatted error message."""
    console.print(f"❌ [bold red]{message}[/bold red]")
    if details:
        console.print(f"   [dim]{details}[/dim]")
