"""Version banner for the notify-templates CLI."""

from __future__ import annotations

from rich.console import Console

from notify_templates._version import __version__


def show_banner(console: Console | None = None) -> None:
    """Display the CLI name and version."""
    if console is None:
        console = Console()

    console.print(f"[bold bright_blue]notify-templates[/bold bright_blue]  [dim]v{__version__}[/dim]")
    console.print("  [bold cyan]Email template compiler for Notify[/bold cyan]")
    console.print()
