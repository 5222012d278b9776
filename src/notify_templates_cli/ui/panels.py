"""Rich output helpers for the notify-templates CLI.

Everything prints to stderr so ``render`` can stream HTML on stdout.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

ACCENT = "bright_blue"
HEADING = "bold cyan"
SUCCESS = "bold green"
WARNING = "bold yellow"
ERROR = "bold red"

_PANEL_STYLES = {
    "info": (HEADING, ACCENT),
    "success": (SUCCESS, "green"),
    "error": (ERROR, "red"),
}


def get_console() -> Console:
    return Console(stderr=True)


def _show_panel(kind: str, title: str, body: str, console: Console | None) -> None:
    title_style, border = _PANEL_STYLES[kind]
    (console or get_console()).print(
        Panel(body, title=f"[{title_style}]{title}[/{title_style}]", border_style=border, expand=False)
    )


def info_panel(title: str, body: str, *, console: Console | None = None) -> None:
    _show_panel("info", title, body, console)


def success_panel(title: str, body: str, *, console: Console | None = None) -> None:
    _show_panel("success", title, body, console)


def error_panel(title: str, body: str, *, console: Console | None = None) -> None:
    _show_panel("error", title, body, console)


def _show_table(
    title: str,
    columns: Sequence[tuple[str, dict[str, object]]],
    rows: Iterable[Sequence[str]],
    console: Console | None,
) -> None:
    table = Table(title=f"[{HEADING}]{title}[/{HEADING}]", border_style=ACCENT, expand=False)
    for header, options in columns:
        table.add_column(header, **options)
    for row in rows:
        table.add_row(*row)
    (console or get_console()).print(table)


def status_table(title: str, rows: Sequence[tuple[str, str, str]], *, console: Console | None = None) -> None:
    """Readiness rows as ``(requirement, status, detail)``."""
    columns = [
        ("Requirement", {"style": "bold white", "min_width": 25}),
        ("Status", {"justify": "center", "min_width": 10}),
        ("Detail", {"style": "dim"}),
    ]
    _show_table(title, columns, rows, console)


def issues_table(
    title: str,
    errors: Sequence[str],
    warnings: Sequence[str],
    *,
    console: Console | None = None,
) -> None:
    """Validation messages, errors first."""
    rows = [(f"[{ERROR}]ERROR[/{ERROR}]", m) for m in errors]
    rows += [(f"[{WARNING}]WARNING[/{WARNING}]", m) for m in warnings]
    _show_table(title, [("Level", {"justify": "center", "min_width": 9}), ("Message", {})], rows, console)
