"""``notify-templates validate`` -- Check a template document before saving it."""

from __future__ import annotations

from pathlib import Path

import typer

from notify_templates.exceptions import TemplateError
from notify_templates.template.loader import load_template_config
from notify_templates.template.validation import validate_template
from notify_templates_cli.ui.panels import error_panel, get_console, issues_table, success_panel


def validate(
    template_path: Path = typer.Argument(  # noqa: B008
        ...,
        help="Template document (.yaml, .yml or .json).",
    ),
    max_statistics: int | None = typer.Option(  # noqa: B008
        None,
        "--max-statistics",
        help="Override the configured statistic limit.",
    ),
) -> None:
    """Validate a template; exits with status 1 when it has errors."""
    console = get_console()

    try:
        template = load_template_config(template_path)
    except TemplateError as exc:
        error_panel("Cannot Load Template", str(exc), console=console)
        raise typer.Exit(code=1) from None

    result = validate_template(template, max_statistics=max_statistics)
    if result.errors or result.warnings:
        issues_table(f"Validation: {template_path.name}", result.errors, result.warnings, console=console)

    if not result.is_valid:
        error_panel(
            "Invalid Template",
            f"{len(result.errors)} error(s), {len(result.warnings)} warning(s).",
            console=console,
        )
        raise typer.Exit(code=1)

    success_panel(
        "Template OK",
        f"{len(template.visual_elements)} element(s), {len(template.statistics)} statistic(s), "
        f"{len(result.warnings)} warning(s).",
        console=console,
    )
