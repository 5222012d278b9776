"""``notify-templates render`` -- Compile a template to email HTML."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from notify_templates.datasource.client import FeatureServiceClient
from notify_templates.datasource.models import Credentials
from notify_templates.datasource.orchestrator import LiveDataOrchestrator, LiveDataSnapshot
from notify_templates.exceptions import TemplateError
from notify_templates.template.compiler import compile_template
from notify_templates.template.context import build_render_context, build_sample_context, snapshot_from_records
from notify_templates.template.loader import load_record_export, load_template_config
from notify_templates.template.models import DataSourceConfig, NotificationInfo, TemplateConfig
from notify_templates_cli.ui.panels import error_panel, get_console, info_panel, success_panel


async def fetch_snapshot(source: DataSourceConfig, template: TemplateConfig) -> LiveDataSnapshot:
    """Run one live-data refresh against *source* through the proxy."""
    credentials = Credentials(username=source.username, password=source.password)
    async with FeatureServiceClient(credentials=credentials) as client:
        return await LiveDataOrchestrator(client).refresh(source, template)


def render(
    template_path: Path = typer.Argument(  # noqa: B008
        ...,
        help="Template document (.yaml, .yml or .json).",
    ),
    data: Path | None = typer.Option(  # noqa: B008
        None,
        "--data",
        "-d",
        help="Records export (JSON/YAML) to render with instead of sample values.",
    ),
    endpoint: str | None = typer.Option(  # noqa: B008
        None,
        "--endpoint",
        "-e",
        help="Feature service URL to fetch live preview data from.",
    ),
    output: Path | None = typer.Option(  # noqa: B008
        None,
        "--output",
        "-o",
        help="Write the HTML here instead of stdout.",
    ),
    notification_name: str = typer.Option(  # noqa: B008
        "Sample Notification",
        "--name",
        help="Notification name shown in the header.",
    ),
) -> None:
    """Render a template with sample, exported or live data."""
    console = get_console()

    if data is not None and endpoint:
        error_panel("Conflicting Options", "Use either --data or --endpoint, not both.", console=console)
        raise typer.Exit(code=1)

    try:
        template = load_template_config(template_path)
        notification = NotificationInfo(name=notification_name, source=DataSourceConfig(endpoint=endpoint or ""))
        if data is not None:
            records, fields, count = load_record_export(data)
            snapshot = snapshot_from_records(template, records, fields, record_count=count)
            context = build_render_context(template, snapshot, notification)
        elif endpoint:
            snapshot = asyncio.run(fetch_snapshot(notification.source, template))
            for panel, message in snapshot.errors.items():
                info_panel(f"Live data: {panel}", message, console=console)
            context = build_render_context(template, snapshot, notification)
        else:
            context = build_sample_context(template, notification)
    except TemplateError as exc:
        error_panel("Cannot Render", str(exc), console=console)
        raise typer.Exit(code=1) from None

    html = compile_template(template, context)

    if output is None:
        typer.echo(html)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(html, encoding="utf-8")
    success_panel("Rendered", f"Wrote {len(html):,} characters to [bold]{output}[/bold]", console=console)
