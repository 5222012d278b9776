"""Render contexts: the ``{{name}} -> value`` mappings templates compile against.

:func:`build_sample_context` produces a complete context from mock data so a
template can always be previewed.  :func:`build_render_context` starts from
the sample context and overrides everything a live snapshot provides.  Both
also render the per-element keys (statistics cards and graphs) for the
template's visual elements.
"""

from __future__ import annotations

import html
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from notify_templates.aggregation.graphs import GraphDatum, aggregate_graph_data
from notify_templates.aggregation.statistics import EvaluatedStatistic, evaluate_records
from notify_templates.config import TemplatesConfig, get_config
from notify_templates.datasource.models import FieldMetadata
from notify_templates.datasource.orchestrator import LiveDataSnapshot, graph_panel
from notify_templates.rendering.cards import render_cards, render_layout_cards
from notify_templates.rendering.charts import ChartOptions, ChartRenderer
from notify_templates.rendering.formatting import format_number
from notify_templates.rendering.tables import (
    download_button,
    more_records_message,
    render_record_table,
    render_sample_table,
)
from notify_templates.template.models import (
    DisplayField,
    GraphElement,
    NotificationInfo,
    OrganizationInfo,
    RowElement,
    Statistic,
    StatisticsElement,
    TemplateConfig,
    Theme,
)
from notify_templates.template.placeholders import graph_key, stat_key, stat_label_key, stat_value_key, statistics_key
from notify_templates.types import RenderContext, StatOperation

logger = logging.getLogger(__name__)

SAMPLE_DATE_RANGE = {
    "dateRangeStart": "01/15/2025",
    "dateRangeEnd": "01/31/2025",
    "dateRangeStartTime": "01/15/2025 08:00",
    "dateRangeEndTime": "01/31/2025 17:00",
}
SAMPLE_DOWNLOAD_URL = "https://storage.googleapis.com/sample/file.csv"
DEFAULT_EMAIL_INTRO = '<p style="margin: 0 0 15px 0; color: #444;">Here is your notification summary with the latest data.</p>'

SAMPLE_STAT_VALUES: dict[StatOperation, float] = {
    StatOperation.SUM: 1234567,
    StatOperation.MEAN: 45678.90,
    StatOperation.MIN: 12000,
    StatOperation.MAX: 890000,
    StatOperation.MEDIAN: 156000,
    StatOperation.DISTINCT: 8,
}
SAMPLE_TEXT_VALUE = "Sample Value"

SAMPLE_GRAPH_DATA = (
    GraphDatum(label="Category A", value=42),
    GraphDatum(label="Category B", value=28),
    GraphDatum(label="Category C", value=17),
    GraphDatum(label="Category D", value=9),
)

GRAPH_ERROR_PREFIX = "Graph unavailable: "


# ── Building blocks ───────────────────────────────────────────────────────


def sample_stat_value(statistic: Statistic, record_count: int) -> Any:
    if statistic.operation == StatOperation.COUNT:
        return record_count
    return SAMPLE_STAT_VALUES.get(statistic.operation, SAMPLE_TEXT_VALUE)


def _raw_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return format_number(value, None, thousands=False)
    return str(value)


def statistic_entries(evaluated: Mapping[str, EvaluatedStatistic]) -> RenderContext:
    """``stat_<id>``, ``stat_<id>_value`` and ``stat_<id>_label`` for each statistic."""
    context: RenderContext = {}
    for stat_id, result in evaluated.items():
        context[stat_key(stat_id)] = result.formatted
        context[stat_value_key(stat_id)] = _raw_text(result.value)
        context[stat_label_key(stat_id)] = result.label
    return context


def logo_html(template: TemplateConfig) -> str:
    branding = template.branding
    if not branding.logo_url:
        return ""
    return (
        f'<div style="text-align: {html.escape(branding.logo_alignment, quote=True)}; padding: 15px 25px;">'
        f'<img src="{html.escape(branding.logo_url, quote=True)}" alt="Logo" '
        f'width="{html.escape(str(branding.logo_width), quote=True)}" style="max-width: 100%; height: auto;" />'
        "</div>"
    )


def element_entries(
    template: TemplateConfig,
    context: Mapping[str, str],
    graphs: Mapping[str, Sequence[GraphDatum]],
    graph_errors: Mapping[str, str] | None = None,
) -> RenderContext:
    """Render the per-element keys: cards HTML and chart SVG."""
    entries: RenderContext = {}
    theme = template.theme
    charts = ChartRenderer(theme)
    for element in template.visual_elements:
        if isinstance(element, StatisticsElement) or (
            isinstance(element, RowElement) and element.content_type == "statistics"
        ):
            entries[statistics_key(element)] = render_layout_cards(element, template.statistics, context, theme)
        elif isinstance(element, GraphElement):
            error = (graph_errors or {}).get(element.id)
            if error:
                entries[graph_key(element)] = charts.notice(GRAPH_ERROR_PREFIX + error)
            else:
                data = graphs.get(element.id, ())
                entries[graph_key(element)] = charts.render(element.graph_type, data, ChartOptions.from_element(element))
    return entries


def _display_fields(notification: NotificationInfo, fields: Sequence[FieldMetadata] = ()) -> list[DisplayField]:
    configured = notification.source.fields()
    if configured:
        return configured
    return [DisplayField(field=f.name, label=f.alias or f.name) for f in fields[:3]]


# ── Contexts ──────────────────────────────────────────────────────────────


def build_sample_context(
    template: TemplateConfig,
    notification: NotificationInfo | None = None,
    organization: OrganizationInfo | None = None,
    *,
    record_count: int | None = None,
    config: TemplatesConfig | None = None,
) -> RenderContext:
    """A complete context built from mock values."""
    config = config or get_config()
    notification = notification or NotificationInfo()
    organization = organization or OrganizationInfo()
    theme: Theme = template.theme
    count = config.mock_record_count if record_count is None else record_count

    evaluated = {
        s.id: EvaluatedStatistic.build(s, sample_stat_value(s, count), "sample") for s in template.statistics if s.id
    }
    stats = statistic_entries(evaluated)

    context: RenderContext = {
        "organizationName": organization.name,
        "organizationId": organization.id,
        "notificationName": notification.name,
        "notificationId": notification.id,
        "recordCount": str(count),
        "dataTable": render_sample_table(notification.source.fields(), theme),
        "moreRecordsMessage": more_records_message(count, config.preview_row_limit, theme),
        **SAMPLE_DATE_RANGE,
        "downloadButton": download_button(theme) if template.include_csv else "",
        "downloadUrl": SAMPLE_DOWNLOAD_URL,
        "statisticsHtml": render_cards([s for s in template.statistics if s.id], stats, theme),
        **stats,
        "logoHtml": logo_html(template),
        **theme.tokens(),
        "emailIntro": notification.email_intro or DEFAULT_EMAIL_INTRO,
        "emailZeroStateMessage": notification.email_zero_state_message,
    }
    sample_graphs = {
        el.id: list(SAMPLE_GRAPH_DATA)
        for el in template.visual_elements
        if isinstance(el, GraphElement)
    }
    context.update(element_entries(template, context, sample_graphs))
    return context


def build_render_context(
    template: TemplateConfig,
    snapshot: LiveDataSnapshot,
    notification: NotificationInfo | None = None,
    organization: OrganizationInfo | None = None,
    *,
    config: TemplatesConfig | None = None,
) -> RenderContext:
    """Sample context overridden with whatever *snapshot* holds.

    Without live preview (no sample records) the sample context is returned
    unchanged, so the template stays previewable after a failed fetch.
    """
    config = config or get_config()
    notification = notification or NotificationInfo()
    if not snapshot.live_preview:
        logger.debug("No live preview for '%s'; using sample context", snapshot.endpoint)
        return build_sample_context(template, notification, organization, config=config)

    theme = template.theme
    total = snapshot.record_count if snapshot.record_count is not None else len(snapshot.records)
    context = build_sample_context(template, notification, organization, record_count=total, config=config)

    fields = _display_fields(notification, snapshot.fields)
    shown = min(len(snapshot.records), config.preview_row_limit)
    context["recordCount"] = str(total)
    context["dataTable"] = render_record_table(
        snapshot.records, fields, theme, metadata=snapshot.fields, limit=config.preview_row_limit
    )
    context["moreRecordsMessage"] = more_records_message(total, shown, theme)

    if snapshot.statistics:
        context.update(statistic_entries(snapshot.statistics))
        context["statisticsHtml"] = render_cards([s for s in template.statistics if s.id], context, theme)

    graph_errors = {
        key.removeprefix("graph:"): message
        for key, message in snapshot.errors.items()
        if key.startswith("graph:") and key.removeprefix("graph:") not in snapshot.graphs
    }
    context.update(element_entries(template, context, snapshot.graphs, graph_errors))
    return context


def snapshot_from_records(
    template: TemplateConfig,
    records: Sequence[Mapping[str, Any]],
    fields: Sequence[FieldMetadata] = (),
    *,
    record_count: int | None = None,
    config: TemplatesConfig | None = None,
) -> LiveDataSnapshot:
    """Build a snapshot from records already in memory (an export or a test fixture)."""
    config = config or get_config()
    rows = [dict(r) for r in records]
    graphs = {
        el.id: aggregate_graph_data(
            rows,
            el.label_field,
            el.data_field or None,
            el.operation,
            el.max_items or config.graph_max_items,
        )
        for el in template.visual_elements
        if isinstance(el, GraphElement) and el.label_field
    }
    errors = {
        graph_panel(el.id): "No label field configured"
        for el in template.visual_elements
        if isinstance(el, GraphElement) and not el.label_field
    }
    return LiveDataSnapshot(
        endpoint="local",
        fields=list(fields),
        record_count=len(rows) if record_count is None else record_count,
        records=rows,
        statistics=evaluate_records(template.statistics, rows),
        graphs=graphs,
        errors=errors,
        live_preview=True,
    )

