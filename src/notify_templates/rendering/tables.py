"""Record table, "more records" message and download button HTML."""

from __future__ import annotations

import html
from collections.abc import Mapping, Sequence
from typing import Any

from notify_templates.aggregation.records import lookup_field
from notify_templates.datasource.models import FieldMetadata
from notify_templates.rendering.formatting import format_field_value
from notify_templates.template.models import DisplayField, Theme

DEFAULT_SAMPLE_FIELDS = (
    DisplayField(field="Address", label="Address"),
    DisplayField(field="Value", label="Value"),
    DisplayField(field="Date", label="Date"),
)

SAMPLE_ROWS = (
    ("123 Main Street", "$450,000", "01/15/2025"),
    ("456 Oak Avenue", "$325,000", "01/14/2025"),
    ("789 Elm Drive", "$550,000", "01/13/2025"),
)

SAMPLE_FIELD_LIMIT = 3


def render_data_table(fields: Sequence[DisplayField], rows: Sequence[Sequence[str]], theme: Theme | None = None) -> str:
    """Render already-formatted *rows*; cell text is HTML-escaped."""
    theme = theme or Theme()
    header = "".join(
        f'<th style="text-align: left; padding: 10px 8px; background-color: {theme.secondary_color}; '
        f'border-bottom: 2px solid {theme.border_color};">{html.escape(f.display_label)}</th>'
        for f in fields
    )
    body = "".join(
        "<tr>"
        + "".join(
            f'<td style="padding: 10px 8px; border-bottom: 1px solid {theme.border_color};">{html.escape(cell)}</td>'
            for cell in row
        )
        + "</tr>"
        for row in rows
    )
    return (
        '<table style="width: 100%; border-collapse: collapse; margin-top: 15px; font-size: 13px;">'
        f"<thead><tr>{header}</tr></thead><tbody>{body}</tbody></table>"
    )


def render_sample_table(display_fields: Sequence[DisplayField], theme: Theme | None = None) -> str:
    """Placeholder table for previews without live data (first three fields)."""
    fields = list(display_fields[:SAMPLE_FIELD_LIMIT]) or list(DEFAULT_SAMPLE_FIELDS)
    rows = [[row[i] if i < len(row) else "-" for i in range(len(fields))] for row in SAMPLE_ROWS]
    return render_data_table(fields, rows, theme)


def _metadata_for(name: str, metadata: Mapping[str, FieldMetadata]) -> FieldMetadata | None:
    if name in metadata:
        return metadata[name]
    folded = name.casefold()
    return next((m for key, m in metadata.items() if key.casefold() == folded), None)


def format_record_row(
    record: Mapping[str, Any], fields: Sequence[DisplayField], metadata: Mapping[str, FieldMetadata]
) -> list[str]:
    cells = []
    for f in fields:
        meta = _metadata_for(f.field, metadata)
        cells.append(
            format_field_value(
                lookup_field(record, f.field),
                meta.type if meta else None,
                meta.domain_lookup() if meta else None,
            )
        )
    return cells


def render_record_table(
    records: Sequence[Mapping[str, Any]],
    fields: Sequence[DisplayField],
    theme: Theme | None = None,
    *,
    metadata: Sequence[FieldMetadata] | None = None,
    limit: int = 10,
) -> str:
    """Render the first *limit* records with type- and domain-aware formatting."""
    by_name = {m.name: m for m in metadata or ()}
    rows = [format_record_row(r, fields, by_name) for r in records[:limit]]
    return render_data_table(fields, rows, theme)


def more_records_message(total: int, shown: int, theme: Theme | None = None) -> str:
    """``"Showing first N of M records"`` paragraph; empty when nothing is hidden."""
    if total <= shown:
        return ""
    theme = theme or Theme()
    return (
        f'<p style="font-style: italic; color: {theme.muted_text_color}; margin-top: 15px; font-size: 13px;">'
        f"Showing first {shown} of {total:,} records. Download the CSV to see all data.</p>"
    )


def download_button(theme: Theme | None = None, url: str = "{{downloadUrl}}") -> str:
    theme = theme or Theme()
    return (
        f'<div style="margin: 20px 0;"><a href="{html.escape(url, quote=True)}" style="display: inline-block; '
        f"background-color: {theme.primary_color}; color: white; padding: 12px 24px; text-decoration: none; "
        f'border-radius: {theme.border_radius}; font-weight: bold;">Download Full CSV Report</a></div>'
    )
