"""Statistics card HTML."""

from __future__ import annotations

import html
import re
from collections.abc import Mapping, Sequence

from notify_templates.template.models import Statistic, StatisticsLayout, Theme
from notify_templates.template.placeholders import stat_key

MIN_LABEL_SIZE = 9
LABEL_SIZE_RATIO = 0.45

_LEADING_NUMBER = re.compile(r"^\s*(\d+(?:\.\d+)?)")

_CONTAINER_MARGINS = {
    "left": "0 auto 0 0",
    "center": "0 auto",
    "right": "0 0 0 auto",
}


def _size(value: int | str, default: float) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = _LEADING_NUMBER.match(str(value))
    return float(match.group(1)) if match else default


def label_size(value_size: int | str) -> int:
    """Card label font size in px: 45% of the value size, never below 9."""
    return max(MIN_LABEL_SIZE, round(_size(value_size, 24) * LABEL_SIZE_RATIO))


def _alignment(value: str) -> str:
    return value if value in _CONTAINER_MARGINS else "center"


def render_cards(
    statistics: Sequence[Statistic],
    context: Mapping[str, str],
    theme: Theme | None = None,
    *,
    value_size: int | str = 24,
    value_alignment: str = "center",
    container_width: int | str = 100,
    container_alignment: str = "center",
) -> str:
    """Render one table row with a card per statistic, label above value.

    Values are read from ``stat_<id>`` in *context*; a missing value shows
    as ``-``.
    """
    if not statistics:
        return ""

    theme = theme or Theme()
    value_px = int(_size(value_size, 24))
    width = min(max(_size(container_width, 100), 1), 100)
    text_align = _alignment(value_alignment)
    cell_width = f"{100 / len(statistics):.2f}".rstrip("0").rstrip(".")

    cells = []
    for stat in statistics:
        value = context.get(stat_key(stat.id)) or "-"
        cells.append(
            f'<td style="width: {cell_width}%; padding: 10px; text-align: {text_align}; vertical-align: top;">'
            f'<div style="background: {theme.background_color}; padding: 15px; border-radius: 6px; '
            f'box-shadow: 0 1px 3px rgba(0,0,0,0.1);">'
            f'<p style="margin: 0; font-size: {label_size(value_size)}px; color: {theme.muted_text_color}; '
            f'text-transform: uppercase; letter-spacing: 0.5px;">{html.escape(stat.display_label)}</p>'
            f'<p style="margin: 8px 0 0 0; font-size: {value_px}px; font-weight: bold; '
            f'color: {theme.primary_color};">{html.escape(str(value))}</p>'
            "</div></td>"
        )

    return (
        f'<div style="padding: 0; width: {width:g}%; margin: {_CONTAINER_MARGINS[_alignment(container_alignment)]};">'
        f'<table style="width: 100%; border-collapse: collapse; background-color: {theme.secondary_color}; '
        f'border-radius: 8px;"><tr>{"".join(cells)}</tr></table></div>'
    )


def render_layout_cards(
    layout: StatisticsLayout,
    statistics: Sequence[Statistic],
    context: Mapping[str, str],
    theme: Theme | None = None,
) -> str:
    """Render the cards for a statistics or row element.

    An empty ``selected_statistics`` selects every statistic; unknown ids are
    skipped.
    """
    if layout.selected_statistics:
        by_id = {s.id: s for s in statistics}
        chosen = [by_id[i] for i in layout.selected_statistics if i in by_id]
    else:
        chosen = list(statistics)
    return render_cards(
        chosen,
        context,
        theme,
        value_size=layout.value_size,
        value_alignment=layout.value_alignment,
        container_width=layout.container_width,
        container_alignment=layout.container_alignment,
    )
