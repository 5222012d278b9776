"""Inline-SVG chart rendering for HTML email.

Email clients neither run scripts nor fetch external stylesheets, so every
chart is a single self-contained ``<svg>`` element with inline attributes.
Degenerate input (no data, all-zero values, a pie with nothing to divide)
renders a short textual notice instead of a broken chart.
"""

from __future__ import annotations

import html
import math
from collections.abc import Sequence

from pydantic import BaseModel

from notify_templates.aggregation.graphs import GraphDatum
from notify_templates.rendering.formatting import format_number, round_half_up
from notify_templates.template.constants import SUPPLEMENTAL_PALETTE
from notify_templates.template.models import GraphElement, Theme
from notify_templates.types import ChartType

CHART_WIDTH = 400

NO_DATA_MESSAGE = "No data available"
NO_PIE_DATA_MESSAGE = "No data for pie chart"
ALL_ZERO_MESSAGE = "All values are zero. Check the graph's data field and operation."

MIN_PIE_LABEL_SHARE = 0.05
LEGEND_COLUMNS = 4
LABEL_LINE_CHARS = 12
ROTATE_AFTER = 6


class ChartOptions(BaseModel):
    height: int = 250
    title: str = ""
    show_legend: bool = True
    show_values: bool = True

    @classmethod
    def from_element(cls, element: GraphElement) -> ChartOptions:
        return cls(
            height=element.height,
            title=element.title,
            show_legend=element.show_legend,
            show_values=element.show_values,
        )


# ── Helpers ───────────────────────────────────────────────────────────────


def _n(value: float) -> str:
    """Deterministic coordinate text."""
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def _esc(text: str) -> str:
    return html.escape(str(text), quote=True)


def wrap_label(text: str, max_chars: int = LABEL_LINE_CHARS, max_lines: int = 2) -> list[str]:
    """Split a category label into at most *max_lines* lines of *max_chars*."""
    words = str(text).split()
    if not words:
        return [""]
    lines: list[str] = []
    current = ""
    for word in words:
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= max_chars or not current:
            current = candidate
        else:
            lines.append(current)
            current = word
    lines.append(current)

    lines = [line if len(line) <= max_chars else line[: max_chars - 1] + "…" for line in lines]
    if len(lines) > max_lines:
        lines = lines[:max_lines]
        last = lines[-1]
        lines[-1] = (last[: max_chars - 1] if len(last) >= max_chars else last) + "…"
    return lines


def compact_number(value: float) -> str:
    """Rounded axis label: ``1.2M``, ``45K``, ``12``, ``0.5``."""
    magnitude = abs(value)
    if magnitude >= 1_000_000:
        return format_number(value / 1_000_000, None) + "M"
    if magnitude >= 10_000:
        return format_number(round_half_up(value / 1_000), 0) + "K"
    if magnitude >= 10:
        return format_number(round_half_up(value), 0)
    return format_number(value, None)


def chart_palette(theme: Theme) -> list[str]:
    return [theme.primary_color, theme.accent_color, *SUPPLEMENTAL_PALETTE]


# ── Renderer ──────────────────────────────────────────────────────────────


class ChartRenderer:
    """Renders graph data as inline SVG using one theme."""

    def __init__(self, theme: Theme | None = None) -> None:
        self._theme = theme or Theme()
        self._palette = chart_palette(self._theme)

    def color(self, index: int) -> str:
        return self._palette[index % len(self._palette)]

    def render(
        self, chart_type: ChartType | str, data: Sequence[GraphDatum], options: ChartOptions | None = None
    ) -> str:
        options = options or ChartOptions()
        try:
            kind = ChartType(chart_type)
        except ValueError:
            kind = ChartType.BAR

        if not data:
            return self.notice(NO_DATA_MESSAGE)
        if kind == ChartType.PIE:
            if math.fsum(d.value for d in data if d.value > 0) <= 0:
                return self.notice(NO_PIE_DATA_MESSAGE)
            return self._pie(data, options)
        if max(d.value for d in data) <= 0:
            return self.notice(ALL_ZERO_MESSAGE)
        return self._axes_chart(kind, data, options)

    def notice(self, message: str) -> str:
        t = self._theme
        return (
            f'<div style="padding: 20px; text-align: center; color: {t.muted_text_color}; '
            f"font-family: {t.font_family}; font-size: 13px; border: 1px dashed {t.border_color}; "
            f'border-radius: {t.border_radius};">{_esc(message)}</div>'
        )

    # -- SVG primitives -----------------------------------------------------

    def _open(self, height: int, title: str) -> list[str]:
        label = _esc(title or "Chart")
        parts = [
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{CHART_WIDTH}" height="{height}" '
            f'viewBox="0 0 {CHART_WIDTH} {height}" role="img" aria-label="{label}" '
            f'style="display: block; margin: 0 auto; font-family: {_esc(self._theme.font_family)};">',
            f'<rect x="0" y="0" width="{CHART_WIDTH}" height="{height}" fill="{self._theme.background_color}"/>',
        ]
        if title:
            parts.append(
                f'<text x="{CHART_WIDTH // 2}" y="18" text-anchor="middle" font-size="14" '
                f'font-weight="bold" fill="{self._theme.text_color}">{_esc(title)}</text>'
            )
        return parts

    def _text(self, x: float, y: float, text: str, *, size: int = 10, anchor: str = "middle", extra: str = "") -> str:
        fill = self._theme.muted_text_color
        return (
            f'<text x="{_n(x)}" y="{_n(y)}" text-anchor="{anchor}" font-size="{size}" '
            f'fill="{fill}"{extra}>{_esc(text)}</text>'
        )

    # -- Bar / line -----------------------------------------------------------

    def _axes_chart(self, kind: ChartType, data: Sequence[GraphDatum], options: ChartOptions) -> str:
        height = max(options.height, 120)
        rotate = len(data) > ROTATE_AFTER or any(len(d.label) > LABEL_LINE_CHARS * 2 for d in data)
        left, right = 48, 16
        top = 34 if options.title else 16
        bottom = 64 if rotate else 40
        plot_w = CHART_WIDTH - left - right
        plot_h = height - top - bottom
        max_value = max(d.value for d in data)
        baseline = top + plot_h

        parts = self._open(height, options.title)

        for frac in (0.0, 0.25, 0.5, 0.75, 1.0):
            y = top + plot_h * (1 - frac)
            parts.append(
                f'<line x1="{left}" y1="{_n(y)}" x2="{CHART_WIDTH - right}" y2="{_n(y)}" '
                f'stroke="{self._theme.border_color}" stroke-width="1"/>'
            )
            parts.append(self._text(left - 6, y + 3, compact_number(max_value * frac), size=9, anchor="end"))

        slot = plot_w / len(data)
        points: list[tuple[float, float]] = []
        for i, datum in enumerate(data):
            cx = left + slot * i + slot / 2
            bar_h = plot_h * max(datum.value, 0) / max_value
            y = baseline - bar_h
            points.append((cx, y))
            if kind == ChartType.BAR:
                bar_w = max(slot * 0.6, 2)
                parts.append(
                    f'<rect x="{_n(cx - bar_w / 2)}" y="{_n(y)}" width="{_n(bar_w)}" height="{_n(bar_h)}" '
                    f'fill="{self.color(i)}" rx="2"/>'
                )
            if options.show_values:
                parts.append(self._text(cx, y - 4, compact_number(datum.value), size=9))
            parts.extend(self._category_label(cx, baseline, datum.label, rotate))

        if kind == ChartType.LINE:
            path = " ".join(f"{_n(x)},{_n(y)}" for x, y in points)
            parts.append(
                f'<polyline points="{path}" fill="none" stroke="{self.color(0)}" stroke-width="2"/>'
            )
            parts.extend(
                f'<circle cx="{_n(x)}" cy="{_n(y)}" r="3" fill="{self.color(1)}"/>' for x, y in points
            )

        parts.append(
            f'<line x1="{left}" y1="{_n(baseline)}" x2="{CHART_WIDTH - right}" y2="{_n(baseline)}" '
            f'stroke="{self._theme.muted_text_color}" stroke-width="1"/>'
        )
        parts.append("</svg>")
        return "".join(parts)

    def _category_label(self, x: float, baseline: float, label: str, rotate: bool) -> list[str]:
        if rotate:
            text = wrap_label(label, LABEL_LINE_CHARS + 4, 1)[0]
            y = baseline + 12
            return [self._text(x, y, text, size=9, anchor="end", extra=f' transform="rotate(-35 {_n(x)} {_n(y)})"')]
        return [
            self._text(x, baseline + 14 + 11 * line_no, line, size=9)
            for line_no, line in enumerate(wrap_label(label))
        ]

    # -- Pie ------------------------------------------------------------------

    def _pie(self, data: Sequence[GraphDatum], options: ChartOptions) -> str:
        height = max(options.height, 120)
        slices = [(i, d) for i, d in enumerate(data) if d.value > 0]
        total = math.fsum(d.value for _, d in slices)

        top = 30 if options.title else 10
        legend_rows = math.ceil(len(slices) / LEGEND_COLUMNS) if options.show_legend else 0
        legend_h = legend_rows * 18 + (8 if legend_rows else 0)
        radius = max(min((height - top - legend_h - 10) / 2, CHART_WIDTH / 2 - 20), 20)
        cx, cy = CHART_WIDTH / 2, top + radius

        parts = self._open(height, options.title)

        if len(slices) == 1:
            index, datum = slices[0]
            parts.append(f'<circle cx="{_n(cx)}" cy="{_n(cy)}" r="{_n(radius)}" fill="{self.color(index)}"/>')
            if options.show_values:
                parts.append(self._pie_label(cx, cy + 4, "100%"))
        else:
            angle = -math.pi / 2
            for index, datum in slices:
                share = datum.value / total
                end = angle + 2 * math.pi * share
                x1, y1 = cx + radius * math.cos(angle), cy + radius * math.sin(angle)
                x2, y2 = cx + radius * math.cos(end), cy + radius * math.sin(end)
                large_arc = 1 if share > 0.5 else 0
                parts.append(
                    f'<path d="M {_n(cx)} {_n(cy)} L {_n(x1)} {_n(y1)} '
                    f'A {_n(radius)} {_n(radius)} 0 {large_arc} 1 {_n(x2)} {_n(y2)} Z" '
                    f'fill="{self.color(index)}" stroke="{self._theme.background_color}" stroke-width="1"/>'
                )
                if options.show_values and share >= MIN_PIE_LABEL_SHARE:
                    mid = (angle + end) / 2
                    lx, ly = cx + radius * 0.65 * math.cos(mid), cy + radius * 0.65 * math.sin(mid)
                    parts.append(self._pie_label(lx, ly + 4, f"{round_half_up(share * 100)}%"))
                angle = end

        if legend_rows:
            col_w = CHART_WIDTH / LEGEND_COLUMNS
            legend_top = cy + radius + 12
            for pos, (index, datum) in enumerate(slices):
                row, col = divmod(pos, LEGEND_COLUMNS)
                x = col * col_w + 8
                y = legend_top + row * 18
                parts.append(f'<rect x="{_n(x)}" y="{_n(y)}" width="10" height="10" fill="{self.color(index)}"/>')
                parts.append(self._text(x + 14, y + 9, wrap_label(datum.label, 14, 1)[0], size=9, anchor="start"))

        parts.append("</svg>")
        return "".join(parts)

    def _pie_label(self, x: float, y: float, text: str) -> str:
        return (
            f'<text x="{_n(x)}" y="{_n(y)}" text-anchor="middle" font-size="10" '
            f'font-weight="bold" fill="#ffffff">{_esc(text)}</text>'
        )


def render_chart(
    chart_type: ChartType | str,
    data: Sequence[GraphDatum],
    theme: Theme | None = None,
    options: ChartOptions | None = None,
) -> str:
    """Render *data* as an inline SVG chart (or a textual notice)."""
    return ChartRenderer(theme).render(chart_type, data, options)
