"""Template compiler: visual elements -> one HTML email body.

Compilation happens in two steps.  :meth:`TemplateCompiler.skeleton` walks the
element list in order and emits a fixed fragment per element, using
``{{name}}`` tokens wherever the content depends on data (statistics cards,
graphs, the record table, counts and dates).  :meth:`TemplateCompiler.compile`
then resolves those tokens against a render context and the theme.

Compilation never raises.  A data-dependent element whose key is missing from
the context renders a short notice in its place.
"""

from __future__ import annotations

import html
import logging
from collections.abc import Mapping, Sequence

from notify_templates.config import get_config
from notify_templates.template.icons import IconRegistry, icon_registry
from notify_templates.template.models import (
    BaseElement,
    DateRangeElement,
    DatatableElement,
    DividerElement,
    DownloadButtonElement,
    FooterElement,
    GraphElement,
    HeaderElement,
    IconElement,
    LogoElement,
    MoreRecordsElement,
    RecordCountElement,
    RowElement,
    SpacerElement,
    StatisticsElement,
    TemplateConfig,
    TextElement,
    Theme,
    UnknownElement,
)
from notify_templates.template.placeholders import graph_key, statistics_key, substitute

logger = logging.getLogger(__name__)

WRAPPER_OPEN = '<div style="font-family: {{fontFamily}}; color: {{textColor}}; max-width: 600px; margin: 0 auto;">\n'
WRAPPER_CLOSE = "</div>"

DOWNLOAD_DISABLED = "  <!-- Download button hidden: CSV attachment is disabled for this template -->\n"
STATISTICS_UNAVAILABLE = "Statistics are not available for this preview."
GRAPH_UNAVAILABLE = "Graph data is not available for this preview."

_VERTICAL_ALIGN = {"top": "flex-start", "bottom": "flex-end"}


def _notice(message: str) -> str:
    return (
        '<p style="color: {{mutedTextColor}}; font-size: 13px; font-style: italic; text-align: center;">'
        f"{html.escape(message)}</p>"
    )


class TemplateCompiler:
    """Compiles element lists against a render context."""

    def __init__(self, icons: IconRegistry | None = None, *, max_passes: int | None = None) -> None:
        self._icons = icons or icon_registry
        self._max_passes = max_passes

    # -- Skeleton -------------------------------------------------------------

    def skeleton(self, elements: Sequence[BaseElement], *, include_csv: bool = True) -> str:
        """Return the token-bearing HTML for *elements*, in list order."""
        parts = [WRAPPER_OPEN]
        for element in elements:
            parts.append(self._fragment(element, include_csv=include_csv))
        parts.append(WRAPPER_CLOSE)
        return "".join(parts)

    def _fragment(self, el: BaseElement, *, include_csv: bool) -> str:
        if isinstance(el, HeaderElement):
            background, color = (
                ("{{primaryColor}}", "white") if el.use_primary_color else ("{{secondaryColor}}", "{{textColor}}")
            )
            return (
                "  <!-- Header -->\n"
                f'  <div style="background-color: {background}; padding: 20px; color: {color}; '
                'border-radius: 8px 8px 0 0;">\n'
                f'    <h1 style="margin: 0; font-size: {{{{headerFontSize}}}};">{el.title}</h1>\n'
                f'    <p style="margin: 5px 0 0 0; opacity: 0.9;">{el.subtitle}</p>\n'
                "  </div>\n"
            )
        if isinstance(el, LogoElement):
            return "  <!-- Logo -->\n  {{logoHtml}}\n"
        if isinstance(el, TextElement):
            return f'  <div style="padding: 15px 25px;">{el.content}</div>\n'
        if isinstance(el, StatisticsElement):
            return f'  <!-- Statistics -->\n  <div style="padding: 15px 25px;">{{{{{statistics_key(el)}}}}}</div>\n'
        if isinstance(el, RecordCountElement):
            return f'  <p style="font-size: 16px; padding: 0 25px; margin: 20px 0;">{el.template}</p>\n'
        if isinstance(el, DateRangeElement):
            return (
                '  <p style="color: {{mutedTextColor}}; font-size: 13px; padding: 0 25px; margin-bottom: 20px;">'
                f"{el.template}</p>\n"
            )
        if isinstance(el, DatatableElement):
            return '  <!-- Data Table -->\n  <div style="padding: 0 25px;">{{dataTable}}</div>\n'
        if isinstance(el, DownloadButtonElement):
            if not include_csv:
                return DOWNLOAD_DISABLED
            return '  <!-- Download Button -->\n  <div style="padding: 15px 25px;">{{downloadButton}}</div>\n'
        if isinstance(el, MoreRecordsElement):
            return '  <div style="padding: 0 25px;">{{moreRecordsMessage}}</div>\n'
        if isinstance(el, DividerElement):
            return '  <hr style="border: none; border-top: 1px solid {{borderColor}}; margin: 20px 25px;" />\n'
        if isinstance(el, SpacerElement):
            return f'  <div style="height: {html.escape(str(el.height or "20px"), quote=True)};"></div>\n'
        if isinstance(el, IconElement):
            return (
                f"  <!-- Icon: {html.escape(el.icon_name)} -->\n"
                f'  <div style="text-align: {el.alignment}; padding: 15px 25px;">'
                f"{self._icon(el.icon_name, el.icon_size, el.icon_color)}</div>\n"
            )
        if isinstance(el, RowElement):
            return self._row(el)
        if isinstance(el, FooterElement):
            return (
                "  <!-- Footer -->\n"
                '  <div style="margin-top: 30px; padding: 20px 25px; border-top: 1px solid {{borderColor}}; '
                'font-size: 12px; color: {{mutedTextColor}};">\n'
                f"    <p>{el.text}</p>\n"
                '    <p><a href="#" style="color: {{accentColor}};">Manage Preferences</a></p>\n'
                "  </div>\n"
            )
        if isinstance(el, GraphElement):
            return (
                f"  <!-- Graph -->\n"
                f'  <div style="padding: 15px 25px; text-align: center;">{{{{{graph_key(el)}}}}}</div>\n'
            )
        if isinstance(el, UnknownElement):
            logger.debug("Skipping unknown element type '%s'", el.type)
        return ""

    def _icon(self, name: str, size: int | str, color: str) -> str:
        return (
            f'<span style="display: inline-block; width: {size}px; height: {size}px; color: {color};">'
            f"{self._icons.render(name, size, color)}</span>"
        )

    def _row(self, el: RowElement) -> str:
        if el.content_type == "statistics":
            content = f"{{{{{statistics_key(el)}}}}}"
        else:
            content = el.content or "<p>Content here</p>"
        icon = self._icon(el.icon_name, el.icon_size, el.icon_color)
        body = f'<div style="flex: 1; min-width: 0;">{content}</div>'
        inner = f"{body}\n    {icon}" if el.icon_position == "right" else f"{icon}\n    {body}"
        return (
            "  <!-- Row: Icon + Content -->\n"
            f'  <div style="padding: 15px 25px; display: flex; '
            f'align-items: {_VERTICAL_ALIGN.get(el.vertical_align, "center")}; gap: {el.gap}px;">\n'
            f"    {inner}\n"
            "  </div>\n"
        )

    # -- Compilation ----------------------------------------------------------

    def element_fallbacks(self, elements: Sequence[BaseElement], context: Mapping[str, str]) -> dict[str, str]:
        """Notices for data-dependent element keys absent from *context*."""
        fallbacks: dict[str, str] = {}
        for el in elements:
            if isinstance(el, StatisticsElement) or (isinstance(el, RowElement) and el.content_type == "statistics"):
                key, message = statistics_key(el), STATISTICS_UNAVAILABLE
            elif isinstance(el, GraphElement):
                key, message = graph_key(el), GRAPH_UNAVAILABLE
            else:
                continue
            if key not in context:
                fallbacks[key] = _notice(message)
        return fallbacks

    def resolve(self, html_text: str, theme: Theme, context: Mapping[str, str]) -> str:
        """Substitute *context* and theme tokens into *html_text*."""
        mapping = {**context, **theme.tokens()}
        passes = self._max_passes or get_config().max_substitution_passes
        return substitute(html_text, mapping, max_passes=passes)

    def compile(
        self,
        elements: Sequence[BaseElement],
        theme: Theme,
        context: Mapping[str, str],
        *,
        include_csv: bool = True,
    ) -> str:
        """Compile *elements* to HTML.  Same inputs always give the same output."""
        skeleton = self.skeleton(elements, include_csv=include_csv)
        merged = {**self.element_fallbacks(elements, context), **context}
        return self.resolve(skeleton, theme, merged)

    def compile_template(self, template: TemplateConfig, context: Mapping[str, str]) -> str:
        """Compile a stored template: its elements when it has any, else its raw HTML."""
        if template.visual_elements:
            return self.compile(template.visual_elements, template.theme, context, include_csv=template.include_csv)
        return self.resolve(template.html, template.theme, context)

    def template_source(self, template: TemplateConfig) -> str:
        """The token-bearing HTML a template compiles from."""
        if template.visual_elements:
            return self.skeleton(template.visual_elements, include_csv=template.include_csv)
        return template.html


def compile_elements(
    elements: Sequence[BaseElement],
    theme: Theme,
    context: Mapping[str, str],
    *,
    include_csv: bool = True,
) -> str:
    return TemplateCompiler().compile(elements, theme, context, include_csv=include_csv)


def compile_template(template: TemplateConfig, context: Mapping[str, str]) -> str:
    return TemplateCompiler().compile_template(template, context)
