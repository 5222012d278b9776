"""Template validation.

Validation runs at save time and reports every problem it finds instead of
stopping at the first.  Errors block saving; warnings do not.  Each message
is also filed under the path of the offending field (``statistics[0].id``,
``theme.primaryColor``, ``visualElements[2]``) so an editor can show it inline.
"""

from __future__ import annotations

import re
from collections.abc import Collection
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from notify_templates.aggregation.filters import SUPPORTED_OPERATORS, validate_advanced_filter
from notify_templates.config import get_config
from notify_templates.template.compiler import TemplateCompiler
from notify_templates.template.constants import (
    DATE_FORMAT_PRESETS,
    MAX_STAT_ID_LENGTH,
    RESERVED_STAT_IDS,
    STATIC_PLACEHOLDERS,
    THEME_COLOR_TOKENS,
)
from notify_templates.template.models import (
    BaseElement,
    DownloadButtonElement,
    GraphElement,
    RowElement,
    Statistic,
    StatisticFilter,
    StatisticsElement,
    TemplateConfig,
    UnknownElement,
)
from notify_templates.template.placeholders import (
    find_tokens,
    graph_key,
    stat_key,
    stat_label_key,
    stat_value_key,
    statistics_key,
)
from notify_templates.types import FormatType

_STAT_ID = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")
_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")
_CLASS_ATTRIBUTE = re.compile(r'class="[^"]*"')


class ValidationResult(BaseModel):
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    field_errors: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error(self, message: str, path: str | None = None) -> None:
        self.errors.append(message)
        if path:
            self.field_errors.setdefault(path, []).append(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def merge(self, other: ValidationResult) -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        for path, messages in other.field_errors.items():
            self.field_errors.setdefault(path, []).extend(messages)


# ── Single values ─────────────────────────────────────────────────────────


def validate_statistic_id(stat_id: str, existing_ids: Collection[str] = ()) -> list[str]:
    """Return the problems with *stat_id*; empty when it is usable."""
    if not stat_id or not stat_id.strip():
        return ["ID is required"]
    errors = []
    if not _STAT_ID.match(stat_id):
        errors.append("ID must start with a letter and contain only letters, numbers, and underscores")
    if len(stat_id) > MAX_STAT_ID_LENGTH:
        errors.append(f"ID must be {MAX_STAT_ID_LENGTH} characters or less")
    if stat_id in existing_ids:
        errors.append("ID must be unique")
    if stat_id in RESERVED_STAT_IDS:
        errors.append("This ID is reserved")
    return errors


def validate_hex_color(color: str) -> str | None:
    if not color:
        return "Color is required"
    if not _HEX_COLOR.match(color):
        return "Must be a valid hex color (e.g., #004E7C)"
    return None


def statistic_keys(statistic: Statistic) -> tuple[str, str, str]:
    return stat_key(statistic.id), stat_value_key(statistic.id), stat_label_key(statistic.id)


def element_key(el: BaseElement) -> str | None:
    """The context key an element's rendered HTML is stored under, if any."""
    if isinstance(el, StatisticsElement) or (isinstance(el, RowElement) and el.content_type == "statistics"):
        return statistics_key(el)
    if isinstance(el, GraphElement):
        return graph_key(el)
    return None


def element_keys(elements: list[BaseElement]) -> set[str]:
    return {key for key in map(element_key, elements) if key}


def valid_placeholder_names(template: TemplateConfig) -> set[str]:
    """Every token name a render context for *template* resolves."""
    names = set(STATIC_PLACEHOLDERS)
    for stat in template.statistics:
        if stat.id:
            names.update(statistic_keys(stat))
    names.update(element_keys(template.visual_elements))
    return names


def validate_html_template(html: str, valid_placeholders: set[str]) -> ValidationResult:
    result = ValidationResult()
    if not html or not html.strip():
        result.error("Template HTML is required", "html")
        return result

    for name in find_tokens(html):
        if name not in valid_placeholders:
            result.warn(f"Unrecognized placeholder: {{{{{name}}}}}")
    if "<div" not in html and "<table" not in html:
        result.warn("Template should contain basic HTML structure")
    if "<style>" in html or "<style " in html:
        result.warn("Email clients may not support <style> tags. Use inline styles instead.")
    if _CLASS_ATTRIBUTE.search(html):
        result.warn("Email clients may not support CSS classes. Use inline styles instead.")
    return result


def validate_filter(filter_: StatisticFilter | None, owner: str, path: str) -> ValidationResult:
    result = ValidationResult()
    if filter_ is None:
        return result
    if filter_.advanced.strip():
        for message in validate_advanced_filter(filter_.advanced):
            result.error(f"{owner}: {message}", f"{path}.filter.advanced")
        return result
    for index, rule in enumerate(filter_.rules):
        operator = (rule.operator or "=").strip().upper()
        if not rule.field:
            result.error(f"{owner}: filter rule {index + 1} needs a field", f"{path}.filter.rules[{index}]")
        if operator not in SUPPORTED_OPERATORS:
            result.error(
                f"{owner}: unsupported filter operator '{rule.operator}'", f"{path}.filter.rules[{index}]"
            )
    return result


# ── Sections ──────────────────────────────────────────────────────────────


def validate_statistics(statistics: list[Statistic], *, max_statistics: int | None = None) -> ValidationResult:
    result = ValidationResult()
    limit = max_statistics or get_config().max_statistics
    if len(statistics) > limit:
        result.error(f"A template can have at most {limit} statistics", "statistics")

    seen: list[str] = []
    key_owner: dict[str, str] = {}
    for index, stat in enumerate(statistics):
        path = f"statistics[{index}]"
        name = stat.id or str(index + 1)
        if not stat.id:
            result.error(f"Statistic {index + 1}: ID is required", f"{path}.id")
        else:
            for message in validate_statistic_id(stat.id, seen):
                result.error(f'Statistic "{stat.id}": {message}', f"{path}.id")
            seen.append(stat.id)
            for key in statistic_keys(stat):
                other = key_owner.get(key)
                if other is not None and other != stat.id:
                    result.error(
                        f'Statistic "{stat.id}": placeholder {{{{{key}}}}} collides with statistic "{other}"',
                        f"{path}.id",
                    )
                if key in STATIC_PLACEHOLDERS:
                    result.error(f'Statistic "{stat.id}": placeholder {{{{{key}}}}} is reserved', f"{path}.id")
                key_owner.setdefault(key, stat.id)
        if not stat.field:
            result.error(f'Statistic "{name}": Field is required', f"{path}.field")
        if not stat.operation:
            result.error(f'Statistic "{name}": Operation is required', f"{path}.operation")
        if not stat.label:
            result.warn(f'Statistic "{name}": Label is recommended')
        if stat.format.format == FormatType.DATE and stat.format.date_format not in DATE_FORMAT_PRESETS:
            result.warn(f'Statistic "{name}": unrecognized date format "{stat.format.date_format}"')
        result.merge(validate_filter(stat.filter, f'Statistic "{name}"', path))
    return result


def validate_elements(template: TemplateConfig) -> ValidationResult:
    result = ValidationResult()
    stat_ids = {s.id for s in template.statistics if s.id}
    seen: set[str] = set()
    key_owner: dict[str, str] = {}

    for index, el in enumerate(template.visual_elements):
        path = f"visualElements[{index}]"
        label = f"Element {index + 1}"
        if not el.id:
            result.error(f"{label}: ID is required", f"{path}.id")
        elif el.id in seen:
            result.error(f'{label}: duplicate element ID "{el.id}"', f"{path}.id")
        seen.add(el.id)

        key = element_key(el)
        if key and el.id:
            other = key_owner.setdefault(key, el.id)
            if other != el.id:
                result.error(
                    f'{label}: ID "{el.id}" yields placeholder {{{{{key}}}}} already used by element "{other}"',
                    f"{path}.id",
                )

        if isinstance(el, UnknownElement):
            result.warn(f"{label}: unknown element type '{el.type}' will be ignored")
        elif isinstance(el, (StatisticsElement, RowElement)):
            if isinstance(el, RowElement) and el.content_type != "statistics":
                continue
            missing = [i for i in el.selected_statistics if i not in stat_ids]
            if missing:
                result.warn(f"{label}: unknown statistics {', '.join(missing)}")
            if not stat_ids:
                result.warn(f"{label}: no statistics are defined")
        elif isinstance(el, GraphElement):
            if not el.label_field:
                result.error(f"{label}: graph needs a label field", f"{path}.labelField")
            if el.operation in ("sum", "mean") and not el.data_field:
                result.error(f"{label}: '{el.operation}' graph needs a data field", f"{path}.dataField")
            if el.max_items is not None and el.max_items < 1:
                result.error(f"{label}: max items must be at least 1", f"{path}.maxItems")
            result.merge(validate_filter(el.filter, label, path))
        elif isinstance(el, DownloadButtonElement) and not template.include_csv:
            result.warn(f"{label}: download button is hidden because CSV attachment is disabled")
    return result


def validate_theme(template: TemplateConfig) -> ValidationResult:
    result = ValidationResult()
    tokens = template.theme.tokens()
    for name in THEME_COLOR_TOKENS:
        message = validate_hex_color(tokens[name])
        if message:
            result.error(f"Theme {name}: {message}", f"theme.{name}")

    url = template.branding.logo_url
    if url and urlparse(url).scheme not in ("http", "https"):
        result.error("Branding logo URL must start with http:// or https://", "branding.logoUrl")
    return result


def validate_template(template: TemplateConfig | None, *, max_statistics: int | None = None) -> ValidationResult:
    """Run every check on *template*."""
    result = ValidationResult()
    if template is None:
        result.error("Custom template configuration is missing")
        return result

    source = TemplateCompiler().template_source(template)
    result.merge(validate_html_template(source, valid_placeholder_names(template)))
    result.merge(validate_statistics(template.statistics, max_statistics=max_statistics))
    result.merge(validate_elements(template))
    result.merge(validate_theme(template))
    return result
