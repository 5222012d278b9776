"""Data models for persisted template configurations.

A template document is stored externally as a camelCase JSON object::

    {html, includeCSV, theme, branding, statistics[], visualElements[]}

Every model here accepts and keeps unknown keys, so a document that is loaded
and dumped again without edits comes back unchanged.  Models are frozen: an
edit produces a new value (``model_copy``) that replaces the old one in the
owning configuration.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, model_validator
from pydantic.alias_generators import to_camel

from notify_templates.types import ChartType, ElementType, FormatType, LogicOperator, StatOperation


class DocumentModel(BaseModel):
    """Base for every persisted model: camelCase aliases, extras kept, frozen."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    def to_document(self) -> dict[str, Any]:
        """Dump back to the persisted shape, omitting keys that were never set."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


# ── Theme & branding ───────────────────────────────────────────────────────


class Theme(DocumentModel):
    """Colour, typography and layout tokens.  Every token has a default."""

    primary_color: str = "#004E7C"
    secondary_color: str = "#f2f2f2"
    accent_color: str = "#0077B6"
    text_color: str = "#333333"
    muted_text_color: str = "#666666"
    background_color: str = "#ffffff"
    border_color: str = "#dddddd"
    font_family: str = "Arial, sans-serif"
    font_size: str = "14px"
    header_font_size: str = "24px"
    sub_header_font_size: str = "16px"
    border_radius: str = "4px"

    def tokens(self) -> dict[str, str]:
        """Return the theme as placeholder tokens (``primaryColor`` -> value)."""
        return {to_camel(name): str(getattr(self, name)) for name in type(self).model_fields}


class Branding(DocumentModel):
    logo_url: str = ""
    logo_width: str | int = "150"
    logo_alignment: str = "center"


# ── Statistics ─────────────────────────────────────────────────────────────


class StatisticFormat(DocumentModel):
    """How an evaluated statistic is displayed."""

    format: FormatType = FormatType.AUTO
    decimals: int | None = None
    prefix: str = ""
    suffix: str = ""
    currency: str = "USD"
    date_format: str = "MMM D, YYYY"
    null_value: str = "-"
    thousands_separator: bool = True


class FilterRule(DocumentModel):
    field: str = ""
    operator: str = "="
    value: str | int | float | None = None


class StatisticFilter(DocumentModel):
    """Rules joined by one logic operator, or a raw advanced expression."""

    rules: list[FilterRule] = Field(default_factory=list)
    logic: LogicOperator = LogicOperator.AND
    advanced: str = ""


class Statistic(DocumentModel):
    id: str = ""
    field: str = ""
    operation: StatOperation | None = None
    label: str = ""
    format: StatisticFormat = Field(default_factory=StatisticFormat)
    filter: StatisticFilter | None = None

    @property
    def display_label(self) -> str:
        return self.label or self.id


# ── Visual elements ────────────────────────────────────────────────────────


class BaseElement(DocumentModel):
    id: str = ""

    @model_validator(mode="after")
    def _always_dump_type(self) -> BaseElement:
        # the discriminator must survive exclude_unset dumps
        if "type" in type(self).model_fields:
            self.__pydantic_fields_set__.add("type")
        return self


class HeaderElement(BaseElement):
    type: Literal["header"] = "header"
    title: str = "{{organizationName}}"
    subtitle: str = "{{notificationName}}"
    use_primary_color: bool = True


class LogoElement(BaseElement):
    type: Literal["logo"] = "logo"


class TextElement(BaseElement):
    type: Literal["text"] = "text"
    content: str = "<p>Add your custom text here...</p>"


class StatisticsLayout(BaseElement):
    """Display options shared by elements that render statistics cards."""

    selected_statistics: list[str] = Field(default_factory=list)
    value_size: int | str = 24
    value_alignment: str = "center"
    container_width: int | str = 100
    container_alignment: str = "center"


class StatisticsElement(StatisticsLayout):
    type: Literal["statistics"] = "statistics"


class RecordCountElement(BaseElement):
    type: Literal["record-count"] = "record-count"
    template: str = "We found <strong>{{recordCount}}</strong> new records matching your subscription."


class DateRangeElement(BaseElement):
    type: Literal["date-range"] = "date-range"
    template: str = "<strong>Reporting Period:</strong> {{dateRangeStart}} - {{dateRangeEnd}}"


class DatatableElement(BaseElement):
    type: Literal["datatable"] = "datatable"


class DownloadButtonElement(BaseElement):
    type: Literal["download-button"] = "download-button"


class MoreRecordsElement(BaseElement):
    type: Literal["more-records"] = "more-records"


class DividerElement(BaseElement):
    type: Literal["divider"] = "divider"


class SpacerElement(BaseElement):
    type: Literal["spacer"] = "spacer"
    height: str = "20px"


class IconElement(BaseElement):
    type: Literal["icon"] = "icon"
    icon_name: str = "Star"
    icon_size: str | int = "24"
    icon_color: str = "{{primaryColor}}"
    alignment: str = "center"


class RowElement(StatisticsLayout):
    type: Literal["row"] = "row"
    icon_name: str = "Star"
    icon_size: str | int = "32"
    icon_color: str = "{{primaryColor}}"
    icon_position: Literal["left", "right"] = "left"
    content_type: Literal["text", "statistics"] = "text"
    content: str = "<p>Add your content here...</p>"
    vertical_align: Literal["top", "center", "bottom"] = "center"
    gap: str | int = "15"


class FooterElement(BaseElement):
    type: Literal["footer"] = "footer"
    text: str = "You are receiving this because you subscribed to notifications."


class GraphElement(BaseElement):
    type: Literal["graph"] = "graph"
    graph_type: ChartType = ChartType.BAR
    title: str = ""
    label_field: str = ""
    data_field: str = ""
    operation: Literal["count", "sum", "mean"] = "count"
    max_items: int | None = None
    height: int = 250
    show_legend: bool = True
    show_values: bool = True
    filter: StatisticFilter | None = None


class UnknownElement(BaseElement):
    """An element type this version does not know; kept verbatim."""

    type: str = ""


_KNOWN_TYPES = frozenset(t.value for t in ElementType)


def _element_tag(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return kind if kind in _KNOWN_TYPES else "unknown"


VisualElement = Annotated[
    Union[
        Annotated[HeaderElement, Tag("header")],
        Annotated[LogoElement, Tag("logo")],
        Annotated[TextElement, Tag("text")],
        Annotated[StatisticsElement, Tag("statistics")],
        Annotated[RecordCountElement, Tag("record-count")],
        Annotated[DateRangeElement, Tag("date-range")],
        Annotated[DatatableElement, Tag("datatable")],
        Annotated[DownloadButtonElement, Tag("download-button")],
        Annotated[MoreRecordsElement, Tag("more-records")],
        Annotated[DividerElement, Tag("divider")],
        Annotated[SpacerElement, Tag("spacer")],
        Annotated[IconElement, Tag("icon")],
        Annotated[RowElement, Tag("row")],
        Annotated[FooterElement, Tag("footer")],
        Annotated[GraphElement, Tag("graph")],
        Annotated[UnknownElement, Tag("unknown")],
    ],
    Discriminator(_element_tag),
]


# ── Template ───────────────────────────────────────────────────────────────


class TemplateConfig(DocumentModel):
    """A complete persisted custom template."""

    html: str = ""
    include_csv: bool = Field(default=True, alias="includeCSV")
    theme: Theme = Field(default_factory=Theme)
    branding: Branding = Field(default_factory=Branding)
    statistics: list[Statistic] = Field(default_factory=list)
    visual_elements: list[VisualElement] = Field(default_factory=list)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> TemplateConfig:
        return cls.model_validate(data)

    def statistic(self, stat_id: str) -> Statistic | None:
        return next((s for s in self.statistics if s.id == stat_id), None)


# ── Notification / organization (render inputs owned elsewhere) ────────────


class DisplayField(DocumentModel):
    field: str
    label: str = ""

    @property
    def display_label(self) -> str:
        return self.label or self.field


class DataSourceConfig(DocumentModel):
    endpoint: str = ""
    username: str = ""
    password: str = ""
    display_fields: list[DisplayField | str] = Field(default_factory=list)

    def fields(self) -> list[DisplayField]:
        return [DisplayField(field=f) if isinstance(f, str) else f for f in self.display_fields]


class NotificationInfo(DocumentModel):
    id: str = "sample_notification"
    name: str = "Sample Notification"
    email_intro: str = ""
    email_zero_state_message: str = "No new records found for this period."
    source: DataSourceConfig = Field(default_factory=DataSourceConfig)


class OrganizationInfo(DocumentModel):
    id: str = "sample_org"
    name: str = "Sample Organization"
