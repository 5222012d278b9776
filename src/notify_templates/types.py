from __future__ import annotations

from enum import StrEnum
from typing import Any


class ElementType(StrEnum):
    HEADER = "header"
    LOGO = "logo"
    TEXT = "text"
    STATISTICS = "statistics"
    RECORD_COUNT = "record-count"
    DATE_RANGE = "date-range"
    DATATABLE = "datatable"
    DOWNLOAD_BUTTON = "download-button"
    MORE_RECORDS = "more-records"
    DIVIDER = "divider"
    SPACER = "spacer"
    ICON = "icon"
    ROW = "row"
    FOOTER = "footer"
    GRAPH = "graph"


class StatOperation(StrEnum):
    SUM = "sum"
    MEAN = "mean"
    MIN = "min"
    MAX = "max"
    MEDIAN = "median"
    COUNT = "count"
    DISTINCT = "distinct"
    FIRST = "first"
    LAST = "last"


class FormatType(StrEnum):
    AUTO = "auto"
    TEXT = "text"
    NUMBER = "number"
    CURRENCY = "currency"
    PERCENT = "percent"
    DATE = "date"


class ChartType(StrEnum):
    BAR = "bar"
    LINE = "line"
    PIE = "pie"


class LogicOperator(StrEnum):
    AND = "AND"
    OR = "OR"


class FieldType(StrEnum):
    """Remote feature-service field types."""

    OID = "esriFieldTypeOID"
    GLOBAL_ID = "esriFieldTypeGlobalID"
    GUID = "esriFieldTypeGUID"
    STRING = "esriFieldTypeString"
    INTEGER = "esriFieldTypeInteger"
    SMALL_INTEGER = "esriFieldTypeSmallInteger"
    BIG_INTEGER = "esriFieldTypeBigInteger"
    DOUBLE = "esriFieldTypeDouble"
    SINGLE = "esriFieldTypeSingle"
    DATE = "esriFieldTypeDate"
    DATE_ONLY = "esriFieldTypeDateOnly"
    TIMESTAMP_OFFSET = "esriFieldTypeTimestampOffset"
    GEOMETRY = "esriFieldTypeGeometry"
    BLOB = "esriFieldTypeBlob"


# Operations the remote service can compute with ``outStatistics``.
SERVER_AGGREGABLE: frozenset[StatOperation] = frozenset(
    {StatOperation.SUM, StatOperation.MEAN, StatOperation.MIN, StatOperation.MAX, StatOperation.COUNT}
)

DataRecord = dict[str, Any]
RenderContext = dict[str, str]
