"""Graph data aggregation.

Records are grouped by a label field and reduced to ``{label, value}`` pairs,
sorted by value and truncated.  Label values are trimmed but keep their case,
so ``"Open"`` and ``"open"`` are separate buckets; field *names* are looked up
case-insensitively.  Empty labels and the sentinel labels ``unknown``,
``null`` and ``undefined`` are dropped rather than bucketed.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from notify_templates.aggregation.filters import build_where_clause
from notify_templates.aggregation.records import is_blank, lookup_field
from notify_templates.config import get_config
from notify_templates.datasource.models import OutStatistic
from notify_templates.exceptions import FeatureServiceError
from notify_templates.rendering.formatting import try_parse_numeric
from notify_templates.template.models import GraphElement

if TYPE_CHECKING:
    from notify_templates.datasource.client import FeatureServiceClient

logger = logging.getLogger(__name__)

SENTINEL_LABELS = frozenset({"unknown", "null", "undefined"})
GRAPH_OPERATIONS = frozenset({"count", "sum", "mean"})

_REMOTE_TYPES = {"count": "count", "sum": "sum", "mean": "avg"}
_NON_WORD = re.compile(r"\W")


class GraphDatum(BaseModel):
    label: str
    value: float


def normalize_label(value: Any) -> str | None:
    """Return the display label for a raw value, or ``None`` if it is dropped."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    if not text or text.casefold() in SENTINEL_LABELS:
        return None
    return text


def _reduce(values: list[Any], operation: str, *, count_rows: bool) -> float:
    if operation == "count":
        return float(len(values) if count_rows else sum(1 for v in values if not is_blank(v)))
    numbers = [n for n in (try_parse_numeric(v) for v in values) if n is not None]
    if operation == "sum":
        return math.fsum(numbers)
    return math.fsum(numbers) / len(numbers) if numbers else 0.0


def sort_and_limit(data: Iterable[GraphDatum], max_items: int | None) -> list[GraphDatum]:
    """Sort descending by value (stable) and keep the first *max_items*."""
    ordered = sorted(data, key=lambda d: d.value, reverse=True)
    if max_items is not None and max_items > 0:
        return ordered[:max_items]
    return ordered


def aggregate_graph_data(
    records: Iterable[Mapping[str, Any]],
    label_field: str,
    data_field: str | None = None,
    operation: str = "count",
    max_items: int | None = None,
) -> list[GraphDatum]:
    """Group *records* by *label_field* and reduce *data_field* per label."""
    op = operation if operation in GRAPH_OPERATIONS else "count"
    if not data_field and op != "count":
        op = "count"

    buckets: dict[str, list[Any]] = {}
    for record in records:
        label = normalize_label(lookup_field(record, label_field))
        if label is None:
            continue
        buckets.setdefault(label, []).append(lookup_field(record, data_field) if data_field else None)

    data = [
        GraphDatum(label=label, value=_reduce(values, op, count_rows=not data_field))
        for label, values in buckets.items()
    ]
    return sort_and_limit(data, max_items)


# ── Grouped server responses ───────────────────────────────────────────────


def aggregate_out_name(operation: str, field: str) -> str:
    """Out-statistic name requested for a grouped graph aggregate."""
    remote = _REMOTE_TYPES.get(operation, operation)
    return f"graph_{remote}_{_NON_WORD.sub('_', field)}"


def aggregate_name_candidates(operation: str, field: str) -> list[str]:
    """Column names under which services report a grouped aggregate."""
    remote = _REMOTE_TYPES.get(operation, operation)
    names = [
        aggregate_out_name(operation, field),
        f"{operation}_{field}",
        f"{remote}_{field}",
        f"{field}_{operation}",
        f"{field}_{remote}",
        "EXPR_1",
    ]
    return list(dict.fromkeys(names))


def _numeric_column(row: Mapping[str, Any], candidates: Sequence[str]) -> str | None:
    folded = {key.casefold(): key for key in row}
    for name in candidates:
        key = folded.get(name.casefold())
        if key is not None and try_parse_numeric(row[key]) is not None:
            return key
    return None


def _merge(values: list[tuple[float, float]], operation: str) -> float:
    if operation != "mean":
        return math.fsum(v for v, _ in values)
    total_weight = math.fsum(w for _, w in values)
    if total_weight <= 0:
        return math.fsum(v for v, _ in values) / len(values)
    return math.fsum(v * w for v, w in values) / total_weight


def parse_grouped_rows(
    rows: Sequence[Mapping[str, Any]],
    label_field: str,
    value_field: str,
    operation: str,
    *,
    attribute_threshold: int | None = None,
) -> list[GraphDatum] | None:
    """Validate a grouped-statistics response and convert it to graph data.

    Every row must hold exactly the label column and a recognisable
    aggregate column (plus, for ``mean``, the per-group count used to weight
    merged labels).  Returns ``None`` when the response does not have that
    shape, which means the service ignored the grouping request.
    """
    if not rows:
        logger.info("Grouped statistics for '%s' returned no rows", label_field)
        return None

    threshold = attribute_threshold or get_config().grouping_attribute_threshold
    candidates = aggregate_name_candidates(operation, value_field)
    weight_name = aggregate_out_name("count", value_field) if operation == "mean" else None
    merged: dict[str, list[tuple[float, float]]] = {}
    for row in rows:
        column = _numeric_column(row, candidates)
        allowed = {label_field.casefold()}
        if column is not None:
            allowed.add(column.casefold())
        if weight_name:
            allowed.add(weight_name.casefold())
        has_label = any(k.casefold() == label_field.casefold() for k in row)
        if column is None or not has_label or any(k.casefold() not in allowed for k in row):
            if len(row) > threshold:
                logger.info(
                    "Service ignored grouping on '%s' (%d attributes per row); using raw records",
                    label_field,
                    len(row),
                )
            else:
                logger.info("Unrecognised aggregate columns %s for '%s'; using raw records", sorted(row), label_field)
            return None
        label = normalize_label(lookup_field(row, label_field))
        if label is not None:
            weight = try_parse_numeric(lookup_field(row, weight_name)) if weight_name else None
            merged.setdefault(label, []).append((try_parse_numeric(row[column]), 1.0 if weight is None else weight))

    return [GraphDatum(label=label, value=_merge(values, operation)) for label, values in merged.items()]


class GraphAggregator:
    """Computes graph data for graph elements against one layer.

    Server-side grouped statistics are tried first; when the response shows
    the grouping was not honoured, raw records are fetched and aggregated
    locally.
    """

    def __init__(self, client: FeatureServiceClient, service_url: str) -> None:
        self._client = client
        self._service_url = service_url

    async def aggregate(self, element: GraphElement) -> list[GraphDatum]:
        max_items = element.max_items or get_config().graph_max_items
        operation = element.operation if element.data_field else "count"
        value_field = element.data_field or element.label_field
        where = build_where_clause(element.filter)

        data = await self._server_data(element.label_field, value_field, operation, where)
        if data is None:
            fields = [element.label_field] + ([element.data_field] if element.data_field else [])
            records = await self._client.fetch_all(self._service_url, fields, where=where)
            return aggregate_graph_data(records, element.label_field, element.data_field or None, operation, max_items)
        return sort_and_limit(data, max_items)

    async def _server_data(
        self, label_field: str, value_field: str, operation: str, where: str
    ) -> list[GraphDatum] | None:
        out = [
            OutStatistic(
                statistic_type=_REMOTE_TYPES[operation],
                on_statistic_field=value_field,
                out_statistic_field_name=aggregate_out_name(operation, value_field),
            )
        ]
        if operation == "mean":
            out.append(
                OutStatistic(
                    statistic_type="count",
                    on_statistic_field=value_field,
                    out_statistic_field_name=aggregate_out_name("count", value_field),
                )
            )
        try:
            rows = await self._client.aggregate(self._service_url, out, where=where, group_by=[label_field])
        except FeatureServiceError as exc:
            if exc.retryable:
                raise
            logger.info("Grouped statistics unavailable for '%s' (%s); using raw records", label_field, exc)
            return None
        return parse_grouped_rows(rows, label_field, value_field, operation)
