"""Statistic evaluation.

A statistic is evaluated either by the remote service (``outStatistics``) or
locally over a fetched record set.  :class:`StatisticEvaluator` picks the path
per statistic: server-aggregable operations go to the service first, grouped
so that statistics sharing a where clause share one request; everything else,
and anything the server could not answer, is computed locally from one
field-limited fetch per where clause.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel

from notify_templates.aggregation.filters import build_where_clause, filter_records, supports_local_matching
from notify_templates.aggregation.records import is_blank, lookup_field
from notify_templates.datasource.models import OutStatistic
from notify_templates.exceptions import FeatureServiceError
from notify_templates.rendering.formatting import format_stat_value, try_parse_numeric
from notify_templates.template.models import Statistic
from notify_templates.types import SERVER_AGGREGABLE, StatOperation

if TYPE_CHECKING:
    from notify_templates.datasource.client import FeatureServiceClient

logger = logging.getLogger(__name__)

# Remote ``statisticType`` for each server-aggregable operation.
SERVER_STATISTIC_TYPES: dict[StatOperation, str] = {
    StatOperation.SUM: "sum",
    StatOperation.MEAN: "avg",
    StatOperation.MIN: "min",
    StatOperation.MAX: "max",
    StatOperation.COUNT: "count",
}

_OUT_NAME = re.compile(r"\W")


# ── Local computation ─────────────────────────────────────────────────────


def median(values: Sequence[float]) -> float | None:
    """Standard median; ``None`` for an empty sequence."""
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def compute_statistic(records: Iterable[Mapping[str, Any]], field: str, operation: StatOperation | str) -> Any:
    """Compute one aggregate over *records* locally.

    Blank values are ignored; numeric operations skip values that do not
    coerce to a number.  Returns ``None`` when nothing is left to aggregate.
    """
    values = [v for v in (lookup_field(r, field) for r in records) if not is_blank(v)]
    if not values:
        return None

    op = StatOperation(operation)
    if op == StatOperation.COUNT:
        return len(values)
    if op == StatOperation.DISTINCT:
        return len({str(v) for v in values})
    if op == StatOperation.FIRST:
        return values[0]
    if op == StatOperation.LAST:
        return values[-1]

    numbers = [n for n in (try_parse_numeric(v) for v in values) if n is not None]
    if op == StatOperation.SUM:
        return math.fsum(numbers)
    if not numbers:
        return None
    if op == StatOperation.MEAN:
        return math.fsum(numbers) / len(numbers)
    if op == StatOperation.MIN:
        return min(numbers)
    if op == StatOperation.MAX:
        return max(numbers)
    return median(numbers)


# ── Results ───────────────────────────────────────────────────────────────


class EvaluatedStatistic(BaseModel):
    """A statistic after evaluation, ready to be placed in a render context."""

    id: str
    label: str
    value: Any = None
    formatted: str = "-"
    source: Literal["server", "client", "sample", "none"] = "none"

    @classmethod
    def build(cls, statistic: Statistic, value: Any, source: str) -> EvaluatedStatistic:
        return cls(
            id=statistic.id,
            label=statistic.display_label,
            value=value,
            formatted=format_stat_value(value, statistic.format),
            source=source if value is not None else "none",
        )


def is_evaluable(statistic: Statistic) -> bool:
    return bool(statistic.id and statistic.field and statistic.operation)


def evaluate_records(
    statistics: Iterable[Statistic], records: Sequence[Mapping[str, Any]]
) -> dict[str, EvaluatedStatistic]:
    """Evaluate statistics over records already in memory.

    Rule filters are applied locally.  A statistic with an advanced filter
    expression cannot be evaluated without the remote service and yields
    ``None``.
    """
    results: dict[str, EvaluatedStatistic] = {}
    for stat in statistics:
        if not stat.id:
            continue
        value = None
        if is_evaluable(stat):
            if supports_local_matching(stat.filter):
                value = compute_statistic(filter_records(records, stat.filter), stat.field, stat.operation)
            else:
                logger.warning("Statistic '%s' uses an advanced filter; skipped for in-memory evaluation", stat.id)
        results[stat.id] = EvaluatedStatistic.build(stat, value, "client")
    return results


# ── Remote evaluation ─────────────────────────────────────────────────────


def out_statistic_name(statistic: Statistic) -> str:
    return "stat_" + _OUT_NAME.sub("_", statistic.id)


def read_out_value(row: Mapping[str, Any], name: str) -> Any:
    """Read an out-statistic column; services may change the name's case."""
    return lookup_field(row, name)


class StatisticEvaluator:
    """Evaluates template statistics against one feature-service layer."""

    def __init__(self, client: FeatureServiceClient, service_url: str) -> None:
        self._client = client
        self._service_url = service_url

    async def evaluate(self, statistics: Iterable[Statistic]) -> dict[str, EvaluatedStatistic]:
        """Evaluate every statistic; groups sharing a where clause run concurrently.

        Raises :class:`FeatureServiceError` when the client-side fetch fails.
        """
        stats = [s for s in statistics if s.id]
        groups: dict[str, list[Statistic]] = {}
        for stat in stats:
            if is_evaluable(stat):
                groups.setdefault(build_where_clause(stat.filter), []).append(stat)

        results = await asyncio.gather(*(self._evaluate_group(where, group) for where, group in groups.items()))

        evaluated: dict[str, EvaluatedStatistic] = {}
        for partial in results:
            evaluated.update(partial)
        for stat in stats:
            evaluated.setdefault(stat.id, EvaluatedStatistic.build(stat, None, "none"))
        return {s.id: evaluated[s.id] for s in stats}

    async def _evaluate_group(self, where: str, group: list[Statistic]) -> dict[str, EvaluatedStatistic]:
        results: dict[str, EvaluatedStatistic] = {}

        server_side = [s for s in group if s.operation in SERVER_AGGREGABLE]
        if server_side:
            values = await self._server_values(where, server_side)
            for stat in server_side:
                if values.get(stat.id) is not None:
                    results[stat.id] = EvaluatedStatistic.build(stat, values[stat.id], "server")

        pending = [s for s in group if s.id not in results]
        if pending:
            fields = [s.field for s in pending]
            records = await self._client.fetch_all(self._service_url, fields, where=where)
            for stat in pending:
                value = compute_statistic(records, stat.field, stat.operation)
                results[stat.id] = EvaluatedStatistic.build(stat, value, "client")
        return results

    async def _server_values(self, where: str, group: list[Statistic]) -> dict[str, Any]:
        out_stats = [
            OutStatistic(
                statistic_type=SERVER_STATISTIC_TYPES[StatOperation(s.operation)],
                on_statistic_field=s.field,
                out_statistic_field_name=out_statistic_name(s),
            )
            for s in group
        ]
        try:
            rows = await self._client.aggregate(self._service_url, out_stats, where=where)
        except FeatureServiceError as exc:
            if exc.retryable:
                raise
            logger.info("Server statistics unavailable for where=%r (%s); computing locally", where, exc)
            return {}
        if not rows:
            logger.info("Server statistics returned no rows for where=%r; computing locally", where)
            return {}

        row = rows[0]
        values = {s.id: read_out_value(row, out_statistic_name(s)) for s in group}
        missing = [stat_id for stat_id, value in values.items() if value is None]
        if missing:
            logger.info("Server statistics missing %s; computing locally", ", ".join(missing))
        return values
