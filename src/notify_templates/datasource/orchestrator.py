"""Live-data fetch orchestration for template previews.

One refresh cycle runs, in order: field metadata, total record count, a
bounded record sample, then every statistic group and graph aggregation
concurrently.  Each step that fails records a user-facing message for its
panel and keeps whatever the previous cycle fetched for it; a refresh never
raises :class:`~notify_templates.exceptions.FeatureServiceError`.

Refreshes can overlap (the template is edited while a fetch is in flight).
Every aggregation is keyed by a stable identity (endpoint, where clause and
fields) and stamped with the cycle that issued it; completions from an older
cycle are discarded instead of overwriting newer results.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

from pydantic import BaseModel, Field

from notify_templates.aggregation.filters import build_where_clause
from notify_templates.aggregation.graphs import GraphAggregator, GraphDatum
from notify_templates.aggregation.statistics import EvaluatedStatistic, StatisticEvaluator, is_evaluable
from notify_templates.config import TemplatesConfig, get_config
from notify_templates.datasource.client import FeatureServiceClient
from notify_templates.datasource.models import FieldMetadata
from notify_templates.exceptions import FeatureServiceError
from notify_templates.template.models import DataSourceConfig, GraphElement, TemplateConfig
from notify_templates.types import DataRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

METADATA_PANEL = "metadata"
COUNT_PANEL = "count"
SAMPLE_PANEL = "sample"
STATISTICS_PANEL = "statistics"
NO_ENDPOINT_MESSAGE = "No data source endpoint configured"


def graph_panel(element_id: str) -> str:
    return f"graph:{element_id}"


class LiveDataSnapshot(BaseModel):
    """Everything one refresh cycle learned about a data source."""

    endpoint: str = ""
    fields: list[FieldMetadata] = Field(default_factory=list)
    record_count: int | None = None
    records: list[DataRecord] = Field(default_factory=list)
    statistics: dict[str, EvaluatedStatistic] = Field(default_factory=dict)
    graphs: dict[str, list[GraphDatum]] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)
    live_preview: bool = False

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


def statistics_identity(endpoint: str, template: TemplateConfig) -> str:
    parts = sorted(
        f"{build_where_clause(s.filter)}:{s.field}:{s.operation}" for s in template.statistics if is_evaluable(s)
    )
    return f"{endpoint}|statistics|{';'.join(parts)}"


def graph_identity(endpoint: str, element: GraphElement) -> str:
    return (
        f"{endpoint}|graph|{build_where_clause(element.filter)}|{element.label_field}|"
        f"{element.data_field}|{element.operation}|{element.max_items}"
    )


class LiveDataOrchestrator:
    """Refreshes live preview data for one editing session."""

    def __init__(self, client: FeatureServiceClient, *, config: TemplatesConfig | None = None) -> None:
        self._client = client
        self._config = config or get_config()
        self._snapshot = LiveDataSnapshot()
        self._cycle = 0
        self._inflight: dict[str, int] = {}

    @property
    def snapshot(self) -> LiveDataSnapshot:
        """The latest committed snapshot."""
        return self._snapshot

    async def refresh(self, source: DataSourceConfig, template: TemplateConfig) -> LiveDataSnapshot:
        """Run one fetch cycle and commit its results unless a newer cycle started."""
        self._cycle += 1
        cycle = self._cycle
        endpoint = source.endpoint.rstrip("/")

        if not endpoint:
            snapshot = LiveDataSnapshot(errors={METADATA_PANEL: NO_ENDPOINT_MESSAGE})
            return self._commit(cycle, snapshot)

        previous = self._snapshot if self._snapshot.endpoint == endpoint else LiveDataSnapshot(endpoint=endpoint)
        state: dict[str, Any] = {
            "fields": previous.fields,
            "record_count": previous.record_count,
            "records": previous.records,
            "statistics": dict(previous.statistics),
            "graphs": dict(previous.graphs),
            "errors": {},
            "live_preview": False,
        }

        meta = await self._step(METADATA_PANEL, self._client.metadata(endpoint), state)
        if meta is None:
            return self._commit(cycle, LiveDataSnapshot(endpoint=endpoint, **state))
        state["fields"] = meta.fields

        count = await self._step(COUNT_PANEL, self._client.count(endpoint), state)
        if count is not None:
            state["record_count"] = count

        records = await self._step(
            SAMPLE_PANEL, self._client.sample(endpoint, self._config.sample_record_count), state
        )
        if records is None:
            logger.info("Live preview disabled for %s: sample fetch failed", endpoint)
            return self._commit(cycle, LiveDataSnapshot(endpoint=endpoint, **state))
        state["records"] = records
        state["live_preview"] = True

        await self._aggregate(cycle, endpoint, template, state)
        return self._commit(cycle, LiveDataSnapshot(endpoint=endpoint, **state))

    # -- Steps ----------------------------------------------------------------

    async def _step(self, panel: str, call: Awaitable[T], state: dict[str, Any]) -> T | None:
        try:
            return await call
        except FeatureServiceError as exc:
            state["errors"][panel] = str(exc)
            return None

    async def _aggregate(self, cycle: int, endpoint: str, template: TemplateConfig, state: dict[str, Any]) -> None:
        jobs: list[tuple[str, str, Awaitable[Any]]] = []

        if any(is_evaluable(s) for s in template.statistics):
            evaluator = StatisticEvaluator(self._client, endpoint)
            jobs.append(
                (STATISTICS_PANEL, statistics_identity(endpoint, template), evaluator.evaluate(template.statistics))
            )

        aggregator = GraphAggregator(self._client, endpoint)
        for element in template.visual_elements:
            if isinstance(element, GraphElement) and element.label_field:
                jobs.append((graph_panel(element.id), graph_identity(endpoint, element), aggregator.aggregate(element)))

        if not jobs:
            return
        for _, identity, _ in jobs:
            self._inflight[identity] = cycle

        outcomes = await asyncio.gather(*(self._guarded(call) for _, _, call in jobs))

        for (panel, identity, _), (result, error) in zip(jobs, outcomes):
            if self._inflight.get(identity) != cycle:
                logger.debug("Discarding stale result for %s", identity)
                continue
            self._inflight.pop(identity, None)
            if error is not None:
                state["errors"][panel] = error
            elif panel == STATISTICS_PANEL:
                state["statistics"] = result
            else:
                state["graphs"][panel.removeprefix("graph:")] = result

    @staticmethod
    async def _guarded(call: Awaitable[T]) -> tuple[T | None, str | None]:
        try:
            return await call, None
        except FeatureServiceError as exc:
            return None, str(exc)

    def _commit(self, cycle: int, snapshot: LiveDataSnapshot) -> LiveDataSnapshot:
        if cycle != self._cycle:
            logger.debug("Refresh cycle %d superseded by %d; keeping newer snapshot", cycle, self._cycle)
            return self._snapshot
        self._snapshot = snapshot
        return snapshot
