"""Tests for the live-data refresh cycle."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx

from notify_templates.aggregation.graphs import GraphDatum
from notify_templates.datasource.client import METADATA_PATH, FeatureServiceClient
from notify_templates.datasource.orchestrator import (
    NO_ENDPOINT_MESSAGE,
    LiveDataOrchestrator,
    graph_identity,
    statistics_identity,
)
from notify_templates.template.models import DataSourceConfig, GraphElement, Statistic, TemplateConfig

SERVICE = "https://gis.example.com/arcgis/rest/services/Incidents/FeatureServer/0"

RECORDS = [
    {"OBJECTID": 1, "status": "Open", "amount": 100},
    {"OBJECTID": 2, "status": "Closed", "amount": 250.5},
    {"OBJECTID": 3, "status": "Open", "amount": 0},
]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _json_response(data: Any, status_code: int = 200) -> httpx.Response:
    """Build a mock JSON response."""
    return httpx.Response(status_code=status_code, json=data)


def _kind(request: httpx.Request) -> str:
    if request.url.path == METADATA_PATH:
        return "metadata"
    body = json.loads(request.content)
    if body.get("returnCountOnly"):
        return "count"
    if body.get("groupByFieldsForStatistics"):
        return "graph"
    if body.get("outStatistics"):
        return "statistics"
    if body.get("outFields") == "*":
        return "sample"
    return "fetch"


def _ok(kind: str) -> httpx.Response:
    if kind == "metadata":
        return _json_response(
            {
                "name": "Incidents",
                "fields": [
                    {"name": "OBJECTID", "type": "esriFieldTypeOID"},
                    {"name": "status", "type": "esriFieldTypeString"},
                    {"name": "amount", "type": "esriFieldTypeDouble"},
                ],
            }
        )
    if kind == "count":
        return _json_response({"count": 6})
    if kind == "sample":
        return _json_response({"features": [{"attributes": r} for r in RECORDS]})
    if kind == "statistics":
        return _json_response({"features": [{"attributes": {"stat_total": 350.5}}]})
    if kind == "graph":
        rows = [{"status": "Open", "graph_count_status": 2}, {"status": "Closed", "graph_count_status": 1}]
        return _json_response({"features": [{"attributes": r} for r in rows]})
    return _json_response({"features": [{"attributes": r} for r in RECORDS]})


class Recorder:
    """Mock proxy that answers every request and records what was asked."""

    def __init__(self, overrides: dict[str, Any] | None = None) -> None:
        self.calls: list[str] = []
        self.overrides = overrides or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        kind = _kind(request)
        self.calls.append(kind)
        override = self.overrides.get(kind)
        if callable(override):
            return override(request)
        if override is not None:
            return override
        return _ok(kind)


def _template() -> TemplateConfig:
    return TemplateConfig(
        statistics=[Statistic(id="total", field="amount", operation="sum", label="Total")],
        visual_elements=[GraphElement(id="g1", label_field="status")],
    )


def _source() -> DataSourceConfig:
    return DataSourceConfig(endpoint=SERVICE + "/")


def _orchestrator(handler) -> LiveDataOrchestrator:
    client = FeatureServiceClient("http://proxy.test", transport=httpx.MockTransport(handler))
    return LiveDataOrchestrator(client)


# ---------------------------------------------------------------------------
# Refresh cycle
# ---------------------------------------------------------------------------


class TestRefresh:
    async def test_happy_path(self):
        recorder = Recorder()
        orchestrator = _orchestrator(recorder)

        snapshot = await orchestrator.refresh(_source(), _template())

        assert snapshot.endpoint == SERVICE
        assert snapshot.field_names() == ["OBJECTID", "status", "amount"]
        assert snapshot.record_count == 6
        assert snapshot.records == RECORDS
        assert snapshot.live_preview is True
        assert snapshot.errors == {}
        assert snapshot.statistics["total"].value == 350.5
        assert snapshot.statistics["total"].source == "server"
        assert snapshot.graphs["g1"] == [GraphDatum(label="Open", value=2), GraphDatum(label="Closed", value=1)]
        assert recorder.calls[:3] == ["metadata", "count", "sample"]
        assert sorted(recorder.calls[3:]) == ["graph", "statistics"]
        assert orchestrator.snapshot is snapshot

    async def test_no_endpoint(self):
        recorder = Recorder()
        orchestrator = _orchestrator(recorder)

        snapshot = await orchestrator.refresh(DataSourceConfig(), _template())

        assert snapshot.errors == {"metadata": NO_ENDPOINT_MESSAGE}
        assert snapshot.live_preview is False
        assert recorder.calls == []

    async def test_metadata_failure_stops_cycle(self):
        recorder = Recorder({"metadata": _json_response({"error": {"message": "Service not found"}}, 404)})
        orchestrator = _orchestrator(recorder)

        snapshot = await orchestrator.refresh(_source(), _template())

        assert recorder.calls == ["metadata"]
        assert snapshot.errors == {"metadata": "Failed to fetch service metadata: Service not found"}
        assert snapshot.live_preview is False
        assert snapshot.record_count is None

    async def test_sample_failure_disables_live_preview(self):
        recorder = Recorder({"sample": _json_response({"error": {"message": "Invalid token"}})})
        orchestrator = _orchestrator(recorder)

        snapshot = await orchestrator.refresh(_source(), _template())

        assert recorder.calls == ["metadata", "count", "sample"]
        assert snapshot.errors == {"sample": "Failed to fetch sample data: Invalid token"}
        assert snapshot.live_preview is False
        assert snapshot.record_count == 6
        assert snapshot.statistics == {}

    async def test_count_failure_is_not_fatal(self):
        recorder = Recorder({"count": httpx.Response(status_code=500, text="oops")})
        orchestrator = _orchestrator(recorder)

        snapshot = await orchestrator.refresh(_source(), _template())

        assert snapshot.errors == {"count": "Failed to fetch the record count"}
        assert snapshot.record_count is None
        assert snapshot.live_preview is True
        assert "total" in snapshot.statistics

    async def test_graph_failure_keeps_previous_value(self):
        recorder = Recorder()
        orchestrator = _orchestrator(recorder)
        first = await orchestrator.refresh(_source(), _template())

        def timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        recorder.overrides["graph"] = timeout
        second = await orchestrator.refresh(_source(), _template())

        assert second.errors == {"graph:g1": "Timed out while trying to compute statistics"}
        assert second.graphs["g1"] == first.graphs["g1"]
        assert second.live_preview is True

    async def test_new_endpoint_drops_previous_results(self):
        recorder = Recorder()
        orchestrator = _orchestrator(recorder)
        await orchestrator.refresh(_source(), _template())

        recorder.overrides["metadata"] = _json_response({"error": "gone"}, 404)
        snapshot = await orchestrator.refresh(DataSourceConfig(endpoint=SERVICE + "/other"), _template())

        assert snapshot.graphs == {}
        assert snapshot.records == []

    async def test_stale_results_are_discarded(self):
        gate = asyncio.Event()
        entered = asyncio.Event()
        graph_calls = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal graph_calls
            kind = _kind(request)
            if kind == "graph":
                graph_calls += 1
                if graph_calls == 1:
                    entered.set()
                    await gate.wait()
                    return _json_response({"features": [{"attributes": {"status": "Stale", "graph_count_status": 99}}]})
            return _ok(kind)

        orchestrator = _orchestrator(handler)
        first = asyncio.create_task(orchestrator.refresh(_source(), _template()))
        await entered.wait()

        second = await orchestrator.refresh(_source(), _template())
        gate.set()
        stale = await first

        assert stale is second
        assert orchestrator.snapshot is second
        assert [d.label for d in orchestrator.snapshot.graphs["g1"]] == ["Open", "Closed"]


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


class TestIdentities:
    def test_graph_identity_tracks_query_inputs(self):
        a = GraphElement(id="g1", label_field="status")
        b = GraphElement(id="g2", label_field="status")
        c = GraphElement(id="g1", label_field="zone")
        assert graph_identity(SERVICE, a) == graph_identity(SERVICE, b)
        assert graph_identity(SERVICE, a) != graph_identity(SERVICE, c)

    def test_statistics_identity_ignores_order(self):
        s1 = Statistic(id="a", field="amount", operation="sum")
        s2 = Statistic(id="b", field="OBJECTID", operation="count")
        one = TemplateConfig(statistics=[s1, s2])
        two = TemplateConfig(statistics=[s2, s1])
        assert statistics_identity(SERVICE, one) == statistics_identity(SERVICE, two)
