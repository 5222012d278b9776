"""Tests for local statistic computation and the server/client evaluator."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from notify_templates.aggregation.statistics import (
    EvaluatedStatistic,
    StatisticEvaluator,
    compute_statistic,
    evaluate_records,
    median,
    out_statistic_name,
)
from notify_templates.datasource.client import FeatureServiceClient
from notify_templates.exceptions import FeatureServiceTimeoutError
from notify_templates.template.models import FilterRule, Statistic, StatisticFilter, StatisticFormat

SERVICE = "https://gis.example.com/arcgis/rest/services/Incidents/FeatureServer/0"

RECORDS = [
    {"amount": 100, "status": "Open", "when": 1},
    {"amount": 250.5, "status": "Closed", "when": 2},
    {"amount": None, "status": "Open", "when": 3},
    {"amount": "n/a", "status": "", "when": 4},
]


def _json_response(data: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code=status_code, json=data)


def _client(handler) -> FeatureServiceClient:
    return FeatureServiceClient("http://proxy.test", transport=httpx.MockTransport(handler))


class TestMedian:
    def test_odd(self):
        assert median([3, 1, 2]) == 2

    def test_even(self):
        assert median([4, 1, 3, 2]) == 2.5

    def test_empty(self):
        assert median([]) is None


class TestComputeStatistic:
    def test_sum_scenario(self):
        assert compute_statistic([{"amount": 100}, {"amount": 250.5}], "amount", "sum") == 350.5

    def test_numeric_ops_skip_non_numeric(self):
        assert compute_statistic(RECORDS, "amount", "mean") == pytest.approx(175.25)
        assert compute_statistic(RECORDS, "amount", "min") == 100
        assert compute_statistic(RECORDS, "amount", "max") == 250.5
        assert compute_statistic(RECORDS, "amount", "median") == pytest.approx(175.25)

    def test_count_ignores_blanks(self):
        assert compute_statistic(RECORDS, "amount", "count") == 3
        assert compute_statistic(RECORDS, "status", "count") == 3

    def test_distinct(self):
        assert compute_statistic(RECORDS, "status", "distinct") == 2

    def test_first_last(self):
        assert compute_statistic(RECORDS, "when", "first") == 1
        assert compute_statistic(RECORDS, "when", "last") == 4

    def test_out_of_range_integers_are_skipped(self):
        records = [{"amount": 10**400}, {"amount": 5}]
        assert compute_statistic(records, "amount", "sum") == 5.0
        assert compute_statistic(records, "amount", "max") == 5.0

    def test_case_insensitive_field(self):
        assert compute_statistic(RECORDS, "AMOUNT", "max") == 250.5

    def test_no_values(self):
        assert compute_statistic([], "amount", "sum") is None
        assert compute_statistic([{"amount": None}], "amount", "count") is None

    def test_non_numeric_values(self):
        rows = [{"v": "a"}, {"v": "b"}]
        assert compute_statistic(rows, "v", "sum") == 0.0
        assert compute_statistic(rows, "v", "mean") is None


class TestEvaluateRecords:
    def test_currency_scenario(self):
        stat = Statistic(
            id="total",
            field="amount",
            operation="sum",
            label="Total",
            format=StatisticFormat(format="currency", decimals=2, currency="USD"),
        )
        result = evaluate_records([stat], [{"amount": 100}, {"amount": 250.5}])["total"]
        assert result.value == 350.5
        assert result.formatted == "$350.50"
        assert result.label == "Total"
        assert result.source == "client"

    def test_rule_filter(self):
        stat = Statistic(
            id="open",
            field="amount",
            operation="sum",
            filter=StatisticFilter(rules=[FilterRule(field="status", value="Open")]),
        )
        assert evaluate_records([stat], RECORDS)["open"].value == 100

    def test_advanced_filter_not_evaluated(self):
        stat = Statistic(id="adv", field="amount", operation="sum", filter=StatisticFilter(advanced="amount > 1"))
        result = evaluate_records([stat], RECORDS)["adv"]
        assert result.value is None
        assert result.formatted == "-"
        assert result.source == "none"

    def test_incomplete_statistic(self):
        result = evaluate_records([Statistic(id="x", field="amount")], RECORDS)["x"]
        assert result.value is None

    def test_build_label_falls_back_to_id(self):
        assert EvaluatedStatistic.build(Statistic(id="abc"), 1, "server").label == "abc"


class TestStatisticEvaluator:
    async def test_server_path_batches_by_filter(self):
        requests: list[dict[str, Any]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            requests.append(body)
            names = [s["outStatisticFieldName"] for s in body["outStatistics"]]
            row = {name: 10 * (i + 1) for i, name in enumerate(names)}
            return _json_response({"features": [{"attributes": row}]})

        stats = [
            Statistic(id="total", field="amount", operation="sum"),
            Statistic(id="avg", field="amount", operation="mean"),
            Statistic(
                id="open",
                field="amount",
                operation="count",
                filter=StatisticFilter(rules=[FilterRule(field="status", value="Open")]),
            ),
        ]
        async with _client(handler) as client:
            results = await StatisticEvaluator(client, SERVICE).evaluate(stats)

        assert len(requests) == 2
        wheres = sorted(r["where"] for r in requests)
        assert wheres == ["1=1", "status = 'Open'"]
        unfiltered = next(r for r in requests if r["where"] == "1=1")
        assert [s["statisticType"] for s in unfiltered["outStatistics"]] == ["sum", "avg"]
        assert results["total"].value == 10
        assert results["avg"].value == 20
        assert results["open"].value == 10
        assert all(r.source == "server" for r in results.values())
        assert list(results) == ["total", "avg", "open"]

    async def test_falls_back_on_error_payload(self):
        calls: list[dict[str, Any]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            calls.append(body)
            if "outStatistics" in body:
                return _json_response({"error": {"code": 400, "message": "Statistics not supported"}})
            return _json_response({"features": [{"attributes": {"amount": 100}}, {"attributes": {"amount": 250.5}}]})

        stat = Statistic(id="total", field="amount", operation="sum")
        async with _client(handler) as client:
            results = await StatisticEvaluator(client, SERVICE).evaluate([stat])

        assert results["total"].value == 350.5
        assert results["total"].source == "client"
        assert calls[-1]["outFields"] == "amount"

    async def test_falls_back_on_empty_rows(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            if "outStatistics" in body:
                return _json_response({"features": []})
            return _json_response({"features": [{"attributes": {"amount": 7}}]})

        async with _client(handler) as client:
            results = await StatisticEvaluator(client, SERVICE).evaluate(
                [Statistic(id="m", field="amount", operation="max")]
            )
        assert results["m"].value == 7
        assert results["m"].source == "client"

    async def test_client_only_operations_share_one_fetch(self):
        calls: list[dict[str, Any]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            calls.append(body)
            rows = [{"amount": 1, "status": "Open"}, {"amount": 3, "status": "Closed"}, {"amount": 8, "status": "Open"}]
            return _json_response({"features": [{"attributes": r} for r in rows]})

        stats = [
            Statistic(id="med", field="amount", operation="median"),
            Statistic(id="kinds", field="status", operation="distinct"),
        ]
        async with _client(handler) as client:
            results = await StatisticEvaluator(client, SERVICE).evaluate(stats)

        assert len(calls) == 1
        assert "outStatistics" not in calls[0]
        assert calls[0]["outFields"] == "amount,status"
        assert results["med"].value == 3
        assert results["kinds"].value == 2

    async def test_out_name_case_insensitive(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return _json_response({"features": [{"attributes": {"STAT_TOTAL": 5}}]})

        async with _client(handler) as client:
            results = await StatisticEvaluator(client, SERVICE).evaluate(
                [Statistic(id="total", field="amount", operation="sum")]
            )
        assert results["total"].value == 5
        assert results["total"].source == "server"

    async def test_timeout_propagates(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with _client(handler) as client:
            with pytest.raises(FeatureServiceTimeoutError):
                await StatisticEvaluator(client, SERVICE).evaluate([Statistic(id="t", field="a", operation="sum")])

    async def test_unevaluable_statistics_are_reported(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with _client(handler) as client:
            results = await StatisticEvaluator(client, SERVICE).evaluate([Statistic(id="blank")])
        assert results["blank"].value is None
        assert results["blank"].formatted == "-"

    def test_out_statistic_name(self):
        assert out_statistic_name(Statistic(id="total")) == "stat_total"
