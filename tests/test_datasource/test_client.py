"""Tests for the feature-service proxy client using httpx mock transport."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from notify_templates.datasource.client import METADATA_PATH, QUERY_PATH, FeatureServiceClient
from notify_templates.datasource.models import Credentials, OutStatistic, QueryRequest
from notify_templates.exceptions import FeatureServiceError, FeatureServiceTimeoutError

SERVICE = "https://gis.example.com/arcgis/rest/services/Incidents/FeatureServer/0"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _json_response(data: Any, status_code: int = 200) -> httpx.Response:
    """Build a mock JSON response."""
    return httpx.Response(status_code=status_code, json=data)


def _make_client(handler, **kwargs: Any) -> FeatureServiceClient:
    return FeatureServiceClient("http://proxy.test/", transport=httpx.MockTransport(handler), **kwargs)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class TestQueryRequest:
    def test_payload_uses_camel_case_and_drops_none(self):
        request = QueryRequest(service_url=SERVICE, out_fields="*", result_record_count=10)
        assert request.payload() == {
            "serviceUrl": SERVICE,
            "where": "1=1",
            "outFields": "*",
            "resultRecordCount": 10,
            "f": "json",
        }

    def test_credentials_only_when_complete(self):
        request = QueryRequest(service_url=SERVICE)
        assert "username" not in request.payload(Credentials(username="u"))
        body = request.payload(Credentials(username="u", password="p"))
        assert body["username"] == "u"
        assert body["password"] == "p"


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


class TestFeatureServiceClient:
    async def test_metadata(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == METADATA_PATH
            body = json.loads(request.content)
            assert body == {"serviceUrl": SERVICE, "username": "u", "password": "p"}
            return _json_response(
                {
                    "name": "Incidents",
                    "fields": [
                        {"name": "OBJECTID", "type": "esriFieldTypeOID", "alias": "Object ID"},
                        {
                            "name": "status",
                            "type": "esriFieldTypeSmallInteger",
                            "domain": {"type": "codedValue", "codedValues": [{"name": "Open", "code": 1}]},
                        },
                    ],
                }
            )

        async with _make_client(handler, credentials=Credentials(username="u", password="p")) as client:
            meta = await client.metadata(SERVICE + "/")
        assert meta.name == "Incidents"
        assert [f.name for f in meta.fields] == ["OBJECTID", "status"]
        assert meta.fields[1].domain_lookup() == {1: "Open"}
        assert meta.fields[0].domain_lookup() is None

    async def test_count(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == QUERY_PATH
            body = json.loads(request.content)
            assert body["returnCountOnly"] is True
            assert body["where"] == "status = 'Open'"
            return _json_response({"count": 42})

        async with _make_client(handler) as client:
            assert await client.count(SERVICE, "status = 'Open'") == 42

    async def test_sample_is_bounded(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert body["outFields"] == "*"
            assert body["resultRecordCount"] == 2
            return _json_response({"features": [{"attributes": {"id": i}} for i in range(5)]})

        async with _make_client(handler) as client:
            records = await client.sample(SERVICE, 2)
        assert records == [{"id": 0}, {"id": 1}]

    async def test_aggregate(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert body["groupByFieldsForStatistics"] == "status,zone"
            assert body["outStatistics"] == [
                {"statisticType": "sum", "onStatisticField": "amount", "outStatisticFieldName": "value"}
            ]
            return _json_response({"features": [{"attributes": {"status": "Open", "zone": "N", "value": 3}}]})

        async with _make_client(handler) as client:
            rows = await client.aggregate(
                SERVICE,
                [OutStatistic(statistic_type="sum", on_statistic_field="amount", out_statistic_field_name="value")],
                group_by=["status", "zone"],
            )
        assert rows == [{"status": "Open", "zone": "N", "value": 3}]

    async def test_fetch_all_pages(self):
        offsets: list[Any] = []
        pages = [[{"id": 1}, {"id": 2}], [{"id": 3}, {"id": 4}], [{"id": 5}]]

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            offsets.append(body.get("resultOffset"))
            assert body["outFields"] == "status,amount"
            page = pages[len(offsets) - 1]
            return _json_response(
                {"features": [{"attributes": r} for r in page], "exceededTransferLimit": len(offsets) < 3}
            )

        async with _make_client(handler) as client:
            records = await client.fetch_all(SERVICE, ["status", "amount", "status", ""], page_size=2)
        assert [r["id"] for r in records] == [1, 2, 3, 4, 5]
        assert offsets == [None, 2, 4]

    async def test_fetch_all_stops_at_cap(self):
        sizes: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            sizes.append(body["resultRecordCount"])
            rows = [{"id": i} for i in range(body["resultRecordCount"])]
            return _json_response({"features": [{"attributes": r} for r in rows], "exceededTransferLimit": True})

        async with _make_client(handler) as client:
            records = await client.fetch_all(SERVICE, ["id"], page_size=2, max_records=3)
        assert len(records) == 3
        assert sizes == [2, 1]

    async def test_proxy_url_trailing_slash(self):
        async with _make_client(lambda request: _json_response({})) as client:
            assert client.proxy_url == "http://proxy.test"


class TestErrors:
    async def test_non_2xx(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return _json_response({"error": {"message": "Service not found"}}, status_code=404)

        async with _make_client(handler) as client:
            with pytest.raises(FeatureServiceError) as exc_info:
                await client.metadata(SERVICE)
        assert str(exc_info.value) == "Failed to fetch service metadata: Service not found"
        assert exc_info.value.status_code == 404
        assert exc_info.value.retryable is False

    async def test_non_2xx_without_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code=502, text="Bad gateway")

        async with _make_client(handler) as client:
            with pytest.raises(FeatureServiceError, match="^Failed to fetch the record count$"):
                await client.count(SERVICE)

    async def test_embedded_error_with_200(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return _json_response({"error": {"code": 400, "message": "Invalid query", "details": []}})

        async with _make_client(handler) as client:
            with pytest.raises(FeatureServiceError) as exc_info:
                await client.count(SERVICE)
        assert str(exc_info.value) == "Failed to fetch the record count: Invalid query"
        assert exc_info.value.status_code == 200

    async def test_embedded_error_details(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return _json_response({"error": {"details": ["Field a missing", "Field b missing"]}})

        async with _make_client(handler) as client:
            with pytest.raises(FeatureServiceError, match="Field a missing; Field b missing"):
                await client.sample(SERVICE, 10)

    async def test_embedded_error_string(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return _json_response({"error": "Token expired"})

        async with _make_client(handler) as client:
            with pytest.raises(FeatureServiceError, match="Token expired"):
                await client.sample(SERVICE, 10)

    async def test_unexpected_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code=200, text="<html>login</html>")

        async with _make_client(handler) as client:
            with pytest.raises(FeatureServiceError, match="unexpected response"):
                await client.sample(SERVICE, 10)

    async def test_malformed_payload(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return _json_response({"features": "nope"})

        async with _make_client(handler) as client:
            with pytest.raises(FeatureServiceError, match="unexpected response"):
                await client.sample(SERVICE, 10)

    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("too slow", request=request)

        async with _make_client(handler) as client:
            with pytest.raises(FeatureServiceTimeoutError) as exc_info:
                await client.metadata(SERVICE)
        assert exc_info.value.retryable is True
        assert str(exc_info.value) == "Timed out while trying to fetch service metadata"

    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _make_client(handler) as client:
            with pytest.raises(FeatureServiceError) as exc_info:
                await client.sample(SERVICE, 5)
        assert str(exc_info.value) == "Could not reach the feature service to fetch sample data"
        assert "refused" not in str(exc_info.value)
