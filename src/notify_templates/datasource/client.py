"""Async client for the feature-service proxy.

The proxy exposes two JSON-over-POST operations, ``/api/arcgis/metadata`` and
``/api/arcgis/query``.  A failure may arrive as a non-2xx status *or* as a
2xx body carrying an ``error`` object, so every call checks both.  All
failures surface as :class:`~notify_templates.exceptions.FeatureServiceError`
with a message that is safe to show to an end user.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from notify_templates.config import get_config
from notify_templates.datasource.models import (
    Credentials,
    MetadataResponse,
    OutStatistic,
    QueryRequest,
    QueryResponse,
)
from notify_templates.exceptions import FeatureServiceError, FeatureServiceTimeoutError
from notify_templates.types import DataRecord

logger = logging.getLogger(__name__)

METADATA_PATH = "/api/arcgis/metadata"
QUERY_PATH = "/api/arcgis/query"


def _embedded_error(payload: Any) -> str | None:
    """Return the message of a payload-embedded ``error``, if any."""
    if not isinstance(payload, dict) or not payload.get("error"):
        return None
    error = payload["error"]
    if isinstance(error, dict):
        message = error.get("message") or error.get("details") or "Feature service returned an error"
        if isinstance(message, list):
            message = "; ".join(str(m) for m in message)
        return str(message)
    return str(error)


class FeatureServiceClient:
    """Talks to one proxy on behalf of one data source.

    Usage::

        async with FeatureServiceClient(credentials=Credentials(username="u", password="p")) as client:
            meta = await client.metadata("https://host/arcgis/rest/services/X/FeatureServer/0")
    """

    def __init__(
        self,
        proxy_url: str | None = None,
        *,
        credentials: Credentials | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        config = get_config()
        self._proxy_url = (proxy_url or config.proxy_url).rstrip("/")
        self._credentials = credentials or Credentials()
        self._client = httpx.AsyncClient(
            base_url=self._proxy_url,
            timeout=timeout if timeout is not None else config.request_timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    @property
    def proxy_url(self) -> str:
        return self._proxy_url

    # -- Transport ------------------------------------------------------------

    async def _post(self, path: str, body: dict[str, Any], *, action: str) -> dict[str, Any]:
        try:
            resp = await self._client.post(path, json=body)
        except httpx.TimeoutException as exc:
            logger.warning("Feature service %s timed out: %s", action, exc)
            raise FeatureServiceTimeoutError(f"Timed out while trying to {action}") from exc
        except httpx.HTTPError as exc:
            logger.warning("Feature service %s failed: %s", action, exc)
            raise FeatureServiceError(f"Could not reach the feature service to {action}") from exc

        try:
            payload = resp.json()
        except ValueError:
            payload = None

        embedded = _embedded_error(payload)
        if resp.is_error:
            logger.warning("Feature service %s returned HTTP %d", action, resp.status_code)
            detail = f": {embedded}" if embedded else ""
            raise FeatureServiceError(f"Failed to {action}{detail}", status_code=resp.status_code)
        if embedded:
            logger.warning("Feature service %s returned an error payload: %s", action, embedded)
            raise FeatureServiceError(f"Failed to {action}: {embedded}", status_code=resp.status_code)
        if not isinstance(payload, dict):
            raise FeatureServiceError(f"Failed to {action}: unexpected response", status_code=resp.status_code)
        return payload

    # -- Operations -----------------------------------------------------------

    async def metadata(self, service_url: str) -> MetadataResponse:
        """Fetch layer metadata (field names, types and domains)."""
        body = {"serviceUrl": service_url.rstrip("/"), **self._credentials.as_payload()}
        payload = await self._post(METADATA_PATH, body, action="fetch service metadata")
        try:
            return MetadataResponse.model_validate(payload)
        except ValidationError as exc:
            raise FeatureServiceError("Failed to fetch service metadata: unexpected response") from exc

    async def query(self, request: QueryRequest, *, action: str = "query the feature service") -> QueryResponse:
        body = request.payload(self._credentials)
        body["serviceUrl"] = body["serviceUrl"].rstrip("/")
        payload = await self._post(QUERY_PATH, body, action=action)
        try:
            return QueryResponse.model_validate(payload)
        except ValidationError as exc:
            raise FeatureServiceError(f"Failed to {action}: unexpected response") from exc

    async def count(self, service_url: str, where: str = "1=1") -> int:
        request = QueryRequest(service_url=service_url, where=where, return_count_only=True)
        response = await self.query(request, action="fetch the record count")
        return response.count or 0

    async def sample(self, service_url: str, limit: int, *, out_fields: str = "*") -> list[DataRecord]:
        request = QueryRequest(
            service_url=service_url,
            out_fields=out_fields,
            result_record_count=limit,
        )
        response = await self.query(request, action="fetch sample data")
        return response.records()[:limit]

    async def aggregate(
        self,
        service_url: str,
        out_statistics: list[OutStatistic],
        *,
        where: str = "1=1",
        group_by: list[str] | None = None,
    ) -> list[DataRecord]:
        """Run a server-side ``outStatistics`` query and return its rows."""
        request = QueryRequest(
            service_url=service_url,
            where=where,
            out_statistics=out_statistics,
            group_by_fields_for_statistics=",".join(group_by) if group_by else None,
        )
        response = await self.query(request, action="compute statistics")
        return response.records()

    async def fetch_all(
        self,
        service_url: str,
        out_fields: list[str],
        *,
        where: str = "1=1",
        page_size: int | None = None,
        max_records: int | None = None,
    ) -> list[DataRecord]:
        """Fetch every matching record limited to *out_fields*.

        Pages with ``resultOffset`` while the service reports
        ``exceededTransferLimit``, stopping at *max_records*.
        """
        config = get_config()
        page_size = page_size or config.fallback_page_size
        max_records = max_records or config.max_fallback_records
        fields = ",".join(dict.fromkeys(f for f in out_fields if f)) or "*"

        records: list[DataRecord] = []
        offset = 0
        while len(records) < max_records:
            request = QueryRequest(
                service_url=service_url,
                where=where,
                out_fields=fields,
                result_offset=offset or None,
                result_record_count=min(page_size, max_records - len(records)),
            )
            response = await self.query(request, action="fetch records")
            page = response.records()
            records.extend(page)
            if not response.exceeded_transfer_limit or not page:
                break
            offset += len(page)
        else:
            logger.info("Record fetch for %s stopped at %d records", service_url, max_records)
        return records[:max_records]

    # -- Lifecycle ------------------------------------------------------------

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> FeatureServiceClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
