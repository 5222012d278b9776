"""Request and response models for the feature-service proxy."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from notify_templates.types import DataRecord, FieldType


class ProxyModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Field metadata
# ---------------------------------------------------------------------------


class CodedValue(ProxyModel):
    name: str
    code: str | int | float


class FieldDomain(ProxyModel):
    type: str = "codedValue"
    name: str = ""
    coded_values: list[CodedValue] = Field(default_factory=list)


class FieldMetadata(ProxyModel):
    name: str
    type: str = FieldType.STRING.value
    alias: str = ""
    length: int | None = None
    domain: FieldDomain | None = None

    def domain_lookup(self) -> dict[Any, str] | None:
        """Return ``code -> name`` for a coded-value domain, else ``None``."""
        if self.domain is None or not self.domain.coded_values:
            return None
        return {cv.code: cv.name for cv in self.domain.coded_values}


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class OutStatistic(ProxyModel):
    statistic_type: str
    on_statistic_field: str
    out_statistic_field_name: str


class Credentials(ProxyModel):
    username: str = ""
    password: str = ""

    def as_payload(self) -> dict[str, str]:
        if self.username and self.password:
            return {"username": self.username, "password": self.password}
        return {}


class QueryRequest(ProxyModel):
    service_url: str
    where: str = "1=1"
    out_fields: str | None = None
    out_statistics: list[OutStatistic] | None = None
    group_by_fields_for_statistics: str | None = None
    return_count_only: bool | None = None
    result_record_count: int | None = None
    result_offset: int | None = None
    f: str = "json"

    def payload(self, credentials: Credentials | None = None) -> dict[str, Any]:
        body = self.model_dump(by_alias=True, exclude_none=True)
        if credentials is not None:
            body.update(credentials.as_payload())
        return body


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class Feature(ProxyModel):
    attributes: DataRecord = Field(default_factory=dict)


class QueryResponse(ProxyModel):
    features: list[Feature] = Field(default_factory=list)
    count: int | None = None
    exceeded_transfer_limit: bool = False

    def records(self) -> list[DataRecord]:
        return [f.attributes for f in self.features]


class MetadataResponse(ProxyModel):
    fields: list[FieldMetadata] = Field(default_factory=list)
    name: str = ""
