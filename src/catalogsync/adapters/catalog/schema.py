"""Wire schemas of the remote catalog REST API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CatalogModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ItemPayload(CatalogModel):
    key: str
    parent_key: str | None = Field(default=None, alias="parentKey")
    attributes: dict[str, Any] = Field(default_factory=dict)


class CreateRequest(CatalogModel):
    items: list[ItemPayload]


class DeleteRequest(CatalogModel):
    keys: list[str]


class RejectionPayload(CatalogModel):
    key: str
    error: str = "rejected"


class CreateResult(CatalogModel):
    accepted_count: int = Field(alias="acceptedCount", ge=0)
    rejected: list[RejectionPayload] | None = None


class DeleteResult(CatalogModel):
    accepted_count: int = Field(alias="acceptedCount", ge=0)


class QueryResult(CatalogModel):
    found: list[str] = Field(default_factory=list)


class ScanResult(CatalogModel):
    items: list[str] = Field(default_factory=list)
    total_count: int = Field(default=0, alias="totalCount", ge=0)
