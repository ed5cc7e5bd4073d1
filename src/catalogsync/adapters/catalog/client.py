"""HTTP implementation of the ``CatalogService`` port."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import BaseModel, ValidationError

from catalogsync.adapters.http_resilience import ResilientClient
from catalogsync.domain.errors import RemoteServiceError
from catalogsync.domain.ports.catalog import (
    CreateResponse,
    DeleteResponse,
    QueryResponse,
    Rejection,
    ScanResponse,
)

from .schema import (
    CreateRequest,
    CreateResult,
    DeleteRequest,
    DeleteResult,
    ItemPayload,
    QueryResult,
    ScanResult,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    import httpx

    from catalogsync.config.catalog import CatalogConfig
    from catalogsync.config.http_resilience import ResilienceConfig
    from catalogsync.domain.model import Entity, EntityType, NaturalKey

log = getLogger(__name__)

API_PREFIX = "/v1/catalog"
_ERROR_BODY_LIMIT = 200


def resource_path(entity_type: EntityType) -> str:
    return f"{API_PREFIX}/{entity_type.value.replace('_', '-')}"


class HttpCatalogService:
    """Talks to the catalog REST API through one long-lived ``ResilientClient``."""

    def __init__(
        self,
        *,
        config: CatalogConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._client = (client_factory or ResilientClient)(config.resilience)

    async def __aenter__(self) -> HttpCatalogService:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create(self, entity_type: EntityType, batch: Sequence[Entity]) -> CreateResponse:
        body = CreateRequest(
            items=[
                ItemPayload(
                    key=entity.natural_key,
                    parent_key=entity.parent_key,
                    attributes=dict(entity.payload),
                )
                for entity in batch
            ]
        )
        response = await self._client.post(
            resource_path(entity_type),
            json=body.model_dump(by_alias=True, exclude_none=True),
        )
        result = _parse(response, CreateResult)
        rejected = (
            tuple(Rejection(key=item.key, error=item.error) for item in result.rejected)
            if result.rejected is not None
            else None
        )
        return CreateResponse(accepted_count=result.accepted_count, rejected=rejected)

    async def delete(
        self, entity_type: EntityType, keys: Sequence[NaturalKey]
    ) -> DeleteResponse:
        response = await self._client.post(
            f"{resource_path(entity_type)}/delete",
            json=DeleteRequest(keys=list(keys)).model_dump(),
        )
        result = _parse(response, DeleteResult)
        return DeleteResponse(accepted_count=result.accepted_count)

    async def query_by_keys(
        self, entity_type: EntityType, keys: Sequence[NaturalKey]
    ) -> QueryResponse:
        if not keys:
            return QueryResponse()
        response = await self._client.get(
            resource_path(entity_type),
            params=[("keys", key) for key in keys],
        )
        result = _parse(response, QueryResult)
        return QueryResponse(found=tuple(result.found))

    async def scan(
        self,
        entity_type: EntityType,
        *,
        pattern: str | None = None,
        limit: int = 500,
        offset: int = 0,
    ) -> ScanResponse:
        params: dict[str, str] = {"limit": str(limit), "offset": str(offset)}
        if pattern is not None:
            params["pattern"] = pattern
        response = await self._client.get(f"{resource_path(entity_type)}/scan", params=params)
        result = _parse(response, ScanResult)
        return ScanResponse(items=tuple(result.items), total_count=result.total_count)


def _parse[TModel: BaseModel](response: httpx.Response, model: type[TModel]) -> TModel:
    request = response.request
    if response.is_error:
        body = response.text[:_ERROR_BODY_LIMIT]
        raise RemoteServiceError(
            f"{request.method} {request.url.path} returned {response.status_code}: {body}",
            status_code=response.status_code,
        )
    try:
        return model.model_validate_json(response.content)
    except ValidationError as exc:
        log.debug("Unexpected payload from %s: %s", request.url.path, response.text)
        raise RemoteServiceError(
            f"Unexpected {model.__name__} payload from {request.url.path}: "
            f"{exc.error_count()} validation error(s)"
        ) from exc
