from __future__ import annotations

import asyncio
import json
from collections.abc import Callable  # noqa: TC003

import httpx
import pytest

from catalogsync.adapters.catalog import HttpCatalogService, resource_path
from catalogsync.adapters.http_resilience import ResilientClient
from catalogsync.config import CatalogConfig, ResilienceConfig
from catalogsync.domain.errors import RemoteServiceError
from catalogsync.domain.model import Entity, EntityType
from catalogsync.domain.ports.catalog import CatalogService, Rejection

BASE_URL = "https://catalog.test"

type Handler = Callable[[httpx.Request], httpx.Response]


def _make_client_factory(handler: Handler) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            base_url=BASE_URL, transport=httpx.MockTransport(async_handler)
        )
        return client

    return factory


def _service(handler: Handler) -> HttpCatalogService:
    config = CatalogConfig(
        base_url=BASE_URL,
        tenant_id="acme",
        api_token="secret",
        resilience=ResilienceConfig(name="catalog", base_url=BASE_URL),
    )
    return HttpCatalogService(config=config, client_factory=_make_client_factory(handler))


def test_resource_paths_use_hyphens() -> None:
    assert resource_path(EntityType.PRICE_BOOK) == "/v1/catalog/price-book"
    assert resource_path(EntityType.CATEGORY) == "/v1/catalog/category"


def test_service_satisfies_port() -> None:
    service = _service(lambda _: httpx.Response(200, json={}))

    assert isinstance(service, CatalogService)


def test_create_posts_items_and_maps_rejections() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(
            200, json={"acceptedCount": 1, "rejected": [{"key": "men-shirts", "error": "bad"}]}
        )

    batch = [
        Entity(entity_type=EntityType.CATEGORY, natural_key="men", payload={"name": "Men"}),
        Entity(entity_type=EntityType.CATEGORY, natural_key="men-shirts", parent_key="men"),
    ]

    async def scenario() -> None:
        async with _service(handler) as service:
            response = await service.create(EntityType.CATEGORY, batch)
        assert response.accepted_count == 1
        assert response.rejected == (Rejection(key="men-shirts", error="bad"),)

    asyncio.run(scenario())

    request = captured[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/catalog/category"
    assert json.loads(request.content) == {
        "items": [
            {"key": "men", "attributes": {"name": "Men"}},
            {"key": "men-shirts", "parentKey": "men", "attributes": {}},
        ]
    }


def test_create_without_item_results_leaves_rejections_unknown() -> None:
    service = _service(lambda _: httpx.Response(200, json={"acceptedCount": 2}))
    batch = [Entity(entity_type=EntityType.PRODUCT, natural_key="STR-1")]

    response = asyncio.run(service.create(EntityType.PRODUCT, batch))

    assert response.rejected is None


def test_delete_posts_keys() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"acceptedCount": 2})

    response = asyncio.run(_service(handler).delete(EntityType.PRICE_BOOK, ["retail", "outlet"]))

    assert response.accepted_count == 2
    assert captured[0].url.path == "/v1/catalog/price-book/delete"
    assert json.loads(captured[0].content) == {"keys": ["retail", "outlet"]}


def test_query_by_keys_repeats_the_keys_parameter() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"found": ["STR-1"]})

    response = asyncio.run(_service(handler).query_by_keys(EntityType.PRODUCT, ["STR-1", "STR,2"]))

    assert response.found == ("STR-1",)
    assert captured[0].method == "GET"
    assert captured[0].url.params.get_list("keys") == ["STR-1", "STR,2"]


def test_query_without_keys_makes_no_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request {request.url}")

    response = asyncio.run(_service(handler).query_by_keys(EntityType.PRODUCT, []))

    assert response.found == ()


def test_scan_passes_paging_and_pattern() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"items": ["STR-1", "STR-2"], "totalCount": 7})

    response = asyncio.run(
        _service(handler).scan(EntityType.PRODUCT, pattern="^(STR)-", limit=2, offset=4)
    )

    assert response.items == ("STR-1", "STR-2")
    assert response.total_count == 7
    params = captured[0].url.params
    assert captured[0].url.path == "/v1/catalog/product/scan"
    assert (params["limit"], params["offset"], params["pattern"]) == ("2", "4", "^(STR)-")


def test_error_status_raises_with_status_code() -> None:
    service = _service(lambda _: httpx.Response(429, text="slow down"))

    with pytest.raises(RemoteServiceError) as excinfo:
        asyncio.run(service.delete(EntityType.PRODUCT, ["STR-1"]))

    assert excinfo.value.status_code == 429
    assert "slow down" in str(excinfo.value)


def test_unexpected_payload_raises() -> None:
    service = _service(lambda _: httpx.Response(200, json={"acceptedCount": -1}))

    with pytest.raises(RemoteServiceError, match="CreateResult") as excinfo:
        asyncio.run(
            service.create(
                EntityType.PRODUCT, [Entity(entity_type=EntityType.PRODUCT, natural_key="STR-1")]
            )
        )

    assert excinfo.value.status_code is None
