"""Tests for the catalog sources."""

from __future__ import annotations

import httpx
import pytest

from src.services.catalog.catalog_client import CatalogServiceClient
from src.services.catalog.product_registry import ProductRegistry


def _product_payload(index: int) -> dict:
    return {
        "id": f"p{index}",
        "name": f"Product {index:03d}",
        "description": "Ergonomic desk accessory",
        "price": 10 + index,
        "inStock": index % 2 == 0,
    }


def _catalog_transport(total: int, wrap: bool = False):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/products":
            limit = int(request.url.params["limit"])
            offset = int(request.url.params["offset"])
            page = [
                _product_payload(index)
                for index in range(offset + 1, min(offset + limit, total) + 1)
            ]
            return httpx.Response(200, json={"items": page} if wrap else page)

        product_id = request.url.path.rsplit("/", 1)[-1]
        index = int(product_id.lstrip("p")) if product_id.startswith("p") else 0
        if 1 <= index <= total:
            return httpx.Response(200, json=_product_payload(index))
        return httpx.Response(404, json={"detail": "not found"})

    return httpx.MockTransport(handler), requests


@pytest.mark.asyncio
@pytest.mark.parametrize("wrap", [False, True])
async def test_find_all_pages_until_short_page(wrap):
    transport, requests = _catalog_transport(total=5, wrap=wrap)
    client = CatalogServiceClient(
        httpx.AsyncClient(transport=transport, base_url="http://catalog"), page_size=2
    )

    products = await client.find_all()
    await client.aclose()

    assert [product.id for product in products] == ["p1", "p2", "p3", "p4", "p5"]
    assert len(requests) == 3
    assert products[1].in_stock is True
    assert products[0].in_stock is False


@pytest.mark.asyncio
async def test_find_by_id_handles_missing_products():
    transport, _ = _catalog_transport(total=2)
    client = CatalogServiceClient(
        httpx.AsyncClient(transport=transport, base_url="http://catalog")
    )

    found = await client.find_by_id("p2")
    missing = await client.find_by_id("p9")
    await client.aclose()

    assert found.name == "Product 002"
    assert missing is None


@pytest.mark.asyncio
async def test_server_errors_propagate():
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    client = CatalogServiceClient(
        httpx.AsyncClient(transport=transport, base_url="http://catalog")
    )

    with pytest.raises(httpx.HTTPStatusError):
        await client.find_all()
    await client.aclose()


@pytest.mark.asyncio
async def test_registry_lookup_and_removal(product_factory):
    registry = ProductRegistry([product_factory(1)])
    registry.register(product_factory(2))

    assert (await registry.find_by_id("p2")).name == "Product 002"
    assert registry.remove("p1") is True
    assert registry.remove("p1") is False
    assert [product.id for product in await registry.find_all()] == ["p2"]
    assert await registry.find_by_id("p1") is None
