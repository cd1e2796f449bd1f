"""HTTP client reading products from the catalog service."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.config import settings
from src.models.product import Product
from src.services.catalog.base import CatalogSource

logger = logging.getLogger(__name__)


class CatalogServiceClient(CatalogSource):
    """Catalog source backed by the catalog service's REST API.

    ``GET /products?limit=&offset=`` returns a JSON list (or an object with an
    ``items`` list); paging stops at the first short page.
    ``GET /products/{id}`` returns one product or 404.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        page_size: int | None = None,
    ) -> None:
        self._client = client
        self._page_size = page_size or settings.CATALOG_PAGE_SIZE

    async def find_by_id(self, product_id: str) -> Product | None:
        response = await self._client.get(f"/products/{product_id}")
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()
        return Product.model_validate(response.json())

    async def find_all(self) -> list[Product]:
        products: list[Product] = []
        offset = 0
        while True:
            response = await self._client.get(
                "/products",
                params={"limit": self._page_size, "offset": offset},
            )
            response.raise_for_status()
            page = self._extract_items(response.json())
            products.extend(Product.model_validate(item) for item in page)
            if len(page) < self._page_size:
                break
            offset += len(page)

        logger.info("Fetched %d products from catalog service", len(products))
        return products

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _extract_items(body: Any) -> list[dict[str, Any]]:
        if isinstance(body, dict):
            return list(body.get("items", []))
        return list(body)


def create_catalog_client(base_url: str | None = None) -> CatalogServiceClient:
    """Factory function to create a catalog client from settings."""
    client = httpx.AsyncClient(
        base_url=base_url or settings.CATALOG_SERVICE_URL,
        timeout=settings.CATALOG_TIMEOUT_SECONDS,
    )
    return CatalogServiceClient(client)
