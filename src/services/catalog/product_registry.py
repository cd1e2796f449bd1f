"""In-memory product registry usable as a catalog source."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from threading import RLock

from src.models.product import Product
from src.services.catalog.base import CatalogSource

logger = logging.getLogger(__name__)


class ProductRegistry(CatalogSource):
    """Naive in-memory product registry, keyed by product id."""

    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._lock = RLock()
        self._storage: dict[str, Product] = {}
        for product in products:
            self.register(product)

    def register(self, product: Product) -> Product:
        """Register or replace a product."""

        with self._lock:
            self._storage[product.id] = product

        logger.debug("Registered product %s", product.id)
        return product

    def remove(self, product_id: str) -> bool:
        with self._lock:
            return self._storage.pop(product_id, None) is not None

    def list_products(self) -> list[Product]:
        with self._lock:
            return list(self._storage.values())

    async def find_by_id(self, product_id: str) -> Product | None:
        with self._lock:
            return self._storage.get(product_id)

    async def find_all(self) -> list[Product]:
        return self.list_products()
