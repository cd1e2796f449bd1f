"""Catalog source contract consumed by the synchronization engine."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.product import Product


class CatalogSource(ABC):
    """Source of truth for products and their embeddable content."""

    @abstractmethod
    async def find_by_id(self, product_id: str) -> Product | None:
        """Return the product or None when it is not in the catalog."""

    @abstractmethod
    async def find_all(self) -> list[Product]:
        """Return every product in the catalog."""
