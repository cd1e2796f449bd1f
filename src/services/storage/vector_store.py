"""Vector store contract consumed by the synchronization engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.embedding import EmbeddingInfo, ProductEmbedding


class VectorStore(ABC):
    """Persists product id -> vector + metadata mappings.

    ``store`` must be safe under concurrent calls for distinct product ids and
    must raise :class:`~src.errors.EmbeddingAlreadyExistsError` when
    ``allow_overwrite`` is false and the product already has an embedding.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the underlying collection/index."""

    @abstractmethod
    async def has_embedding(self, product_id: str) -> bool:
        """Return True when an embedding is stored for the product."""

    @abstractmethod
    async def get_existing_ids(self) -> list[str]:
        """Return the ids of every product that currently has an embedding."""

    @abstractmethod
    async def store(self, embedding: ProductEmbedding, allow_overwrite: bool = False) -> None:
        """Persist the embedding as the current record of its product."""

    @abstractmethod
    async def delete(self, product_id: str) -> None:
        """Remove the embedding of the product, if any."""

    async def get_info(self, product_id: str) -> EmbeddingInfo:
        """Return introspection data; optional capability."""
        raise NotImplementedError(f"{type(self).__name__} does not expose embedding info")

    async def search_similar(
        self,
        query_vector: list[float],
        limit: int = 10,
        score_threshold: float | None = None,
    ) -> list[dict[str, Any]]:
        """Search for similar vectors; optional capability."""
        raise NotImplementedError(f"{type(self).__name__} does not support search")
