"""Qdrant vector database service for product embedding storage."""

from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from typing import Any

from qdrant_client import QdrantClient  # type: ignore[import]
from qdrant_client.http import models as qmodels  # type: ignore[import]

from src.config import settings
from src.errors import EmbeddingAlreadyExistsError
from src.models.embedding import EmbeddingInfo, ProductEmbedding
from src.services.storage.vector_store import VectorStore

logger = logging.getLogger(__name__)


class QdrantService(VectorStore):
    """Stores one current embedding per product inside a Qdrant collection."""

    def __init__(
        self,
        client: QdrantClient,
        collection_name: str,
        *,
        vector_size: int | None = None,
        scroll_limit: int | None = None,
    ):
        self.client = client
        self.collection_name = collection_name
        self.vector_size = vector_size or settings.EMBEDDING_DIMENSIONS
        self.scroll_limit = scroll_limit or settings.QDRANT_SCROLL_LIMIT
        self._collection_ready = False
        self._write_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _write_lock(self, point_id: str) -> asyncio.Lock:
        lock = self._write_locks.get(point_id)
        if lock is None:
            lock = asyncio.Lock()
            self._write_locks[point_id] = lock
        return lock

    async def initialize(self) -> None:
        await self.ensure_collection(self.vector_size)

    async def ensure_collection(self, vector_size: int) -> None:
        """Ensure the collection exists with the correct configuration."""
        if self._collection_ready:
            return

        try:
            await asyncio.to_thread(
                self.client.get_collection,
                collection_name=self.collection_name,
            )
            self._collection_ready = True
            return
        except Exception:
            logger.info("Creating Qdrant collection %s", self.collection_name)

        await asyncio.to_thread(
            self.client.create_collection,
            collection_name=self.collection_name,
            vectors_config=qmodels.VectorParams(
                size=vector_size,
                distance=qmodels.Distance.COSINE,
            ),
        )
        self._collection_ready = True

    async def has_embedding(self, product_id: str) -> bool:
        records = await asyncio.to_thread(
            self.client.retrieve,
            collection_name=self.collection_name,
            ids=[self.point_id(product_id)],
            with_payload=False,
            with_vectors=False,
        )
        return bool(records)

    async def get_existing_ids(self) -> list[str]:
        """Page through the collection and collect every stored product id."""
        product_ids: list[str] = []
        offset = None
        while True:
            records, offset = await asyncio.to_thread(
                self.client.scroll,
                collection_name=self.collection_name,
                limit=self.scroll_limit,
                offset=offset,
                with_payload=["product_id"],
                with_vectors=False,
            )
            for record in records:
                product_id = (record.payload or {}).get("product_id")
                if product_id:
                    product_ids.append(str(product_id))
            if offset is None:
                break

        logger.debug(
            "Loaded existing embedding ids",
            extra={"collection": self.collection_name, "count": len(product_ids)},
        )
        return product_ids

    async def store(self, embedding: ProductEmbedding, allow_overwrite: bool = False) -> None:
        """Upsert the embedding, refusing to replace an existing one unless allowed."""
        await self.ensure_collection(embedding.dimensions)

        point_id = self.point_id(embedding.product_id)
        # Existence check and upsert are atomic per product within this process.
        async with self._write_lock(point_id):
            if not allow_overwrite and await self.has_embedding(embedding.product_id):
                raise EmbeddingAlreadyExistsError(embedding.product_id)

            point = qmodels.PointStruct(
                id=point_id,
                vector=embedding.vector,
                payload=self._build_payload(embedding),
            )
            await asyncio.to_thread(
                self.client.upsert,
                collection_name=self.collection_name,
                points=[point],
            )
        logger.debug(
            "Embedding stored",
            extra={"product_id": embedding.product_id, "overwrite": allow_overwrite},
        )

    async def get_info(self, product_id: str) -> EmbeddingInfo:
        records = await asyncio.to_thread(
            self.client.retrieve,
            collection_name=self.collection_name,
            ids=[self.point_id(product_id)],
            with_payload=["created_at"],
            with_vectors=True,
        )
        if not records:
            return EmbeddingInfo(exists=False)

        record = records[0]
        payload = record.payload or {}
        return EmbeddingInfo(
            exists=True,
            dimensions=self._vector_length(record.vector),
            created_at=payload.get("created_at"),
        )

    async def delete(self, product_id: str) -> None:
        """Delete the product's point from the collection."""
        await asyncio.to_thread(
            self.client.delete,
            collection_name=self.collection_name,
            points_selector=qmodels.PointIdsList(points=[self.point_id(product_id)]),
        )
        logger.info("Embedding deleted", extra={"product_id": product_id})

    async def search_similar(
        self,
        query_vector: list[float],
        limit: int = 10,
        score_threshold: float | None = None,
    ) -> list[dict[str, Any]]:
        """Search for similar vectors."""
        response = await asyncio.to_thread(
            self.client.query_points,
            collection_name=self.collection_name,
            query=query_vector,
            limit=limit,
            score_threshold=score_threshold,
            with_payload=True,
        )

        return [
            {
                "id": hit.id,
                "score": hit.score,
                "payload": hit.payload,
            }
            for hit in response.points
        ]

    @staticmethod
    def point_id(product_id: str) -> str:
        """Return a deterministic UUID string for the product.

        Qdrant requires point IDs to be either an unsigned integer or a UUID.
        Deriving a UUIDv5 from the product id keeps exactly one point per
        product, so re-storing a product replaces its previous record.
        """

        return str(uuid.uuid5(uuid.NAMESPACE_URL, f"product:{product_id}"))

    @staticmethod
    def _build_payload(embedding: ProductEmbedding) -> dict[str, Any]:
        payload = dict(embedding.metadata)
        payload["product_id"] = embedding.product_id
        payload["embedding_id"] = embedding.id
        return payload

    @staticmethod
    def _vector_length(vector: Any) -> int | None:
        if isinstance(vector, dict):
            # Named vectors: report the first one.
            vector = next(iter(vector.values()), None)
        if not vector:
            return None
        return len(vector)


def create_qdrant_service(collection_name: str | None = None) -> QdrantService:
    """Factory function to create a Qdrant service."""
    client = QdrantClient(url=settings.QDRANT_URL, api_key=settings.QDRANT_API_KEY)
    collection = collection_name or settings.QDRANT_COLLECTION
    return QdrantService(client, collection)
