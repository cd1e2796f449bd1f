"""Generates and stores the embedding of a single product."""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import UTC, datetime
from numbers import Real
from typing import Any

from src.config import settings
from src.errors import (
    EmbeddingAlreadyExistsError,
    InvalidEmbeddingError,
    ValidationError,
)
from src.models.embedding import EmbeddingResult, ProductEmbedding
from src.models.product import Product
from src.services.catalog.base import CatalogSource
from src.services.clients.encoder_client import EncoderClient
from src.services.storage.vector_store import VectorStore

logger = logging.getLogger(__name__)

# Deterministic failures, never retried.
_NON_RETRYABLE = (InvalidEmbeddingError, ValidationError)


class ProductEmbedder:
    """Embeds one product with overwrite protection and bounded retry."""

    def __init__(
        self,
        *,
        vector_store: VectorStore,
        encoder: EncoderClient,
        catalog: CatalogSource | None = None,
        retry_base_delay_ms: int | None = None,
    ) -> None:
        self.vector_store = vector_store
        self.encoder = encoder
        self.catalog = catalog
        self.retry_base_delay_ms = (
            settings.SYNC_RETRY_BASE_DELAY_MS
            if retry_base_delay_ms is None
            else retry_base_delay_ms
        )

    async def embed(
        self,
        product: Product,
        *,
        allow_overwrite: bool = False,
        max_retries: int | None = None,
    ) -> EmbeddingResult:
        """Embed and store ``product``.

        Never raises: exhausted retries are reported as a failed result so
        that batch accounting can continue.
        """
        attempts = max(1, max_retries or settings.SYNC_MAX_RETRIES)
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                if not allow_overwrite and await self.vector_store.has_embedding(product.id):
                    logger.info(
                        "Embedding already exists for %s, skipping",
                        product.name,
                        extra={"product_id": product.id},
                    )
                    return self._skipped(product)

                dimensions = await self._generate_and_store(product, allow_overwrite)
            except EmbeddingAlreadyExistsError as exc:
                if allow_overwrite:
                    # The store refused an authorized overwrite.
                    logger.error("Overwrite rejected for %s: %s", product.name, exc)
                    return self._failed(product, exc, attempt)
                logger.info(
                    "Embedding for %s stored concurrently, skipping",
                    product.name,
                    extra={"product_id": product.id},
                )
                return self._skipped(product)
            except _NON_RETRYABLE as exc:
                logger.error(
                    "Cannot embed %s: %s",
                    product.name,
                    exc,
                    extra={"product_id": product.id},
                )
                return self._failed(product, exc, attempt)
            except Exception as exc:
                last_error = exc
                if attempt < attempts:
                    delay_ms = self.retry_base_delay_ms * 2 ** (attempt - 1)
                    logger.warning(
                        "Attempt %d/%d failed for %s: %s (retrying in %dms)",
                        attempt,
                        attempts,
                        product.name,
                        exc,
                        delay_ms,
                        extra={"product_id": product.id},
                    )
                    await asyncio.sleep(delay_ms / 1000)
                else:
                    logger.error(
                        "All %d attempts failed for %s: %s",
                        attempts,
                        product.name,
                        exc,
                        extra={"product_id": product.id},
                    )
            else:
                return EmbeddingResult(
                    success=True,
                    product_id=product.id,
                    product_name=product.name,
                    dimensions=dimensions,
                    retry_count=attempt if attempt > 1 else None,
                )

        return self._failed(product, last_error, attempts)

    async def embed_by_id(
        self,
        product_id: str,
        *,
        allow_overwrite: bool = False,
        max_retries: int | None = None,
    ) -> EmbeddingResult:
        """Resolve the product through the catalog, then embed it."""
        if not product_id or not product_id.strip():
            raise ValidationError("Product ID is required")
        if self.catalog is None:
            raise ValidationError("A catalog source is required to embed by id")

        product = await self.catalog.find_by_id(product_id)
        if product is None:
            return EmbeddingResult(
                success=False,
                product_id=product_id,
                product_name="Unknown",
                error=f"Product not found: {product_id}",
            )
        return await self.embed(
            product, allow_overwrite=allow_overwrite, max_retries=max_retries
        )

    async def can_create_embedding(self, product_id: str) -> dict[str, Any]:
        """Report whether a new embedding may be created for the product."""
        if self.catalog is None:
            raise ValidationError("A catalog source is required to check products")

        try:
            product = await self.catalog.find_by_id(product_id)
            if product is None:
                return {
                    "can_create": False,
                    "reason": "Product not found",
                    "product_exists": False,
                    "embedding_exists": False,
                }
            embedding_exists = await self.vector_store.has_embedding(product_id)
        except Exception as exc:
            return {
                "can_create": False,
                "reason": f"Error checking embedding: {exc}",
                "product_exists": False,
                "embedding_exists": False,
            }

        return {
            "can_create": not embedding_exists,
            "reason": "Embedding already exists" if embedding_exists else None,
            "product_exists": True,
            "embedding_exists": embedding_exists,
        }

    async def _generate_and_store(self, product: Product, allow_overwrite: bool) -> int:
        text = build_embedding_text(product)
        if not text:
            raise ValidationError(f"Product {product.id} has no embeddable content")

        vector = validate_vector(await self.encoder.embed(text))
        embedding = ProductEmbedding(
            product_id=product.id,
            vector=vector,
            metadata=build_metadata(product),
        )
        await self.vector_store.store(embedding, allow_overwrite=allow_overwrite)

        logger.info(
            "Stored %d-dimensional embedding for %s",
            len(vector),
            product.name,
            extra={"product_id": product.id},
        )
        return len(vector)

    @staticmethod
    def _skipped(product: Product) -> EmbeddingResult:
        return EmbeddingResult(
            success=True,
            product_id=product.id,
            product_name=product.name,
            skipped=True,
        )

    @staticmethod
    def _failed(product: Product, error: Exception | None, attempts: int) -> EmbeddingResult:
        return EmbeddingResult(
            success=False,
            product_id=product.id,
            product_name=product.name,
            error=str(error) if error else "Unknown error after max retries",
            retry_count=attempts,
        )


def build_embedding_text(product: Product) -> str:
    """Concatenate the product's embeddable fields into one text."""

    parts: list[Any] = [
        product.name,
        product.description,
        product.category,
        *product.features,
        *product.tags,
    ]
    parts.extend(
        f"{key}: {value}"
        for key, value in product.specifications.items()
        if value is not None
    )

    cleaned = [part.strip() for part in parts if isinstance(part, str)]
    text = " ".join(part for part in cleaned if part)

    if 0 < len(text) < 10:
        logger.warning("Very short embedding text for %s: %r", product.name, text)
    return text


def build_metadata(product: Product) -> dict[str, Any]:
    """Snapshot of the product stored alongside its vector."""

    return {
        "product_id": product.id,
        "name": product.name,
        "description": product.description,
        "category": product.category,
        "price": product.price,
        "in_stock": product.in_stock,
        "features": list(product.features),
        "tags": list(product.tags),
        "specifications": dict(product.specifications),
        "created_at": datetime.now(UTC).isoformat(),
        "embedding_version": settings.EMBEDDING_VERSION,
    }


def validate_vector(vector: Any) -> list[float]:
    """Return ``vector`` as floats or raise :class:`InvalidEmbeddingError`."""

    if not isinstance(vector, (list, tuple)) or not vector:
        raise InvalidEmbeddingError(
            "Invalid embedding generated - empty or non-sequence result"
        )
    if any(
        isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value)
        for value in vector
    ):
        raise InvalidEmbeddingError(
            "Invalid embedding generated - contains non-numeric or infinite values"
        )
    return [float(value) for value in vector]
