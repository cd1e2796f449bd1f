"""Inspects stored embeddings for structural correctness."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from src.config import settings
from src.models.product import Product
from src.models.sync import EmbeddingIssue, ValidationReport
from src.services.catalog.base import CatalogSource
from src.services.storage.vector_store import VectorStore

logger = logging.getLogger(__name__)


class EmbeddingValidator:
    """Checks stored embeddings against the catalog and the expected dimensions."""

    def __init__(
        self,
        *,
        catalog: CatalogSource,
        vector_store: VectorStore,
        expected_dimensions: int | None = None,
    ) -> None:
        self.catalog = catalog
        self.vector_store = vector_store
        self.expected_dimensions = expected_dimensions or settings.EMBEDDING_DIMENSIONS

    async def validate(self, products: Sequence[Product] | None = None) -> ValidationReport:
        """Classify the catalog's embeddings as valid, invalid or missing.

        Never raises: an unexpected failure yields an all-zero report with a
        single synthetic issue.
        """
        try:
            if products is None:
                products = await self.catalog.find_all()
            catalog_ids = {product.id for product in products}
            stored_ids = set(await self.vector_store.get_existing_ids())

            report = ValidationReport(orphaned_embeddings=len(stored_ids - catalog_ids))
            existing_ids = sorted(stored_ids & catalog_ids)
            for product_id in existing_ids:
                issue = await self._check(product_id)
                if issue is None:
                    report.valid_embeddings += 1
                else:
                    report.invalid_embeddings += 1
                    report.issues.append(EmbeddingIssue(product_id=product_id, issue=issue))

            report.missing_embeddings = len(catalog_ids) - len(existing_ids)
        except Exception as exc:
            logger.exception("Failed to validate embeddings")
            return ValidationReport(
                issues=[EmbeddingIssue(product_id="unknown", issue=f"Validation failed: {exc}")]
            )

        logger.info(
            "Validation: valid=%d invalid=%d missing=%d orphaned=%d",
            report.valid_embeddings,
            report.invalid_embeddings,
            report.missing_embeddings,
            report.orphaned_embeddings,
        )
        return report

    async def _check(self, product_id: str) -> str | None:
        """Return an issue description, or None when the embedding is valid."""
        try:
            info = await self.vector_store.get_info(product_id)
        except NotImplementedError:
            return "Embedding exists but cannot retrieve info"
        except Exception as exc:
            return f"Validation error: {exc}"

        if not info.exists or not info.dimensions:
            return "Embedding exists but cannot retrieve info"
        if info.dimensions != self.expected_dimensions:
            return (
                f"Invalid dimensions: {info.dimensions}, "
                f"expected: {self.expected_dimensions}"
            )
        return None
