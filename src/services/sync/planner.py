"""Decides which products need (re)embedding."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from src.models.product import Product
from src.models.sync import PlanSummary, SyncPlan
from src.services.storage.vector_store import VectorStore

logger = logging.getLogger(__name__)

_PREVIEW_LIMIT = 10


class SyncPlanner:
    """Partitions products into "already embedded" and "needs processing"."""

    def __init__(self, *, vector_store: VectorStore) -> None:
        self.vector_store = vector_store

    async def plan(
        self,
        products: Sequence[Product],
        *,
        skip_existing: bool = True,
        force_regenerate: bool = False,
    ) -> SyncPlan:
        if force_regenerate:
            logger.info("Force regenerate enabled - processing all %d products", len(products))
            return self._process_all(products)

        if not skip_existing:
            logger.info("Skip existing disabled - processing all %d products", len(products))
            return self._process_all(products)

        try:
            existing_ids = set(await self.vector_store.get_existing_ids())
        except Exception:
            # The embedder still checks existence per product before writing.
            logger.exception(
                "Failed to check existing embeddings, defaulting to process all products"
            )
            return self._process_all(products)

        already_have = [product for product in products if product.id in existing_ids]
        to_process = [product for product in products if product.id not in existing_ids]
        summary = PlanSummary(
            total=len(products),
            existing=len(already_have),
            to_process=len(to_process),
        )

        logger.info(
            "Embedding status: total=%d existing=%d to_process=%d",
            summary.total,
            summary.existing,
            summary.to_process,
        )
        self._log_preview("Products with existing embeddings (skipped)", already_have)
        self._log_preview("Products to process", to_process)

        return SyncPlan(to_process=to_process, already_have=already_have, summary=summary)

    @staticmethod
    def _process_all(products: Sequence[Product]) -> SyncPlan:
        return SyncPlan(
            to_process=list(products),
            already_have=[],
            summary=PlanSummary(total=len(products), existing=0, to_process=len(products)),
        )

    @staticmethod
    def _log_preview(title: str, products: list[Product]) -> None:
        if not products:
            return
        names = ", ".join(
            f"{product.name} ({product.id})" for product in products[:_PREVIEW_LIMIT]
        )
        remaining = len(products) - _PREVIEW_LIMIT
        suffix = f" ... and {remaining} more" if remaining > 0 else ""
        logger.info("%s: %s%s", title, names, suffix)
