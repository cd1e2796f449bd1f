"""Initialization entry point: plan, then embed the catalog in batches."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Sequence
from typing import Any

from src.errors import EmbeddingSyncError, ValidationError
from src.models.product import Product
from src.models.sync import (
    BatchReport,
    InitializationStatus,
    ProcessingEstimate,
    ProcessingOptions,
    parse_options,
)
from src.services.sync.dependencies import SyncDependencies
from src.services.sync.embedder import ProductEmbedder
from src.services.sync.orchestrator import BatchOrchestrator, ProgressCallback
from src.services.sync.planner import SyncPlanner
from src.services.sync.validator import EmbeddingValidator

logger = logging.getLogger(__name__)

_ESTIMATED_SECONDS_PER_PRODUCT = 3
_LOG_PREVIEW = 5


class EmbeddingInitializer:
    """Keeps the vector store in step with the catalog."""

    def __init__(self, deps: SyncDependencies) -> None:
        self.catalog = deps.catalog
        self.vector_store = deps.vector_store
        self.embedder = ProductEmbedder(
            vector_store=deps.vector_store,
            encoder=deps.encoder,
            catalog=deps.catalog,
            retry_base_delay_ms=deps.retry_base_delay_ms,
        )
        self.orchestrator = BatchOrchestrator(embedder=self.embedder)
        self.planner = SyncPlanner(vector_store=deps.vector_store)
        self.validator = EmbeddingValidator(
            catalog=deps.catalog, vector_store=deps.vector_store
        )

    async def initialize(
        self,
        options: ProcessingOptions | dict[str, Any] | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> BatchReport:
        """Embed every catalog product (or ``target_product_ids``) that needs it."""
        opts = parse_options(ProcessingOptions, options)
        if opts.force_regenerate:
            logger.warning("Force mode ON - all embeddings will be regenerated")
        elif opts.skip_existing:
            logger.info("Protection mode ON - existing embeddings will be preserved")

        not_found: list[str] = []
        try:
            if opts.target_product_ids:
                products, not_found = await self.resolve_products(opts.target_product_ids)
            else:
                products = await self.catalog.find_all()
        except EmbeddingSyncError:
            raise
        except Exception as exc:
            logger.exception("Failed to load products for embedding initialization")
            raise EmbeddingSyncError(f"Embedding initialization failed: {exc}") from exc

        report = await self.synchronize(
            products, opts, use_planner=True, progress_callback=progress_callback
        )
        report.not_found_ids = not_found
        return report

    async def initialize_incremental(
        self,
        options: ProcessingOptions | dict[str, Any] | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> BatchReport:
        """Re-check every product individually instead of trusting the bulk id list."""
        opts = parse_options(ProcessingOptions, options)
        logger.info("Starting incremental embedding initialization")
        return await self.initialize(
            opts.model_copy(update={"skip_existing": False}), progress_callback
        )

    async def initialize_for_products(
        self,
        product_ids: Sequence[str],
        options: ProcessingOptions | dict[str, Any] | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> BatchReport:
        """Embed exactly the listed products, bypassing the planner."""
        if not product_ids:
            raise ValidationError("At least one product ID must be provided")
        opts = parse_options(ProcessingOptions, options)
        logger.info("Initializing embeddings for %d specific products", len(product_ids))

        try:
            products, not_found = await self.resolve_products(product_ids)
        except Exception as exc:
            logger.exception("Failed to resolve target products")
            raise EmbeddingSyncError(
                f"Specific embedding initialization failed: {exc}"
            ) from exc

        report = await self.synchronize(
            products, opts, use_planner=False, progress_callback=progress_callback
        )
        report.not_found_ids = not_found
        return report

    async def synchronize(
        self,
        products: Sequence[Product],
        options: ProcessingOptions | dict[str, Any] | None = None,
        *,
        use_planner: bool = True,
        initialize_store: bool = True,
        progress_callback: ProgressCallback | None = None,
    ) -> BatchReport:
        """Embed already-resolved products, optionally filtering through the planner.

        Pass ``initialize_store=False`` when :meth:`prepare_store` already ran.
        """
        opts = parse_options(ProcessingOptions, options)
        started = time.monotonic()

        if initialize_store:
            await self.prepare_store()

        existing = 0
        to_process = list(products)
        if use_planner and to_process:
            plan = await self.planner.plan(
                to_process,
                skip_existing=opts.skip_existing,
                force_regenerate=opts.force_regenerate,
            )
            to_process = plan.to_process
            existing = plan.summary.existing

        if to_process:
            report = await self.orchestrator.process_batches(
                to_process,
                opts,
                allow_overwrite=opts.overwrite_authorized,
                progress_callback=progress_callback,
            )
        else:
            if products:
                logger.info("All products already have embeddings")
            report = BatchReport()

        report.total_products = len(products)
        report.skipped += existing
        report.record_duration((time.monotonic() - started) * 1000)
        self._log_results(report)
        return report

    async def prepare_store(self) -> None:
        try:
            await self.vector_store.initialize()
        except Exception as exc:
            logger.exception("Failed to initialize vector store")
            raise EmbeddingSyncError(f"Embedding initialization failed: {exc}") from exc

    async def resolve_products(
        self, product_ids: Sequence[str]
    ) -> tuple[list[Product], list[str]]:
        """Look up ``product_ids``; returns the products found and the ids that were not.

        Repeated ids are resolved once, keeping first-seen order.
        """
        unique_ids = list(dict.fromkeys(product_ids))
        if len(unique_ids) < len(product_ids):
            logger.warning(
                "Ignoring %d duplicate product IDs", len(product_ids) - len(unique_ids)
            )

        products: list[Product] = []
        not_found: list[str] = []
        for product_id in unique_ids:
            product = await self.catalog.find_by_id(product_id)
            if product is None:
                not_found.append(product_id)
            else:
                products.append(product)

        if not_found:
            logger.warning("Products not found: %s", ", ".join(not_found))
        return products, not_found

    async def get_status(self) -> InitializationStatus:
        products = await self.catalog.find_all()
        catalog_ids = {product.id for product in products}
        existing = catalog_ids & set(await self.vector_store.get_existing_ids())
        return InitializationStatus(
            total_products=len(catalog_ids),
            with_embeddings=len(existing),
            without_embeddings=len(catalog_ids) - len(existing),
        )

    async def estimate_processing_time(
        self, options: ProcessingOptions | dict[str, Any] | None = None
    ) -> ProcessingEstimate:
        opts = parse_options(ProcessingOptions, options)
        if opts.target_product_ids:
            products, _ = await self.resolve_products(opts.target_product_ids)
        else:
            products = await self.catalog.find_all()

        plan = await self.planner.plan(
            products,
            skip_existing=opts.skip_existing,
            force_regenerate=opts.force_regenerate,
        )
        count = len(plan.to_process)
        return ProcessingEstimate(
            total_products=len(products),
            products_to_process=count,
            estimated_duration_minutes=math.ceil(count * _ESTIMATED_SECONDS_PER_PRODUCT / 60),
            estimated_batches=math.ceil(count / opts.batch_size),
        )

    @staticmethod
    def _log_results(report: BatchReport) -> None:
        logger.info(
            "Embedding initialization results: total=%d successful=%d failed=%d "
            "skipped=%d duration=%.2fs success_rate=%.1f%%",
            report.total_products,
            report.successful,
            report.failed,
            report.skipped,
            report.duration_ms / 1000,
            report.success_rate,
        )
        for failure in report.errors[:_LOG_PREVIEW]:
            logger.warning(
                "Failed: %s (%s): %s",
                failure.product_name,
                failure.product_id,
                failure.error,
            )
        if report.failed > _LOG_PREVIEW:
            logger.warning("... and %d more errors", report.failed - _LOG_PREVIEW)
        for processed in report.processed_products[:_LOG_PREVIEW]:
            logger.info(
                "Processed: %s (%dD)",
                processed.product_name,
                processed.embedding_dimensions,
            )
        if report.skipped:
            logger.info("Protection: %d existing embeddings preserved", report.skipped)
