"""Runs the single-product embedder over paced, concurrent batches."""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from src.config import settings
from src.models.embedding import EmbeddingResult
from src.models.product import Product
from src.models.sync import (
    BatchProgress,
    BatchReport,
    ProcessedProduct,
    ProcessingOptions,
    ProductFailure,
    parse_options,
)
from src.services.sync.embedder import ProductEmbedder

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BatchProgress], Awaitable[None] | None]


class BatchOrchestrator:
    """Partitions products into batches and embeds each batch concurrently.

    Batch N fully settles before batch N+1 starts, which caps concurrent
    provider load at ``batch_size``. Cancellation is cooperative and only
    honoured between batches, never for an item already in flight.
    """

    def __init__(
        self,
        *,
        embedder: ProductEmbedder,
        report_max_entries: int | None = None,
    ) -> None:
        self.embedder = embedder
        self.report_max_entries = report_max_entries or settings.SYNC_REPORT_MAX_ENTRIES
        self._cancel_event = asyncio.Event()

    def cancel(self) -> None:
        """Request the current run to stop at the next batch boundary."""
        self._cancel_event.set()

    def is_cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    async def process_batches(
        self,
        products: Sequence[Product],
        options: ProcessingOptions | dict[str, Any] | None = None,
        *,
        allow_overwrite: bool | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> BatchReport:
        """Embed ``products`` and return an aggregated report.

        ``allow_overwrite`` defaults to the options' overwrite authority.
        """
        opts = parse_options(ProcessingOptions, options)
        overwrite = opts.overwrite_authorized if allow_overwrite is None else allow_overwrite

        total = len(products)
        report = BatchReport(total_products=total)
        if total == 0:
            logger.info("No products to process")
            return report

        batch_size = opts.batch_size
        total_batches = math.ceil(total / batch_size)
        per_product_ms: list[float] = []
        processed = 0
        started = time.monotonic()

        logger.info(
            "Starting batch embedding: %d products, batch_size=%d, delay=%dms, "
            "max_retries=%d, overwrite=%s",
            total,
            batch_size,
            opts.delay_between_batches_ms,
            opts.max_retries,
            overwrite,
        )

        try:
            for batch_number, offset in enumerate(range(0, total, batch_size), start=1):
                if self.is_cancel_requested():
                    report.cancelled = True
                    report.not_processed = total - processed
                    logger.warning(
                        "Run cancelled before batch %d/%d; %d products not processed",
                        batch_number,
                        total_batches,
                        report.not_processed,
                    )
                    break

                batch = products[offset : offset + batch_size]
                logger.info(
                    "Processing batch %d/%d (%d products): %s",
                    batch_number,
                    total_batches,
                    len(batch),
                    ", ".join(product.name for product in batch),
                )

                batch_started = time.monotonic()
                outcomes = await asyncio.gather(
                    *(
                        self.embedder.embed(
                            product,
                            allow_overwrite=overwrite,
                            max_retries=opts.max_retries,
                        )
                        for product in batch
                    ),
                    return_exceptions=True,
                )
                per_product_ms.append(
                    (time.monotonic() - batch_started) * 1000 / len(batch)
                )

                for product, outcome in zip(batch, outcomes):
                    processed += 1
                    self._record(report, product, outcome)

                progress = self._build_progress(
                    report,
                    processed=processed,
                    batch_number=batch_number,
                    total_batches=total_batches,
                    current_product=batch[-1].name,
                    per_product_ms=per_product_ms,
                )
                await self._notify(progress_callback, progress)

                logger.info(
                    "Progress: %d%% (%d/%d) success=%d skipped=%d failed=%d eta=%.0fs",
                    progress.percentage,
                    processed,
                    total,
                    report.successful,
                    report.skipped,
                    report.failed,
                    progress.estimated_time_remaining_ms / 1000,
                    extra={"batch": batch_number},
                )

                if offset + batch_size < total and opts.delay_between_batches_ms > 0:
                    logger.debug(
                        "Waiting %dms before next batch", opts.delay_between_batches_ms
                    )
                    await self._pause(opts.delay_between_batches_ms)
        finally:
            self._cancel_event.clear()

        report.record_duration((time.monotonic() - started) * 1000)
        logger.info(
            "Batch processing completed: %d successful, %d skipped, %d failed in %.1fs",
            report.successful,
            report.skipped,
            report.failed,
            report.duration_ms / 1000,
        )
        return report

    def _record(
        self,
        report: BatchReport,
        product: Product,
        outcome: EmbeddingResult | BaseException,
    ) -> None:
        if isinstance(outcome, BaseException):
            logger.error(
                "Unexpected error embedding %s: %s",
                product.name,
                outcome,
                extra={"product_id": product.id},
            )
            outcome = EmbeddingResult(
                success=False,
                product_id=product.id,
                product_name=product.name,
                error=str(outcome) or type(outcome).__name__,
            )

        if not outcome.success:
            report.failed += 1
            if len(report.errors) < self.report_max_entries:
                report.errors.append(
                    ProductFailure(
                        product_id=product.id,
                        product_name=product.name,
                        error=outcome.error or "Unknown error",
                    )
                )
        elif outcome.skipped:
            report.skipped += 1
        else:
            report.successful += 1
            dimensions = outcome.dimensions or 0
            if not report.embedding_dimensions:
                report.embedding_dimensions = dimensions
            if len(report.processed_products) < self.report_max_entries:
                report.processed_products.append(
                    ProcessedProduct(
                        product_id=product.id,
                        product_name=product.name,
                        embedding_dimensions=dimensions,
                    )
                )

    @staticmethod
    def _build_progress(
        report: BatchReport,
        *,
        processed: int,
        batch_number: int,
        total_batches: int,
        current_product: str,
        per_product_ms: list[float],
    ) -> BatchProgress:
        total = report.total_products
        average = sum(per_product_ms) / len(per_product_ms)
        return BatchProgress(
            total=total,
            processed=processed,
            successful=report.successful,
            skipped=report.skipped,
            failed=report.failed,
            percentage=round(processed / total * 100),
            current_batch=batch_number,
            total_batches=total_batches,
            current_product=current_product,
            estimated_time_remaining_ms=(total - processed) * average,
            average_time_per_product_ms=average,
        )

    @staticmethod
    async def _notify(
        callback: ProgressCallback | None, progress: BatchProgress
    ) -> None:
        if callback is None:
            return
        try:
            result = callback(progress)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Progress callback failed")

    async def _pause(self, delay_ms: int) -> None:
        """Sleep between batches, waking early when cancellation is requested."""
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=delay_ms / 1000)
        except TimeoutError:
            pass
