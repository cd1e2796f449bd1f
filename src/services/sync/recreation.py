"""Safe regenerate-embeddings workflow with before/after validation."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Sequence
from typing import Any

from src.errors import NotFoundError, ProviderError, ValidationError
from src.models.product import Product
from src.models.sync import (
    MAX_RECREATION_TARGETS,
    ProcessingOptions,
    ProviderHealth,
    RecreationEstimate,
    RecreationInfo,
    RecreationOptions,
    RecreationPhase,
    RecreationResult,
    ValidationReport,
    parse_options,
)
from src.services.sync.dependencies import SyncDependencies
from src.services.sync.embedder import validate_vector
from src.services.sync.initializer import EmbeddingInitializer
from src.services.sync.orchestrator import ProgressCallback

logger = logging.getLogger(__name__)

CONSERVATIVE_SETTINGS = {"batch_size": 3, "delay_between_batches_ms": 2500, "max_retries": 5}
DEFAULT_SETTINGS = {"batch_size": 5, "delay_between_batches_ms": 1500, "max_retries": 3}

MIN_FULL_RECREATION_REASON_LENGTH = 10
PROBLEMATIC_REASON = "Recreating problematic embeddings (missing, invalid, or with issues)"

_CONNECTIVITY_PROBE = "test connectivity for recreation"
_HEALTH_PROBE = "health check test"
_ESTIMATED_SECONDS_PER_PRODUCT = 3


class RecreationController:
    """Regenerates embeddings, always overwriting, with guard rails.

    A run moves through :class:`RecreationPhase`: preconditions (input
    validation, provider connectivity, target resolution) may abort it, but
    once processing starts only individual products can fail.
    """

    def __init__(
        self,
        deps: SyncDependencies,
        *,
        initializer: EmbeddingInitializer | None = None,
    ) -> None:
        self.catalog = deps.catalog
        self.vector_store = deps.vector_store
        self.encoder = deps.encoder
        self.initializer = initializer or EmbeddingInitializer(deps)
        self.validator = self.initializer.validator
        self.phase = RecreationPhase.IDLE

    async def recreate(
        self,
        options: RecreationOptions | dict[str, Any] | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> RecreationResult:
        self._enter(RecreationPhase.IDLE)
        try:
            opts = parse_options(RecreationOptions, options)
            logger.info(
                "Starting embeddings recreation (reason: %s, target: %s)",
                opts.reason,
                f"{len(opts.product_ids)} specific products" if opts.product_ids else "all products",
            )

            self._enter(RecreationPhase.CONNECTIVITY_CHECK)
            await self._check_connectivity()

            self._enter(RecreationPhase.PLANNING)
            targets, not_found = await self._resolve_targets(opts.product_ids)
            if not targets and not_found:
                raise NotFoundError(
                    f"No target products found for recreation: {', '.join(not_found)}"
                )
            if not targets:
                raise ValidationError("No target products found for recreation")
            existing_count = await self._count_existing(targets)
            logger.info(
                "Found %d products to recreate (%d with existing embeddings)",
                len(targets),
                existing_count,
            )
            await self.initializer.prepare_store()
        except Exception:
            self._enter(RecreationPhase.ABORTED)
            raise

        validation_before = None
        if opts.validate_before:
            self._enter(RecreationPhase.VALIDATING)
            validation_before = await self.validator.validate()
            self._log_validation("before", validation_before)

        processing = self._recreation_settings(opts)
        logger.info(
            "Recreation settings: batch_size=%d delay=%dms max_retries=%d",
            processing.batch_size,
            processing.delay_between_batches_ms,
            processing.max_retries,
        )

        self._enter(RecreationPhase.PROCESSING)
        report = await self.initializer.synchronize(
            targets,
            processing,
            use_planner=opts.product_ids is None,
            initialize_store=False,
            progress_callback=progress_callback,
        )
        report.not_found_ids = not_found

        validation_after = None
        if opts.validate_after:
            self._enter(RecreationPhase.VALIDATING)
            validation_after = await self.validator.validate()
            self._log_validation("after", validation_after)

        delta = None
        if validation_before is not None and validation_after is not None:
            delta = validation_after.valid_embeddings - validation_before.valid_embeddings

        result = RecreationResult(
            **report.model_dump(),
            recreation_info=RecreationInfo(
                reason=opts.reason,
                products_targeted=len(targets),
                existing_embeddings_found=existing_count,
                recreated=report.successful,
                failed=report.failed,
                validation_before=validation_before,
                validation_after=validation_after,
                valid_embeddings_delta=delta,
            ),
        )
        self._enter(RecreationPhase.REPORTED)
        self._log_summary(result)
        return result

    async def recreate_problematic(
        self, progress_callback: ProgressCallback | None = None
    ) -> RecreationResult:
        """Recreate embeddings that are missing or flagged by the validator."""
        logger.info("Identifying problematic embeddings")
        products = await self.catalog.find_all()
        validation = await self.validator.validate(products)
        existing = set(await self.vector_store.get_existing_ids())

        catalog_ids = {product.id for product in products}
        problematic = [product.id for product in products if product.id not in existing]
        seen = set(problematic)
        for issue in validation.issues:
            if issue.product_id in catalog_ids and issue.product_id not in seen:
                problematic.append(issue.product_id)
                seen.add(issue.product_id)

        logger.info(
            "Found %d products with embedding issues (missing=%d invalid=%d issues=%d)",
            len(problematic),
            validation.missing_embeddings,
            validation.invalid_embeddings,
            len(validation.issues),
        )

        if not problematic:
            logger.info("No problematic embeddings found")
            return RecreationResult(
                recreation_info=RecreationInfo(
                    reason="No problematic embeddings found",
                    products_targeted=0,
                    existing_embeddings_found=0,
                    recreated=0,
                    failed=0,
                )
            )

        if len(problematic) > MAX_RECREATION_TARGETS:
            logger.warning(
                "Limiting recreation to %d of %d problematic products; "
                "run again to handle the rest",
                MAX_RECREATION_TARGETS,
                len(problematic),
            )
            problematic = problematic[:MAX_RECREATION_TARGETS]

        return await self.recreate(
            RecreationOptions(
                product_ids=problematic,
                reason=PROBLEMATIC_REASON,
                validate_before=True,
                validate_after=True,
                conservative_settings=True,
            ),
            progress_callback,
        )

    async def recreate_all(
        self,
        reason: str,
        progress_callback: ProgressCallback | None = None,
    ) -> RecreationResult:
        """Regenerate every catalog embedding; requires a detailed reason."""
        if not reason or len(reason.strip()) < MIN_FULL_RECREATION_REASON_LENGTH:
            raise ValidationError(
                "A detailed reason (at least "
                f"{MIN_FULL_RECREATION_REASON_LENGTH} characters) is required for full recreation"
            )

        logger.warning("Recreating ALL product embeddings (reason: %s)", reason)
        return await self.recreate(
            RecreationOptions(
                reason=reason,
                validate_before=True,
                validate_after=True,
                conservative_settings=True,
            ),
            progress_callback,
        )

    async def check_provider_health(self) -> ProviderHealth:
        started = time.monotonic()
        try:
            vector = validate_vector(await self.encoder.embed(_HEALTH_PROBE))
        except Exception as exc:
            return ProviderHealth(responsive=False, error=str(exc))
        return ProviderHealth(
            responsive=True,
            embedding_dimensions=len(vector),
            response_time_ms=(time.monotonic() - started) * 1000,
        )

    async def get_estimate(self, product_ids: Sequence[str] | None = None) -> RecreationEstimate:
        targets, _ = await self._resolve_targets(product_ids)
        existing = await self._count_existing(targets)

        if not targets:
            recommendation = "No products found to recreate"
        elif existing == 0:
            recommendation = (
                "No existing embeddings found - consider using initialization instead"
            )
        elif existing == len(targets):
            recommendation = (
                "All products have embeddings - recreation will overwrite existing data"
            )
        else:
            recommendation = (
                f"{existing} products have existing embeddings that will be overwritten"
            )

        return RecreationEstimate(
            total_products=len(targets),
            products_to_recreate=len(targets),
            existing_embeddings=existing,
            estimated_duration_minutes=math.ceil(
                len(targets) * _ESTIMATED_SECONDS_PER_PRODUCT / 60
            ),
            recommendation=recommendation,
        )

    async def _check_connectivity(self) -> None:
        try:
            vector = validate_vector(await self.encoder.embed(_CONNECTIVITY_PROBE))
        except Exception as exc:
            logger.error("Embedding provider connectivity test failed: %s", exc)
            raise ProviderError(f"Embedding provider connectivity test failed: {exc}") from exc
        logger.info("Embedding provider responsive (%d dimensions)", len(vector))

    async def _resolve_targets(
        self, product_ids: Sequence[str] | None
    ) -> tuple[list[Product], list[str]]:
        if product_ids:
            return await self.initializer.resolve_products(product_ids)
        return await self.catalog.find_all(), []

    async def _count_existing(self, targets: Sequence[Product]) -> int:
        try:
            existing = set(await self.vector_store.get_existing_ids())
        except Exception as exc:
            logger.warning("Could not check existing embeddings count: %s", exc)
            return 0
        return sum(1 for product in targets if product.id in existing)

    @staticmethod
    def _recreation_settings(opts: RecreationOptions) -> ProcessingOptions:
        pacing = CONSERVATIVE_SETTINGS if opts.conservative_settings else DEFAULT_SETTINGS
        return ProcessingOptions(
            batch_size=opts.batch_size or pacing["batch_size"],
            delay_between_batches_ms=(
                pacing["delay_between_batches_ms"]
                if opts.delay_between_batches_ms is None
                else opts.delay_between_batches_ms
            ),
            max_retries=opts.max_retries or pacing["max_retries"],
            skip_existing=False,
            force_regenerate=True,
            allow_overwrite=True,
        )

    def _enter(self, phase: RecreationPhase) -> None:
        self.phase = phase
        logger.debug("Recreation phase: %s", phase)

    @staticmethod
    def _log_validation(stage: str, report: ValidationReport) -> None:
        logger.info(
            "Validation %s recreation: valid=%d invalid=%d missing=%d issues=%d",
            stage,
            report.valid_embeddings,
            report.invalid_embeddings,
            report.missing_embeddings,
            len(report.issues),
        )
        for issue in report.issues[:3]:
            logger.info("  %s: %s", issue.product_id, issue.issue)

    @staticmethod
    def _log_summary(result: RecreationResult) -> None:
        info = result.recreation_info
        logger.info(
            "Recreation summary: targeted=%d existing=%d recreated=%d failed=%d "
            "skipped=%d duration=%.2fs reason=%s",
            info.products_targeted,
            info.existing_embeddings_found,
            info.recreated,
            info.failed,
            result.skipped,
            result.duration_ms / 1000,
            info.reason,
        )
        if info.valid_embeddings_delta is not None:
            logger.info("Valid embeddings delta: %+d", info.valid_embeddings_delta)

        rate = info.recreated / info.products_targeted * 100 if info.products_targeted else 0.0
        if rate >= 95:
            logger.info("Recreation success rate: %.1f%%", rate)
        elif rate >= 60:
            logger.warning("Recreation success rate: %.1f%% - review any failures", rate)
        else:
            logger.error("Low recreation success rate: %.1f%% - investigate issues", rate)
        for failure in result.errors[:3]:
            logger.warning("Recreation error: %s: %s", failure.product_name, failure.error)
