"""Command line entry point running one embedding synchronization."""

from __future__ import annotations

import asyncio
import logging
import uuid

from src.config import settings
from src.errors import ValidationError
from src.models.sync import BatchReport
from src.services.catalog.catalog_client import CatalogServiceClient
from src.services.sync.dependencies import SyncDependencies, create_sync_dependencies
from src.services.sync.initializer import EmbeddingInitializer
from src.services.sync.recreation import RecreationController
from src.services.sync.run_store import SyncRunStore, create_sync_run_store

logger = logging.getLogger(__name__)

SYNC_MODES = ("initialize", "incremental", "problematic", "recreate-all")


async def run_sync(
    mode: str | None = None,
    *,
    deps: SyncDependencies | None = None,
    run_store: SyncRunStore | None = None,
) -> BatchReport:
    """Run a single synchronization in ``mode`` and record it in the run store."""
    mode = (mode or settings.SYNC_MODE).strip().lower()
    if mode not in SYNC_MODES:
        raise ValidationError(
            f"Unknown sync mode '{mode}'. Expected one of: {', '.join(SYNC_MODES)}"
        )

    owns_deps = deps is None
    deps = deps or create_sync_dependencies()
    try:
        return await _execute(mode, deps, run_store or create_sync_run_store())
    finally:
        if owns_deps and isinstance(deps.catalog, CatalogServiceClient):
            await deps.catalog.aclose()


async def _execute(mode: str, deps: SyncDependencies, run_store: SyncRunStore) -> BatchReport:
    run_id = uuid.uuid4().hex
    await run_store.initialize(run_id, mode)
    progress = run_store.progress_callback(run_id)
    logger.info("Starting sync run", extra={"run_id": run_id, "mode": mode})

    try:
        if mode == "initialize":
            report = await EmbeddingInitializer(deps).initialize(progress_callback=progress)
        elif mode == "incremental":
            report = await EmbeddingInitializer(deps).initialize_incremental(
                progress_callback=progress
            )
        elif mode == "problematic":
            report = await RecreationController(deps).recreate_problematic(progress)
        else:
            report = await RecreationController(deps).recreate_all(
                settings.SYNC_RECREATE_REASON or "", progress
            )
    except Exception as exc:
        logger.exception("Sync run %s failed", run_id)
        await run_store.save_failure(run_id, str(exc))
        raise

    await run_store.save_success(run_id, report)
    logger.info(
        "Sync run finished",
        extra={
            "run_id": run_id,
            "mode": mode,
            "successful": report.successful,
            "failed": report.failed,
            "skipped": report.skipped,
        },
    )
    return report


def main() -> None:
    """CLI entry point."""
    try:
        asyncio.run(run_sync())
    except KeyboardInterrupt:
        logger.info("Sync run interrupted, shutting down")


if __name__ == "__main__":
    main()
