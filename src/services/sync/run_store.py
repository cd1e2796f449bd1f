"""Utility helpers for persisting synchronization run status in Redis."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

import redis.asyncio as redis
from pydantic import BaseModel

from src.config import settings
from src.models.sync import BatchProgress

logger = logging.getLogger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Return a singleton Redis client for the current process."""

    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_client


class SyncRunStore:
    """Wrapper around Redis used to store/poll synchronization runs."""

    def __init__(self, client: redis.Redis):
        self._client = client
        self._ttl = settings.SYNC_RUN_TTL_SECONDS

    def _key(self, run_id: str) -> str:
        return f"{settings.SYNC_RUN_KEY_PREFIX}{run_id}"

    async def initialize(self, run_id: str, kind: str) -> None:
        payload = {
            "run_id": run_id,
            "kind": kind,
            "status": "running",
            "progress": None,
            "updated_at": self._timestamp(),
        }
        await self._save(run_id, payload)

    async def update_progress(self, run_id: str, progress: BatchProgress) -> None:
        existing = await self.fetch(run_id)
        payload = existing or {"run_id": run_id, "status": "running"}
        payload["progress"] = progress.model_dump()
        payload["updated_at"] = self._timestamp()
        await self._save(run_id, payload)

    async def save_success(self, run_id: str, report: BaseModel) -> None:
        existing = await self.fetch(run_id) or {}
        payload = {
            "run_id": run_id,
            "kind": existing.get("kind"),
            "status": "complete",
            "progress": existing.get("progress"),
            "report": report.model_dump(mode="json"),
            "updated_at": self._timestamp(),
        }
        await self._save(run_id, payload)

    async def save_failure(self, run_id: str, error: str) -> None:
        existing = await self.fetch(run_id) or {}
        payload = {
            "run_id": run_id,
            "kind": existing.get("kind"),
            "status": "failed",
            "progress": existing.get("progress"),
            "error": error,
            "updated_at": self._timestamp(),
        }
        await self._save(run_id, payload)

    async def fetch(self, run_id: str) -> dict | None:
        raw = await self._client.get(self._key(run_id))
        if not raw:
            return None
        return json.loads(raw)

    def progress_callback(
        self, run_id: str
    ) -> Callable[[BatchProgress], Awaitable[None]]:
        """Return a progress callback that records each snapshot under ``run_id``."""

        async def _record(progress: BatchProgress) -> None:
            await self.update_progress(run_id, progress)

        return _record

    async def _save(self, run_id: str, payload: dict) -> None:
        await self._client.set(self._key(run_id), json.dumps(payload), ex=self._ttl)
        logger.debug("Run %s stored with status %s", run_id, payload.get("status"))

    @staticmethod
    def _timestamp() -> str:
        return datetime.now(UTC).isoformat()


def create_sync_run_store() -> SyncRunStore:
    return SyncRunStore(get_redis_client())
