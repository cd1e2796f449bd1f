"""Collaborator bundle handed to the synchronization components."""

from __future__ import annotations

from dataclasses import dataclass

from src.services.catalog.base import CatalogSource
from src.services.catalog.catalog_client import create_catalog_client
from src.services.clients.encoder_client import EncoderClient, get_encoder_client
from src.services.storage.qdrant_service import create_qdrant_service
from src.services.storage.vector_store import VectorStore


@dataclass(frozen=True)
class SyncDependencies:
    catalog: CatalogSource
    vector_store: VectorStore
    encoder: EncoderClient
    retry_base_delay_ms: int | None = None


def create_sync_dependencies() -> SyncDependencies:
    """Factory function wiring the configured collaborators."""
    encoder = get_encoder_client()
    if encoder is None:
        raise RuntimeError(
            "Encoder client is not configured. Set OPENAI_API_KEY and "
            "OPENAI_EMBEDDING_MODEL.",
        )

    return SyncDependencies(
        catalog=create_catalog_client(),
        vector_store=create_qdrant_service(),
        encoder=encoder,
    )
