"""Pytest configuration and fixtures for the embedding synchronization engine."""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio
from fakeredis import aioredis as fakeredis

from src.config import settings
from src.errors import EmbeddingAlreadyExistsError, ProviderError
from src.models.embedding import EmbeddingInfo, ProductEmbedding
from src.models.product import Product
from src.services.catalog.product_registry import ProductRegistry
from src.services.clients.encoder_client import EncoderClient
from src.services.storage.vector_store import VectorStore
from src.services.sync.dependencies import SyncDependencies


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "asyncio: marks tests as async tests")


def make_product(index: int, **overrides) -> Product:
    """Build a catalog product with a name no other index contains."""
    data = {
        "id": f"p{index}",
        "name": f"Product {index:03d}",
        "description": "Ergonomic desk accessory",
        "category": "office",
        "price": 19.99,
        "features": ["adjustable"],
        "tags": ["desk"],
        "specifications": {"color": "black"},
    }
    data.update(overrides)
    return Product(**data)


class FakeVectorStore(VectorStore):
    """In-memory vector store recording every call made to it."""

    def __init__(self):
        self.records: dict[str, ProductEmbedding] = {}
        self.info_overrides: dict[str, EmbeddingInfo] = {}
        self.initialize_calls = 0
        self.store_calls: list[tuple[str, bool]] = []
        self.fail_existing_ids = False

    async def initialize(self) -> None:
        self.initialize_calls += 1

    async def has_embedding(self, product_id: str) -> bool:
        await asyncio.sleep(0)
        return product_id in self.records

    async def get_existing_ids(self) -> list[str]:
        if self.fail_existing_ids:
            raise ConnectionError("vector store unavailable")
        return list(self.records)

    async def store(self, embedding: ProductEmbedding, allow_overwrite: bool = False) -> None:
        await asyncio.sleep(0)
        self.store_calls.append((embedding.product_id, allow_overwrite))
        if not allow_overwrite and embedding.product_id in self.records:
            raise EmbeddingAlreadyExistsError(embedding.product_id)
        self.records[embedding.product_id] = embedding

    async def delete(self, product_id: str) -> None:
        self.records.pop(product_id, None)

    async def get_info(self, product_id: str) -> EmbeddingInfo:
        if product_id in self.info_overrides:
            return self.info_overrides[product_id]
        embedding = self.records.get(product_id)
        if embedding is None:
            return EmbeddingInfo(exists=False)
        return EmbeddingInfo(exists=True, dimensions=embedding.dimensions)

    def seed(self, product_id: str, dimensions: int | None = None) -> ProductEmbedding:
        embedding = ProductEmbedding(
            product_id=product_id,
            vector=[0.5] * (dimensions or settings.EMBEDDING_DIMENSIONS),
            metadata={"seeded": True},
        )
        self.records[product_id] = embedding
        return embedding


class StubEncoder(EncoderClient):
    """Deterministic encoder; failures are keyed by a substring of the text."""

    def __init__(self, dimensions: int | None = None):
        self.dimensions = dimensions or settings.EMBEDDING_DIMENSIONS
        self.calls: list[str] = []
        self.fail_on: set[str] = set()
        self.invalid_on: set[str] = set()
        self.transient_failures: dict[str, int] = {}
        self.down = False

    async def embed(self, text: str) -> list[float]:
        await asyncio.sleep(0)
        self.calls.append(text)
        if self.down:
            raise ProviderError("provider unreachable")
        for marker, remaining in self.transient_failures.items():
            if marker in text and remaining > 0:
                self.transient_failures[marker] = remaining - 1
                raise ProviderError("rate limited")
        if any(marker in text for marker in self.fail_on):
            raise ProviderError("quota exceeded")
        if any(marker in text for marker in self.invalid_on):
            return [float("nan")] * self.dimensions
        return [float(len(text) % 7) + 0.1] * self.dimensions


@pytest.fixture()
def product_factory():
    return make_product


@pytest.fixture()
def vector_store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture()
def encoder() -> StubEncoder:
    return StubEncoder()


@pytest.fixture()
def registry() -> ProductRegistry:
    return ProductRegistry(make_product(index) for index in range(1, 6))


@pytest.fixture()
def deps(registry, vector_store, encoder) -> SyncDependencies:
    """Collaborators wired without retry back-off so tests stay fast."""
    return SyncDependencies(
        catalog=registry,
        vector_store=vector_store,
        encoder=encoder,
        retry_base_delay_ms=0,
    )


@pytest.fixture()
def fast_options() -> dict:
    return {"batch_size": 5, "delay_between_batches_ms": 0, "max_retries": 3}


@pytest_asyncio.fixture()
async def redis_client():
    """Provide a fake Redis client for each test."""
    client = fakeredis.FakeRedis()
    try:
        yield client
    finally:
        await client.flushdb()
        await client.aclose()
