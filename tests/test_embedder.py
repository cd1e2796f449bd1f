"""Tests for the single-product embedder."""

from __future__ import annotations

import math
from unittest.mock import AsyncMock

import pytest

from src.config import settings
from src.errors import InvalidEmbeddingError, ValidationError
from src.services.sync.embedder import (
    ProductEmbedder,
    build_embedding_text,
    build_metadata,
    validate_vector,
)


@pytest.fixture()
def embedder(vector_store, encoder, registry):
    return ProductEmbedder(
        vector_store=vector_store,
        encoder=encoder,
        catalog=registry,
        retry_base_delay_ms=0,
    )


@pytest.mark.asyncio
async def test_embed_stores_new_product(embedder, vector_store, product_factory):
    product = product_factory(1)

    result = await embedder.embed(product)

    assert result.success is True
    assert result.skipped is False
    assert result.dimensions == settings.EMBEDDING_DIMENSIONS
    assert result.retry_count is None
    assert vector_store.store_calls == [("p1", False)]
    stored = vector_store.records["p1"]
    assert stored.metadata["product_id"] == "p1"
    assert stored.metadata["embedding_version"] == settings.EMBEDDING_VERSION
    assert "created_at" in stored.metadata


@pytest.mark.asyncio
async def test_embed_skips_existing_without_overwrite(
    embedder, vector_store, encoder, product_factory
):
    original = vector_store.seed("p1")

    result = await embedder.embed(product_factory(1))

    assert result.success is True
    assert result.skipped is True
    assert encoder.calls == []
    assert vector_store.records["p1"] is original


@pytest.mark.asyncio
async def test_embed_overwrites_when_authorized(
    embedder, vector_store, encoder, product_factory
):
    original = vector_store.seed("p1")

    result = await embedder.embed(product_factory(1), allow_overwrite=True)

    assert result.success is True
    assert result.skipped is False
    assert len(encoder.calls) == 1
    assert vector_store.store_calls == [("p1", True)]
    assert vector_store.records["p1"].id != original.id


@pytest.mark.asyncio
async def test_embed_treats_concurrent_store_as_skip(
    embedder, vector_store, product_factory
):
    vector_store.seed("p1")
    vector_store.has_embedding = AsyncMock(return_value=False)

    result = await embedder.embed(product_factory(1))

    assert result.success is True
    assert result.skipped is True
    assert vector_store.store_calls == [("p1", False)]


@pytest.mark.asyncio
async def test_embed_retries_transient_failures(embedder, encoder, product_factory):
    encoder.transient_failures["Product 001"] = 2

    result = await embedder.embed(product_factory(1), max_retries=3)

    assert result.success is True
    assert result.retry_count == 3
    assert len(encoder.calls) == 3


@pytest.mark.asyncio
async def test_embed_reports_failure_after_exhausting_retries(
    embedder, encoder, vector_store, product_factory
):
    encoder.fail_on.add("Product 001")

    result = await embedder.embed(product_factory(1), max_retries=3)

    assert result.success is False
    assert result.error == "quota exceeded"
    assert result.retry_count == 3
    assert len(encoder.calls) == 3
    assert vector_store.records == {}


@pytest.mark.asyncio
async def test_embed_does_not_retry_invalid_vectors(
    embedder, encoder, vector_store, product_factory
):
    encoder.invalid_on.add("Product 001")

    result = await embedder.embed(product_factory(1), max_retries=5)

    assert result.success is False
    assert "Invalid embedding" in result.error
    assert len(encoder.calls) == 1
    assert vector_store.records == {}


@pytest.mark.asyncio
async def test_embed_fails_product_without_content(embedder, encoder, product_factory):
    product = product_factory(
        9,
        name=" ",
        description=None,
        category=None,
        features=[],
        tags=[],
        specifications={},
    )

    result = await embedder.embed(product)

    assert result.success is False
    assert "no embeddable content" in result.error
    assert encoder.calls == []


@pytest.mark.asyncio
async def test_embed_by_id_resolves_through_catalog(embedder, vector_store):
    result = await embedder.embed_by_id("p2")

    assert result.success is True
    assert "p2" in vector_store.records


@pytest.mark.asyncio
async def test_embed_by_id_reports_unknown_product(embedder):
    result = await embedder.embed_by_id("missing")

    assert result.success is False
    assert result.error == "Product not found: missing"


@pytest.mark.asyncio
async def test_embed_by_id_rejects_blank_id(embedder):
    with pytest.raises(ValidationError):
        await embedder.embed_by_id("  ")


@pytest.mark.asyncio
async def test_can_create_embedding(embedder, vector_store):
    vector_store.seed("p1")

    existing = await embedder.can_create_embedding("p1")
    fresh = await embedder.can_create_embedding("p2")
    unknown = await embedder.can_create_embedding("nope")

    assert existing["can_create"] is False
    assert existing["reason"] == "Embedding already exists"
    assert fresh == {
        "can_create": True,
        "reason": None,
        "product_exists": True,
        "embedding_exists": False,
    }
    assert unknown["product_exists"] is False
    assert unknown["reason"] == "Product not found"


def test_build_embedding_text_concatenates_content(product_factory):
    product = product_factory(
        1,
        specifications={"color": "black", "weight": None, "ports": 4},
        tags=["desk", "  "],
    )

    text = build_embedding_text(product)

    assert text == (
        "Product 001 Ergonomic desk accessory office adjustable desk "
        "color: black ports: 4"
    )


def test_build_metadata_snapshots_product(product_factory):
    metadata = build_metadata(product_factory(3))

    assert metadata["product_id"] == "p3"
    assert metadata["name"] == "Product 003"
    assert metadata["in_stock"] is True
    assert metadata["specifications"] == {"color": "black"}


@pytest.mark.parametrize(
    "vector",
    [[], None, "0.1,0.2", [0.1, math.inf], [0.1, float("nan")], [True, 0.2], ["0.1"]],
)
def test_validate_vector_rejects_malformed_vectors(vector):
    with pytest.raises(InvalidEmbeddingError):
        validate_vector(vector)


def test_validate_vector_accepts_numbers():
    assert validate_vector((1, 0.5)) == [1.0, 0.5]
