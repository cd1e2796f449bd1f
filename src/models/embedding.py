"""Models describing stored product embeddings and per-product outcomes."""

from __future__ import annotations

import math
import uuid
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ProductEmbedding(BaseModel):
    """A vector generated for one product plus a snapshot of its attributes."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    product_id: str = Field(..., min_length=1)
    vector: list[float] = Field(..., min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("vector")
    @classmethod
    def _finite_values(cls, values: list[float]) -> list[float]:
        if any(not math.isfinite(value) for value in values):
            raise ValueError("Embedding vector must contain only finite numbers")
        return values

    @property
    def dimensions(self) -> int:
        return len(self.vector)


class EmbeddingInfo(BaseModel):
    """Introspection data for a stored embedding."""

    exists: bool
    dimensions: int | None = None
    created_at: str | None = None


class EmbeddingResult(BaseModel):
    """Outcome of embedding a single product."""

    success: bool
    product_id: str
    product_name: str
    dimensions: int | None = None
    skipped: bool = False
    error: str | None = None
    retry_count: int | None = Field(
        default=None,
        description="Number of attempts used when more than one was needed",
    )
