"""Product domain models supplied by the catalog."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Product(BaseModel):
    """A catalog product whose content is embedded into the vector store."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Unique identifier of the product")
    name: str = Field(..., min_length=1)
    description: str | None = None
    category: str | None = None
    price: float | None = Field(None, ge=0)
    in_stock: bool = Field(True, alias="inStock")
    features: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    specifications: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form key/value technical specifications",
    )
