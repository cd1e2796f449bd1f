"""Error taxonomy shared by the embedding synchronization engine."""

from __future__ import annotations


class EmbeddingSyncError(Exception):
    """Base error raised by the synchronization engine and its collaborators."""

    code = "SYNC_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(EmbeddingSyncError, ValueError):
    """Raised when caller input is rejected before any work is performed."""

    code = "VALIDATION_ERROR"


class NotFoundError(EmbeddingSyncError):
    """Raised when a referenced product is absent from the catalog."""

    code = "NOT_FOUND"


class InvalidEmbeddingError(EmbeddingSyncError):
    """Raised when the provider returns a vector that breaks its contract."""

    code = "INVALID_EMBEDDING"


class ProviderError(EmbeddingSyncError):
    """Raised for transient transport, quota or auth failures of the provider."""

    code = "PROVIDER_ERROR"


class EmbeddingAlreadyExistsError(EmbeddingSyncError):
    """Raised by a vector store refusing to overwrite an existing record."""

    code = "ALREADY_EXISTS"

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Embedding already exists for product {product_id}")
        self.product_id = product_id
