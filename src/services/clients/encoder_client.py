"""Encoder client abstractions and implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod

from openai import AsyncOpenAI, OpenAIError

from src.config import settings
from src.errors import ProviderError, ValidationError


class EncoderClient(ABC):
    """Abstract encoder interface responsible for producing embeddings."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for the provided text."""


class OpenAIEncoderClient(EncoderClient):
    """Encoder implementation backed by OpenAI's embeddings API."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        dimensions: int | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("OpenAI API key is required to initialize encoder client")
        if not model:
            raise ValueError("OpenAI embedding model must be provided")

        self._client = client or AsyncOpenAI(api_key=api_key)
        self._model = model
        self._dimensions = dimensions

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty for embedding generation")

        request: dict = {"model": self._model, "input": text}
        if self._dimensions:
            request["dimensions"] = self._dimensions

        try:
            response = await self._client.embeddings.create(**request)
        except OpenAIError as exc:
            raise ProviderError(f"OpenAI embeddings request failed: {exc}") from exc

        if not response.data:
            raise ProviderError("OpenAI embeddings response did not include vector data")

        vector = response.data[0].embedding
        return list(vector)


_encoder_client: EncoderClient | None = None


def _initialize_encoder() -> EncoderClient | None:
    if not settings.encoder_enabled:
        return None

    return OpenAIEncoderClient(
        api_key=settings.OPENAI_API_KEY,
        model=settings.OPENAI_EMBEDDING_MODEL,
        dimensions=settings.EMBEDDING_DIMENSIONS,
    )


def get_encoder_client() -> EncoderClient | None:
    """Return the configured encoder client if any, creating it on first use."""

    global _encoder_client
    if _encoder_client is None:
        _encoder_client = _initialize_encoder()
    return _encoder_client
