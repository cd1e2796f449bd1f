"""Tests for the OpenAI encoder client."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from src.config import settings
from src.errors import ProviderError, ValidationError
from src.services.clients import encoder_client
from src.services.clients.encoder_client import OpenAIEncoderClient


def _openai_client(response=None, error=None):
    client = MagicMock()
    client.embeddings.create = AsyncMock(return_value=response, side_effect=error)
    return client


@pytest.mark.asyncio
async def test_embed_requests_configured_dimensions():
    response = SimpleNamespace(data=[SimpleNamespace(embedding=(0.1, 0.2, 0.3))])
    client = _openai_client(response)
    encoder = OpenAIEncoderClient(
        api_key="test-key", model="text-embedding-3-small", dimensions=3, client=client
    )

    vector = await encoder.embed("Shopifake desk lamp")

    assert vector == [0.1, 0.2, 0.3]
    client.embeddings.create.assert_awaited_once_with(
        model="text-embedding-3-small", input="Shopifake desk lamp", dimensions=3
    )


@pytest.mark.asyncio
async def test_embed_rejects_blank_text():
    client = _openai_client()
    encoder = OpenAIEncoderClient(api_key="test-key", model="m", client=client)

    with pytest.raises(ValidationError):
        await encoder.embed("   ")

    client.embeddings.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_embed_wraps_provider_errors():
    encoder = OpenAIEncoderClient(
        api_key="test-key", model="m", client=_openai_client(error=OpenAIError("quota"))
    )

    with pytest.raises(ProviderError, match="quota"):
        await encoder.embed("text")


@pytest.mark.asyncio
async def test_embed_requires_vector_data():
    encoder = OpenAIEncoderClient(
        api_key="test-key", model="m", client=_openai_client(SimpleNamespace(data=[]))
    )

    with pytest.raises(ProviderError):
        await encoder.embed("text")


def test_client_requires_credentials():
    with pytest.raises(ValueError):
        OpenAIEncoderClient(api_key="", model="m", client=MagicMock())
    with pytest.raises(ValueError):
        OpenAIEncoderClient(api_key="key", model="", client=MagicMock())


def test_get_encoder_client_disabled_without_settings(monkeypatch):
    monkeypatch.setattr(encoder_client, "_encoder_client", None)
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)

    assert encoder_client.get_encoder_client() is None
