"""Unit tests for embedding provider adapters - OpenAI, Nomic."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from thinkr.config.settings import Settings
from thinkr.utils.errors import EmbeddingError


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_embedding_model": "",
        "ollama_base_url": "http://localhost:11434",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _client(dimension: int = 3) -> AsyncMock:
    """Client whose ``embeddings.create`` returns one vector per input."""

    async def _create(input, model):  # noqa: A002 - mirrors the SDK keyword
        response = MagicMock()
        response.data = [MagicMock(embedding=[float(i)] * dimension) for i in range(len(input))]
        response.usage = MagicMock(total_tokens=len(input))
        return response

    client = AsyncMock()
    client.embeddings.create = AsyncMock(side_effect=_create)
    return client


# ======================================================================
# OpenAI Embedding Provider
# ======================================================================


class TestOpenAIEmbeddingProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_get_provider_name(self, settings: Settings) -> None:
        from thinkr.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
        provider = OpenAIEmbeddingProvider(settings, client=_client())
        assert provider.get_provider_name() == "openai_embedding"

    def test_is_available_without_key(self) -> None:
        from thinkr.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
        provider = OpenAIEmbeddingProvider(_settings(openai_api_key=""), client=_client())
        assert provider.is_available() is False

    def test_dimension_follows_model(self) -> None:
        from thinkr.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        default = OpenAIEmbeddingProvider(_settings(), client=_client())
        large = OpenAIEmbeddingProvider(
            _settings(openai_embedding_model="text-embedding-3-large"), client=_client()
        )

        assert default.get_dimension() == 1536
        assert large.get_dimension() == 3072

    @pytest.mark.asyncio
    async def test_embed_success(self, settings: Settings) -> None:
        from thinkr.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = _client()
        with patch(
            "thinkr.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            vectors = await provider.embed(["alpha", "beta"])

        assert vectors == [[0.0] * 3, [1.0] * 3]
        kwargs = mock_client.embeddings.create.await_args.kwargs
        assert kwargs["model"] == "text-embedding-3-small"

    @pytest.mark.asyncio
    async def test_embed_empty_list_skips_api(self, settings: Settings) -> None:
        from thinkr.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = _client()
        provider = OpenAIEmbeddingProvider(settings, client=mock_client)

        assert await provider.embed([]) == []
        mock_client.embeddings.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_long_input_truncated(self, settings: Settings) -> None:
        from thinkr.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = _client()
        provider = OpenAIEmbeddingProvider(settings, client=mock_client)

        await provider.embed_single("word " * 10_000)

        sent = mock_client.embeddings.create.await_args.kwargs["input"][0]
        assert len(sent) < 50_000
        assert not sent.endswith(" ")

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self, settings: Settings) -> None:
        from thinkr.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            side_effect=openai.APIError(message="quota", request=MagicMock(), body=None)
        )
        provider = OpenAIEmbeddingProvider(settings, client=mock_client)

        with pytest.raises(EmbeddingError):
            await provider.embed(["text"])


# ======================================================================
# Nomic Embedding Provider
# ======================================================================


class TestNomicEmbeddingProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_get_dimension(self, settings: Settings) -> None:
        from thinkr.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
        assert NomicEmbeddingProvider(settings, client=_client()).get_dimension() == 768

    def test_is_available_when_server_answers(self, settings: Settings) -> None:
        from thinkr.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

        provider = NomicEmbeddingProvider(settings, client=_client())
        with patch(
            "thinkr.providers.embedding.nomic_embedding_provider.httpx.get",
            return_value=MagicMock(status_code=200),
        ):
            assert provider.is_available() is True

    def test_is_unavailable_when_server_down(self, settings: Settings) -> None:
        from thinkr.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

        provider = NomicEmbeddingProvider(settings, client=_client())
        with patch(
            "thinkr.providers.embedding.nomic_embedding_provider.httpx.get",
            side_effect=httpx.ConnectError("refused"),
        ):
            assert provider.is_available() is False

    @pytest.mark.asyncio
    async def test_embed_single(self, settings: Settings) -> None:
        from thinkr.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

        mock_client = _client()
        provider = NomicEmbeddingProvider(settings, client=mock_client)

        assert await provider.embed_single("hello") == [0.0, 0.0, 0.0]
        assert mock_client.embeddings.create.await_args.kwargs["model"] == "nomic-embed-text"
