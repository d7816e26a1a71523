"""
Embedding Provider Tests

OpenAI adapter with a mocked ``AsyncOpenAI`` client, the single-retry
policy, and the deterministic mock provider. No network calls.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from brainboard.core.exceptions import ProviderError
from brainboard.services.embeddings import MockEmbeddingProvider, OpenAIEmbeddingProvider


def _embedding_response(vector: list[float]):
    # Dynamically create response object matching OpenAI SDK structure
    return type("Response", (), {"data": [type("Item", (), {"embedding": vector})]})


def _api_error(message: str = "upstream down") -> openai.APIError:
    request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    return openai.APIConnectionError(message=message, request=request)


def _client(create: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.embeddings.create = create
    client.close = AsyncMock()
    return client


class TestOpenAIEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_embed_calls_api(self):
        create = AsyncMock(return_value=_embedding_response([0.1] * 1536))
        provider = OpenAIEmbeddingProvider(_client(create), retry_backoff_seconds=0)

        vector = await provider.embed("Weekly demo day\nShow what shipped")

        assert len(vector) == 1536
        assert vector[0] == 0.1
        create.assert_awaited_once()
        _, kwargs = create.call_args
        assert kwargs["model"] == "text-embedding-3-small"
        assert kwargs["input"] == ["Weekly demo day Show what shipped"]

    @pytest.mark.asyncio
    async def test_retries_once_then_succeeds(self):
        create = AsyncMock(side_effect=[_api_error(), _embedding_response([0.5, 0.5])])
        provider = OpenAIEmbeddingProvider(_client(create), retry_backoff_seconds=0)

        assert await provider.embed("idea") == [0.5, 0.5]
        assert create.await_count == 2

    @pytest.mark.asyncio
    async def test_second_failure_raises_provider_error(self):
        create = AsyncMock(side_effect=[_api_error(), _api_error("still down")])
        provider = OpenAIEmbeddingProvider(_client(create), retry_backoff_seconds=0)

        with pytest.raises(ProviderError) as exc_info:
            await provider.embed("idea")

        assert exc_info.value.provider == "openai"
        assert create.await_count == 2

    @pytest.mark.asyncio
    async def test_close_closes_client(self):
        client = _client(AsyncMock())
        provider = OpenAIEmbeddingProvider(client)

        await provider.close()

        client.close.assert_awaited_once()


class TestMockEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_same_text_same_vector(self):
        provider = MockEmbeddingProvider()

        first = await provider.embed("Team lunch")
        second = await provider.embed("Team lunch")

        assert first == second
        assert len(first) == 64

    @pytest.mark.asyncio
    async def test_unit_length_and_text_dependent(self):
        provider = MockEmbeddingProvider(dimension=16)

        vector = await provider.embed("Team lunch")
        other = await provider.embed("Hackathon")

        assert sum(x * x for x in vector) == pytest.approx(1.0)
        assert vector != other
