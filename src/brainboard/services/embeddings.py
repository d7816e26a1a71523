"""
Embedding Providers

Adapters turning card text into vectors. Every adapter exposes the
same coroutine, ``embed(text) -> list[float]``, and raises
``ProviderError`` once its single retry is exhausted.

Providers:
    - OpenAIEmbeddingProvider: text-embedding-3-small over the OpenAI API.
    - LocalEmbeddingProvider: sentence-transformers model, inference in a
      worker thread (CPU-bound, must not block the event loop).
    - MockEmbeddingProvider: deterministic vectors for dev/test, no network.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Any, Protocol

import numpy as np
from openai import APIError, AsyncOpenAI

from brainboard.core.exceptions import ProviderError
from brainboard.services.retry import retry_once

logger = logging.getLogger(__name__)

OPENAI_EMBEDDING_DIMENSION = 1536  # text-embedding-3-small output size
LOCAL_EMBEDDING_DIMENSION = 384  # all-MiniLM-L6-v2 output size
MOCK_EMBEDDING_DIMENSION = 64


class EmbeddingProvider(Protocol):
    """Text to vector. Implementations must be safe to call concurrently."""

    name: str

    async def embed(self, text: str) -> list[float]: ...

    async def close(self) -> None: ...


class OpenAIEmbeddingProvider:
    """
    Embeddings from the OpenAI API.

    The client is injected (constructed once at startup). It should be
    built with ``max_retries=0`` so that the SDK does not add retries on
    top of the single one performed here.
    """

    name = "openai"

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "text-embedding-3-small",
        retry_backoff_seconds: float = 1.0,
    ) -> None:
        self._client = client
        self._model = model
        self._backoff = retry_backoff_seconds

    async def embed(self, text: str) -> list[float]:
        text = text.replace("\n", " ")  # OpenAI recommends single-line input

        async def _call() -> list[float]:
            try:
                response = await self._client.embeddings.create(
                    input=[text], model=self._model
                )
            except APIError as e:
                raise ProviderError(self.name, str(e)) from e
            return list(response.data[0].embedding)

        return await retry_once(_call, provider=self.name, backoff_seconds=self._backoff)

    async def close(self) -> None:
        await self._client.close()


class LocalEmbeddingProvider:
    """
    Embeddings from a local sentence-transformers model.

    The model is loaded lazily on first use (or explicitly via
    ``warm_up``) and released by ``close``. The import is deferred so
    that ``sentence_transformers`` is only required when this provider
    is selected.
    """

    name = "local"

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        retry_backoff_seconds: float = 1.0,
    ) -> None:
        self._model_name = model_name
        self._backoff = retry_backoff_seconds
        self._model: Any = None

    def _get_model(self) -> Any:
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info("Loading embedding model: %s ...", self._model_name)
            self._model = SentenceTransformer(self._model_name)
            logger.info("Embedding model loaded")
        return self._model

    def _encode_sync(self, text: str) -> list[float]:
        """Blocking inference. Always call via ``asyncio.to_thread``."""
        vector = self._get_model().encode([text], normalize_embeddings=True)[0]
        return [float(x) for x in vector]

    async def warm_up(self) -> None:
        await asyncio.to_thread(self._get_model)

    async def embed(self, text: str) -> list[float]:
        async def _call() -> list[float]:
            try:
                return await asyncio.to_thread(self._encode_sync, text)
            except (OSError, RuntimeError, ValueError) as e:
                raise ProviderError(self.name, str(e)) from e

        return await retry_once(_call, provider=self.name, backoff_seconds=self._backoff)

    async def close(self) -> None:
        self._model = None
        logger.info("Local embedding model released")


class MockEmbeddingProvider:
    """
    Deterministic pseudo-embeddings for development without API costs.

    The same text always maps to the same unit vector (seeded from the
    SHA-256 of the text), so clustering results are reproducible.
    """

    name = "mock"

    def __init__(self, dimension: int = MOCK_EMBEDDING_DIMENSION) -> None:
        self.dimension = dimension

    async def embed(self, text: str) -> list[float]:
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
        vector = np.random.default_rng(seed).normal(size=self.dimension)
        vector /= np.linalg.norm(vector)
        return vector.tolist()

    async def close(self) -> None:
        return None
