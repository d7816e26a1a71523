"""
Service Wiring

Builds the insight pipeline from settings. Called once from the
application lifespan (and from maintenance scripts); everything
returned here is closed through ``ServiceContainer.close``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
import redis.asyncio as redis
from openai import AsyncOpenAI

from brainboard.core.config import Settings
from brainboard.core.database import get_session_factory
from brainboard.repositories.boards import BoardRepository
from brainboard.services.clustering import KMeansClusterer
from brainboard.services.embedding_cache import (
    EmbeddingCache,
    MemoryEmbeddingCache,
    RedisEmbeddingCache,
)
from brainboard.services.embeddings import (
    EmbeddingProvider,
    LocalEmbeddingProvider,
    MockEmbeddingProvider,
    OpenAIEmbeddingProvider,
)
from brainboard.services.insights import InsightOrchestrator
from brainboard.services.llm import OllamaGenerator, OpenAIGenerator, TextGenerator
from brainboard.services.suggestions import SuggestionGenerator
from brainboard.services.summarizer import Summarizer

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Long-lived services shared by all requests."""

    repository: BoardRepository
    embedder: EmbeddingProvider
    cache: EmbeddingCache
    generator: TextGenerator
    orchestrator: InsightOrchestrator

    async def start(self) -> None:
        if isinstance(self.embedder, LocalEmbeddingProvider):
            await self.embedder.warm_up()
        await self.orchestrator.start()

    async def close(self) -> None:
        await self.orchestrator.close()
        await self.embedder.close()
        await self.generator.close()
        if isinstance(self.cache, RedisEmbeddingCache):
            await self.cache.close()


def _openai_client(settings: Settings) -> AsyncOpenAI:
    # SDK retries disabled: adapters retry exactly once themselves
    return AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        max_retries=0,
    )


def build_embedder(settings: Settings) -> EmbeddingProvider:
    if settings.embeddings_mocked:
        logger.warning("Embedding provider: mock (no API key or EMBEDDING_PROVIDER=mock)")
        return MockEmbeddingProvider()
    if settings.EMBEDDING_PROVIDER == "local":
        logger.info("Embedding provider: local (%s)", settings.LOCAL_EMBEDDING_MODEL)
        return LocalEmbeddingProvider(
            settings.LOCAL_EMBEDDING_MODEL,
            retry_backoff_seconds=settings.PROVIDER_RETRY_BACKOFF_SECONDS,
        )
    logger.info("Embedding provider: openai (%s)", settings.OPENAI_EMBEDDING_MODEL)
    return OpenAIEmbeddingProvider(
        _openai_client(settings),
        settings.OPENAI_EMBEDDING_MODEL,
        retry_backoff_seconds=settings.PROVIDER_RETRY_BACKOFF_SECONDS,
    )


def build_generator(settings: Settings) -> TextGenerator:
    if settings.LLM_PROVIDER == "openai":
        logger.info("Text generation: openai (%s)", settings.OPENAI_CHAT_MODEL)
        return OpenAIGenerator(
            _openai_client(settings),
            settings.OPENAI_CHAT_MODEL,
            retry_backoff_seconds=settings.PROVIDER_RETRY_BACKOFF_SECONDS,
        )
    logger.info(
        "Text generation: ollama (%s at %s)",
        settings.OLLAMA_MODEL,
        settings.OLLAMA_BASE_URL,
    )
    http = httpx.AsyncClient(
        base_url=settings.OLLAMA_BASE_URL,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
    )
    return OllamaGenerator(
        http,
        settings.OLLAMA_MODEL,
        retry_backoff_seconds=settings.PROVIDER_RETRY_BACKOFF_SECONDS,
    )


def build_cache(settings: Settings) -> EmbeddingCache:
    if settings.EMBEDDING_CACHE_BACKEND == "redis":
        logger.info("Embedding cache: redis (%s)", settings.REDIS_URL)
        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        return RedisEmbeddingCache(client, settings.EMBEDDING_CACHE_TTL_SECONDS)
    logger.info(
        "Embedding cache: memory (max %d entries)", settings.EMBEDDING_CACHE_MAX_ENTRIES
    )
    return MemoryEmbeddingCache(settings.EMBEDDING_CACHE_MAX_ENTRIES)


def build_services(settings: Settings) -> ServiceContainer:
    """Construct repository, providers, cache and orchestrator."""
    repository = BoardRepository(get_session_factory())
    embedder = build_embedder(settings)
    cache = build_cache(settings)
    generator = build_generator(settings)

    orchestrator = InsightOrchestrator(
        repository,
        embedder,
        cache,
        KMeansClusterer(max_iterations=settings.KMEANS_MAX_ITERATIONS),
        SuggestionGenerator(generator),
        Summarizer(generator),
        timeout_seconds=settings.INSIGHT_TIMEOUT_SECONDS,
        embedding_concurrency=settings.EMBEDDING_CONCURRENCY,
        skip_failed_embeddings=settings.CLUSTER_SKIP_FAILED_EMBEDDINGS,
        suggestion_workers=settings.SUGGESTION_WORKERS,
        sibling_limit=settings.SUGGESTION_SIBLING_LIMIT,
        summary_cards_per_cluster=settings.SUMMARY_CARDS_PER_CLUSTER,
        summary_max_cards=settings.SUMMARY_MAX_CARDS,
    )
    return ServiceContainer(
        repository=repository,
        embedder=embedder,
        cache=cache,
        generator=generator,
        orchestrator=orchestrator,
    )
