"""
Embedding Cache

Maps a card to the embedding computed from a specific version of its
content. A lookup only hits when the stored content hash equals the
requested one, so an edited card always misses.

Backends:
    - MemoryEmbeddingCache: bounded in-process LRU (default, tests).
    - RedisEmbeddingCache: shared across processes, entries expire by TTL.
"""

from __future__ import annotations

import json
import logging
from collections import OrderedDict
from typing import Protocol
from uuid import UUID

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "embedding"
CACHE_VERSION = 1


class EmbeddingCache(Protocol):
    """Contract shared by all cache backends."""

    async def get(self, card_id: UUID, content_hash: str) -> list[float] | None: ...

    async def put(
        self, card_id: UUID, content_hash: str, vector: list[float]
    ) -> None: ...


class MemoryEmbeddingCache:
    """
    In-process cache, one entry per card.

    Storing a new hash for a card replaces the previous entry, so stale
    vectors never accumulate. Least recently used cards are evicted once
    ``max_entries`` is reached.
    """

    def __init__(self, max_entries: int = 10_000) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._entries: OrderedDict[UUID, tuple[str, list[float]]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, card_id: UUID, content_hash: str) -> list[float] | None:
        entry = self._entries.get(card_id)
        if entry is None:
            return None
        stored_hash, vector = entry
        if stored_hash != content_hash:
            return None
        self._entries.move_to_end(card_id)
        return list(vector)

    async def put(self, card_id: UUID, content_hash: str, vector: list[float]) -> None:
        self._entries[card_id] = (content_hash, list(vector))
        self._entries.move_to_end(card_id)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted embedding for card %s", evicted)


def _cache_key(card_id: UUID) -> str:
    return f"{CACHE_KEY_PREFIX}:v{CACHE_VERSION}:{card_id}"


class RedisEmbeddingCache:
    """
    Redis-backed cache.

    Value layout: ``{"hash": <content hash>, "vector": [...]}`` under
    ``embedding:v1:<card id>``. A corrupt entry or an unreachable server
    is treated as a miss; failed writes are logged and dropped.
    """

    def __init__(self, redis_client: Redis, ttl_seconds: int) -> None:
        self._redis = redis_client
        self._ttl = ttl_seconds

    async def get(self, card_id: UUID, content_hash: str) -> list[float] | None:
        try:
            raw = await self._redis.get(_cache_key(card_id))
        except RedisError as e:
            logger.warning("Embedding cache read failed for card %s: %s", card_id, e)
            return None
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
            if entry["hash"] != content_hash:
                return None
            return [float(x) for x in entry["vector"]]
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding unreadable cache entry for card %s", card_id)
            return None

    async def put(self, card_id: UUID, content_hash: str, vector: list[float]) -> None:
        payload = json.dumps({"hash": content_hash, "vector": list(vector)})
        try:
            await self._redis.set(_cache_key(card_id), payload, ex=self._ttl)
        except RedisError as e:
            logger.warning("Embedding cache write failed for card %s: %s", card_id, e)

    async def close(self) -> None:
        await self._redis.aclose()
