"""
Pytest Configuration and Fixtures

All tests run offline: providers, cache and persistence are replaced by
the in-memory fakes in ``tests/fakes.py``.
"""

import os

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Test environment defaults: MUST be set before any brainboard imports.
#
# 1. Load .env first so that local credentials are available.
# 2. setdefault fills in anything still missing (CI runners, fresh clones
#    without a .env file) so that pydantic Settings validation doesn't crash.
# ---------------------------------------------------------------------------
load_dotenv()  # .env → os.environ (no-op if file is missing)

_test_env = {
    "POSTGRES_USER": "brainboard",
    "POSTGRES_PASSWORD": "brainboard_password",
    "POSTGRES_HOST": "localhost",
    "POSTGRES_PORT": "5432",
    "POSTGRES_DB": "brainboard_db",
    "EMBEDDING_PROVIDER": "mock",
    "EMBEDDING_CACHE_BACKEND": "memory",
    "OPENAI_API_KEY": "mock",
}
for _key, _value in _test_env.items():
    os.environ.setdefault(_key, _value)

# ---------------------------------------------------------------------------
# Imports (safe now that env vars are set)
# ---------------------------------------------------------------------------
import pytest  # noqa: E402

from brainboard.services.clustering import KMeansClusterer  # noqa: E402
from brainboard.services.embedding_cache import MemoryEmbeddingCache  # noqa: E402
from brainboard.services.insights import InsightOrchestrator  # noqa: E402
from brainboard.services.suggestions import SuggestionGenerator  # noqa: E402
from brainboard.services.summarizer import Summarizer  # noqa: E402
from fakes import FakeBoardStore, FakeEmbedder, FakeGenerator  # noqa: E402


@pytest.fixture
def store() -> FakeBoardStore:
    return FakeBoardStore()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def cache() -> MemoryEmbeddingCache:
    return MemoryEmbeddingCache(max_entries=100)


@pytest.fixture
def make_orchestrator(store, embedder, generator, cache):
    """Factory so tests can override the cache, timeouts and policies."""

    def _make(**overrides) -> InsightOrchestrator:
        options = {"timeout_seconds": 5.0, "suggestion_workers": 1}
        options.update(overrides)
        backend = options.pop("cache", cache)
        return InsightOrchestrator(
            store,
            embedder,
            backend,
            KMeansClusterer(),
            SuggestionGenerator(generator),
            Summarizer(generator),
            **options,
        )

    return _make
