"""
Application Configuration

Centralized settings management using Pydantic BaseSettings.
All values are loaded from environment variables or .env file.
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable binding.

    Required env vars (no defaults):
        POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_HOST, POSTGRES_DB

    Optional env vars:
        POSTGRES_PORT (5432), REDIS_HOST (redis), REDIS_PORT (6379),
        LOG_LEVEL (INFO), provider selection, timeouts and pipeline limits.
    """

    PROJECT_NAME: str = "Brainboard"

    # Database
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_HOST: str
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str

    # Redis (embedding cache backend)
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379

    # Logging
    LOG_LEVEL: str = "INFO"

    # Embeddings
    EMBEDDING_PROVIDER: Literal["openai", "local", "mock"] = "openai"
    OPENAI_API_KEY: str | None = None
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"
    LOCAL_EMBEDDING_MODEL: str = "all-MiniLM-L6-v2"
    EMBEDDING_CACHE_BACKEND: Literal["memory", "redis"] = "memory"
    EMBEDDING_CACHE_MAX_ENTRIES: int = 10_000
    EMBEDDING_CACHE_TTL_SECONDS: int = 7 * 24 * 3600
    EMBEDDING_CONCURRENCY: int = 8

    # Generation
    LLM_PROVIDER: Literal["ollama", "openai"] = "ollama"
    OLLAMA_BASE_URL: str = "http://host.docker.internal:11434"
    OLLAMA_MODEL: str = "mistral"
    OPENAI_CHAT_MODEL: str = "gpt-4o-mini"

    # Provider calls: one retry after PROVIDER_RETRY_BACKOFF_SECONDS
    PROVIDER_TIMEOUT_SECONDS: float = 20.0
    PROVIDER_RETRY_BACKOFF_SECONDS: float = 1.0

    # Insight pipeline
    INSIGHT_TIMEOUT_SECONDS: float = 30.0
    KMEANS_MAX_ITERATIONS: int = 100
    CLUSTER_SKIP_FAILED_EMBEDDINGS: bool = False
    SUGGESTION_WORKERS: int = 2
    SUGGESTION_SIBLING_LIMIT: int = 5
    SUMMARY_CARDS_PER_CLUSTER: int = 3
    SUMMARY_MAX_CARDS: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",  # Silently ignore unknown env vars
    )

    @property
    def DATABASE_URL(self) -> str:
        """Async PostgreSQL connection string using asyncpg driver."""
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def REDIS_URL(self) -> str:
        """Redis connection string."""
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}"

    @property
    def embeddings_mocked(self) -> bool:
        """True when no real embedding backend should be contacted."""
        if self.EMBEDDING_PROVIDER == "mock":
            return True
        if self.EMBEDDING_PROVIDER == "openai":
            key = self.OPENAI_API_KEY
            return not key or key.lower() == "mock"
        return False


settings = Settings()  # type: ignore[call-arg]
