"""
Brainboard Application

FastAPI entrypoint with async lifespan management. Handles startup
checks (database, Redis), builds the insight services and shuts them
down gracefully.

Start locally:
    uvicorn brainboard.main:app --host 0.0.0.0 --port 8000 --reload
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from brainboard.api.errors import register_error_handlers
from brainboard.api.v1.boards import router as boards_router
from brainboard.core.config import settings
from brainboard.core.database import dispose_engine, get_engine
from brainboard.core.logging import setup_logging
from brainboard.services.factory import build_services

# Initialize logging before any log statements
setup_logging()
logger = logging.getLogger(__name__)


async def wait_for_db(retries: int = 10, delay: int = 1) -> bool:
    """
    Wait for PostgreSQL to become available.

    Useful in containerized environments where the database may start
    after the application. Retries with a fixed delay.

    Returns:
        True if connection established, False if all retries exhausted.
    """
    engine = get_engine()
    for i in range(retries):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Postgres connection established")
            return True
        except (OSError, SQLAlchemyError) as e:
            logger.warning("Waiting for Postgres (%d/%d)... Error: %s", i + 1, retries, e)
            await asyncio.sleep(delay)
    return False


async def check_redis() -> bool:
    """
    Verify Redis connectivity.

    Only relevant when the Redis embedding cache is enabled.
    """
    r = redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        await r.ping()
        logger.info("Redis connection established (%s)", settings.REDIS_HOST)
        return True
    except (OSError, redis.RedisError) as e:
        logger.error("Redis connection error: %s", e)
        return False
    finally:
        await r.aclose()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Validates database connectivity (blocks startup on failure)
        - Checks Redis when it backs the embedding cache
        - Builds providers, cache and orchestrator; starts suggestion workers

    Shutdown:
        - Stops suggestion workers, closes provider clients, disposes engine
    """
    logger.info("Starting Brainboard...")
    logger.info("Log Level: %s", settings.LOG_LEVEL)

    if not await wait_for_db():
        logger.critical("Could not connect to Postgres. Shutting down.")
        raise RuntimeError("Database connection failed")

    if settings.EMBEDDING_CACHE_BACKEND == "redis" and not await check_redis():
        raise RuntimeError("Redis embedding cache configured but unreachable")

    services = build_services(settings)
    await services.start()
    app.state.services = services

    yield  # Application runs here

    logger.info("Shutting down Brainboard...")
    await services.close()
    await dispose_engine()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Brainstorming board with clustering, suggestions and summaries.",
    version="0.1.0",
    lifespan=lifespan,
)

register_error_handlers(app)
app.include_router(boards_router, prefix="/api/v1", tags=["Boards"])


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check for load balancers and orchestrators."""
    return {
        "status": "ok",
        "service": "brainboard",
        "environment": os.getenv("ENVIRONMENT", "local"),
    }
