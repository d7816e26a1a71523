"""
Provider Retry Policy

External AI calls get exactly one retry after a fixed backoff. Adapters
translate SDK/HTTP failures into ``ProviderError`` before this layer
sees them, so anything else propagates untouched.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from brainboard.core.exceptions import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_once(
    operation: Callable[[], Awaitable[T]],
    *,
    provider: str,
    backoff_seconds: float,
) -> T:
    """
    Run ``operation``; on ``ProviderError`` wait and run it one more time.

    The second failure is raised to the caller.
    """
    try:
        return await operation()
    except ProviderError as e:
        logger.warning(
            "%s call failed, retrying in %.1fs: %s", provider, backoff_seconds, e
        )

    await asyncio.sleep(backoff_seconds)
    return await operation()
