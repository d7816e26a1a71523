"""
Suggestion Work Queue

Explicit background queue for suggestion generation. Card creation
submits a job and returns; a fixed pool of worker tasks drains the
queue. Every submission returns a ``SuggestionJob`` whose outcome can
be awaited, which keeps the fire-and-forget flow observable in tests.

Lifecycle: ``start()`` in the application lifespan, ``stop()`` on
shutdown. Jobs still queued at shutdown are cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import UUID

from brainboard.core.exceptions import InsightError

logger = logging.getLogger(__name__)

JobHandler = Callable[[UUID], Awaitable[Any]]


class SuggestionJob:
    """Handle on one queued suggestion run."""

    def __init__(self, card_id: UUID) -> None:
        self.card_id = card_id
        self.result: Any = None
        self.error: BaseException | None = None
        self._done = asyncio.Event()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def _finish(self, result: Any = None, error: BaseException | None = None) -> None:
        self.result = result
        self.error = error
        self._done.set()

    async def wait(self) -> Any:
        """Block until the job ran. Re-raises the handler's failure, if any."""
        await self._done.wait()
        if self.error is not None:
            raise self.error
        return self.result


class SuggestionQueue:
    """
    asyncio queue drained by ``workers`` tasks.

    Usage::

        queue = SuggestionQueue(orchestrator.run_suggestions, workers=2)
        await queue.start()
        job = queue.submit(card.id)
        suggestions = await job.wait()
        await queue.stop()
    """

    def __init__(self, handler: JobHandler, workers: int = 2) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self._handler = handler
        self._worker_count = workers
        self._queue: asyncio.Queue[SuggestionJob] | None = None
        self._workers: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._work(i), name=f"suggestion-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("Suggestion queue started (%d workers)", self._worker_count)

    def submit(self, card_id: UUID) -> SuggestionJob:
        """Queue a suggestion run for ``card_id``. Never blocks."""
        if self._queue is None or not self.running:
            raise RuntimeError("SuggestionQueue.start() has not been called")
        job = SuggestionJob(card_id)
        self._queue.put_nowait(job)
        logger.debug("Queued suggestions for card %s", card_id)
        return job

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        if self._queue is not None:
            while not self._queue.empty():
                job = self._queue.get_nowait()
                job._finish(error=asyncio.CancelledError("suggestion queue stopped"))
                self._queue.task_done()
        logger.info("Suggestion queue stopped")

    async def _work(self, index: int) -> None:
        assert self._queue is not None
        while True:
            job = await self._queue.get()
            try:
                result = await self._handler(job.card_id)
            except asyncio.CancelledError:
                job._finish(error=asyncio.CancelledError("suggestion queue stopped"))
                raise
            except InsightError as e:
                logger.warning("Suggestions failed for card %s: %s", job.card_id, e)
                job._finish(error=e)
            except Exception as e:
                logger.exception("Suggestion worker %d crashed on card %s", index, job.card_id)
                job._finish(error=e)
            else:
                job._finish(result=result)
            finally:
                self._queue.task_done()
