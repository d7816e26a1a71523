"""
Suggestion Queue Tests

Job lifecycle: results, failures, and shutdown with queued work.
"""

import asyncio
import uuid

import pytest

from brainboard.core.exceptions import ProviderError
from brainboard.services.tasks import SuggestionQueue


@pytest.mark.asyncio
async def test_job_returns_handler_result():
    async def handler(card_id):
        return f"done {card_id}"

    queue = SuggestionQueue(handler, workers=2)
    await queue.start()
    try:
        card_id = uuid.uuid4()
        job = queue.submit(card_id)
        assert await job.wait() == f"done {card_id}"
        assert job.done
    finally:
        await queue.stop()


@pytest.mark.asyncio
async def test_job_reraises_handler_failure():
    async def handler(card_id):
        raise ProviderError("fake", "quota exceeded")

    queue = SuggestionQueue(handler)
    await queue.start()
    try:
        job = queue.submit(uuid.uuid4())
        with pytest.raises(ProviderError):
            await job.wait()
        assert isinstance(job.error, ProviderError)
    finally:
        await queue.stop()


@pytest.mark.asyncio
async def test_worker_survives_unexpected_errors():
    calls = []

    async def handler(card_id):
        calls.append(card_id)
        if len(calls) == 1:
            raise KeyError("bug")
        return "ok"

    queue = SuggestionQueue(handler, workers=1)
    await queue.start()
    try:
        failing = queue.submit(uuid.uuid4())
        healthy = queue.submit(uuid.uuid4())
        await queue.join()

        assert isinstance(failing.error, KeyError)
        assert await healthy.wait() == "ok"
    finally:
        await queue.stop()


@pytest.mark.asyncio
async def test_submit_does_not_wait_for_handler():
    release = asyncio.Event()

    async def handler(card_id):
        await release.wait()
        return "late"

    queue = SuggestionQueue(handler, workers=1)
    await queue.start()
    try:
        job = queue.submit(uuid.uuid4())
        await asyncio.sleep(0)
        assert not job.done

        release.set()
        assert await job.wait() == "late"
    finally:
        await queue.stop()


@pytest.mark.asyncio
async def test_stop_cancels_pending_jobs():
    async def handler(card_id):
        await asyncio.Event().wait()

    queue = SuggestionQueue(handler, workers=1)
    await queue.start()
    running = queue.submit(uuid.uuid4())
    queued = queue.submit(uuid.uuid4())
    await asyncio.sleep(0)

    await queue.stop()

    assert running.done and queued.done
    with pytest.raises(asyncio.CancelledError):
        await queued.wait()


def test_submit_before_start_fails():
    async def handler(card_id):
        return None

    with pytest.raises(RuntimeError):
        SuggestionQueue(handler).submit(uuid.uuid4())
