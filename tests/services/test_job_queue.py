"""Tests for the serial in-process job queue."""

from __future__ import annotations

import asyncio
from uuid import UUID, uuid4

import pytest

from gsc_sitemap_sync.services.job_queue import JobOrigin, SerialJobQueue


class _RecordingProcessor:
    def __init__(self, *, fail_for: set[UUID] | None = None) -> None:
        self.fail_for = fail_for or set()
        self.processed: list[tuple[UUID, JobOrigin]] = []
        self.active = 0
        self.max_active = 0

    async def process_website(self, website_id: UUID, origin: JobOrigin) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0.01)
            if website_id in self.fail_for:
                raise RuntimeError(f"sync failed for {website_id}")
            self.processed.append((website_id, origin))
        finally:
            self.active -= 1


@pytest.mark.asyncio
async def test_jobs_run_one_at_a_time_in_fifo_order() -> None:
    processor = _RecordingProcessor()
    queue = SerialJobQueue(processor=processor)
    website_ids = [uuid4() for _ in range(3)]

    try:
        for website_id in website_ids:
            queue.add_job(website_id)
        await asyncio.wait_for(queue.join(), timeout=5)
    finally:
        await queue.stop()

    assert [website_id for website_id, _ in processor.processed] == website_ids
    assert processor.max_active == 1


@pytest.mark.asyncio
async def test_add_job_returns_pending_job_for_already_queued_website() -> None:
    processor = _RecordingProcessor()
    queue = SerialJobQueue(processor=processor)
    website_id = uuid4()

    try:
        first = queue.add_job(website_id, JobOrigin.SCHEDULED)
        second = queue.add_job(website_id, JobOrigin.INTERACTIVE)
        assert second is first
        assert len(queue.pending_jobs) == 1
        await asyncio.wait_for(queue.join(), timeout=5)
    finally:
        await queue.stop()

    assert processor.processed == [(website_id, JobOrigin.SCHEDULED)]


@pytest.mark.asyncio
async def test_scheduled_request_upgrades_pending_interactive_job() -> None:
    processor = _RecordingProcessor()
    queue = SerialJobQueue(processor=processor)
    website_id = uuid4()

    try:
        first = queue.add_job(website_id, JobOrigin.INTERACTIVE)
        merged = queue.add_job(website_id, JobOrigin.SCHEDULED)
        assert merged.origin is JobOrigin.SCHEDULED
        assert merged.enqueued_at == first.enqueued_at
        assert queue.pending_jobs == [merged]
        await asyncio.wait_for(queue.join(), timeout=5)
    finally:
        await queue.stop()

    assert processor.processed == [(website_id, JobOrigin.SCHEDULED)]


@pytest.mark.asyncio
async def test_failing_job_does_not_stop_the_queue() -> None:
    failing_id, healthy_id = uuid4(), uuid4()
    processor = _RecordingProcessor(fail_for={failing_id})
    queue = SerialJobQueue(processor=processor)

    try:
        queue.add_job(failing_id)
        queue.add_job(healthy_id)
        await asyncio.wait_for(queue.join(), timeout=5)
        assert queue.running is True
    finally:
        await queue.stop()

    assert processor.processed == [(healthy_id, JobOrigin.INTERACTIVE)]


@pytest.mark.asyncio
async def test_current_job_is_reported_while_processing() -> None:
    started = asyncio.Event()
    release = asyncio.Event()

    class _BlockingProcessor:
        async def process_website(self, website_id: UUID, origin: JobOrigin) -> None:
            started.set()
            await release.wait()

    queue = SerialJobQueue(processor=_BlockingProcessor())
    running_id, waiting_id = uuid4(), uuid4()

    try:
        queue.add_job(running_id)
        queue.add_job(waiting_id)
        await asyncio.wait_for(started.wait(), timeout=5)

        assert queue.is_processing is True
        assert queue.current_job is not None
        assert queue.current_job.website_id == running_id
        assert [job.website_id for job in queue.pending_jobs] == [waiting_id]
        # A website that is running, not pending, may be queued again.
        assert queue.add_job(running_id).website_id == running_id
        assert len(queue.pending_jobs) == 2

        release.set()
        await asyncio.wait_for(queue.join(), timeout=5)
        assert queue.is_processing is False
    finally:
        await queue.stop()


@pytest.mark.asyncio
async def test_stop_drops_pending_jobs() -> None:
    release = asyncio.Event()

    class _BlockingProcessor:
        async def process_website(self, website_id: UUID, origin: JobOrigin) -> None:
            await release.wait()

    queue = SerialJobQueue(processor=_BlockingProcessor())
    queue.add_job(uuid4())
    queue.add_job(uuid4())
    await asyncio.sleep(0)

    await queue.stop()

    assert queue.running is False
    assert queue.pending_jobs == []
    assert queue.current_job is None
