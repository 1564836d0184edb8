"""In-process FIFO queue running website synchronizations one at a time."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
import logging
from typing import Any, Protocol
from uuid import UUID

from gsc_sitemap_sync.utils.timestamps import utc_now

_queue_logger = logging.getLogger("gsc_sitemap_sync.job_queue")


class JobOrigin(str, Enum):
    """Who asked for a synchronization run."""

    INTERACTIVE = "interactive"
    SCHEDULED = "scheduled"


@dataclass(slots=True, frozen=True)
class QueuedJob:
    website_id: UUID
    origin: JobOrigin
    enqueued_at: datetime = field(default_factory=utc_now)


class _WebsiteProcessor(Protocol):
    async def process_website(self, website_id: UUID, origin: JobOrigin) -> Any: ...


class SerialJobQueue:
    """Run queued jobs strictly sequentially on a single worker task."""

    def __init__(self, *, processor: _WebsiteProcessor) -> None:
        self._processor = processor
        self._queue: asyncio.Queue[QueuedJob] = asyncio.Queue()
        self._pending: list[QueuedJob] = []
        self._current_job: QueuedJob | None = None
        self._worker: asyncio.Task[None] | None = None

    @property
    def pending_jobs(self) -> list[QueuedJob]:
        return list(self._pending)

    @property
    def current_job(self) -> QueuedJob | None:
        return self._current_job

    @property
    def is_processing(self) -> bool:
        return self._current_job is not None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(
            self._run_worker(), name="gsc-sitemap-sync-job-queue"
        )
        _queue_logger.info("job_queue_started")

    async def stop(self) -> None:
        """Cancel the worker; queued jobs are dropped."""

        worker = self._worker
        self._worker = None
        if worker is None:
            return

        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass

        dropped = len(self._pending)
        self._pending.clear()
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
        self._current_job = None
        _queue_logger.info("job_queue_stopped", extra={"dropped_jobs": dropped})

    async def join(self) -> None:
        """Wait until every queued job has been processed."""

        await self._queue.join()

    def add_job(
        self,
        website_id: UUID,
        origin: JobOrigin = JobOrigin.INTERACTIVE,
    ) -> QueuedJob:
        for index, pending in enumerate(self._pending):
            if pending.website_id != website_id:
                continue
            # A merged scheduled request must still stamp the auto-index time.
            if origin is JobOrigin.SCHEDULED and pending.origin is not origin:
                pending = replace(pending, origin=origin)
                self._pending[index] = pending
            _queue_logger.info(
                "job_already_queued",
                extra={
                    "website_id": str(website_id),
                    "origin": origin.value,
                    "queued_origin": pending.origin.value,
                },
            )
            return pending

        job = QueuedJob(website_id=website_id, origin=origin)
        self._pending.append(job)
        self._queue.put_nowait(job)
        _queue_logger.info(
            "job_enqueued",
            extra={
                "website_id": str(website_id),
                "origin": origin.value,
                "queue_length": len(self._pending),
            },
        )
        self.start()
        return job

    async def _run_worker(self) -> None:
        while True:
            queued = await self._queue.get()
            job = self._take_pending(queued.website_id) or queued
            self._current_job = job
            try:
                await self._process(job)
            finally:
                self._current_job = None
                self._queue.task_done()

    def _take_pending(self, website_id: UUID) -> QueuedJob | None:
        for index, pending in enumerate(self._pending):
            if pending.website_id == website_id:
                return self._pending.pop(index)
        return None

    async def _process(self, job: QueuedJob) -> None:
        log_context = {"website_id": str(job.website_id), "origin": job.origin.value}
        _queue_logger.info("job_started", extra=log_context)
        try:
            await self._processor.process_website(job.website_id, job.origin)
        except Exception as exc:
            # The next queued website must still run.
            _queue_logger.error(
                "job_failed",
                extra={
                    **log_context,
                    "error_type": exc.__class__.__name__,
                    "error": str(exc),
                },
            )
            return
        _queue_logger.info("job_finished", extra=log_context)


__all__ = ["JobOrigin", "QueuedJob", "SerialJobQueue"]
