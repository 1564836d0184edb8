"""Crash recovery tests for indexing jobs left in progress."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import timedelta
import logging
from typing import Any

import pytest
from sqlalchemy import select

from gsc_sitemap_sync.models import IndexingJob, IndexingJobStatus, Website
from gsc_sitemap_sync.services.job_recovery import (
    STALE_JOB_REASON,
    STARTUP_RECOVERY_REASON,
    JobRecoveryService,
)
from gsc_sitemap_sync.utils.timestamps import utc_now

WebsiteFactory = Callable[..., Awaitable[Website]]


async def _add_job(database: Any, website: Website, **fields: Any) -> IndexingJob:
    async with database.session_scope() as session:
        job = IndexingJob(website_id=website.id, total_pages=10, **fields)
        session.add(job)
        await session.flush()
        return job


async def _load_jobs(database: Any) -> dict[Any, IndexingJob]:
    async with database.session_scope() as session:
        jobs = await session.scalars(select(IndexingJob))
        return {job.id: job for job in jobs}


@pytest.mark.asyncio
async def test_startup_recovery_fails_every_in_progress_job(
    database: Any,
    create_website: WebsiteFactory,
    caplog: pytest.LogCaptureFixture,
) -> None:
    website = await create_website("recovery.example")
    running = await _add_job(
        database,
        website,
        status=IndexingJobStatus.IN_PROGRESS,
        started_at=utc_now(),
        processed_pages=4,
    )
    finished = await _add_job(
        database,
        website,
        status=IndexingJobStatus.COMPLETED,
        started_at=utc_now() - timedelta(hours=1),
        completed_at=utc_now(),
    )

    caplog.set_level(logging.INFO, logger="gsc_sitemap_sync.recovery")
    recovery_service = JobRecoveryService(session_factory=database.session_scope)
    result = await recovery_service.handle_startup_recovery()

    assert result.recovered_count == 1
    assert result.recovered_jobs[0].job_id == running.id
    assert result.recovered_jobs[0].processed_pages == 4

    jobs = await _load_jobs(database)
    assert jobs[running.id].status is IndexingJobStatus.FAILED
    assert jobs[running.id].error_message == STARTUP_RECOVERY_REASON
    assert jobs[running.id].completed_at is not None
    assert jobs[finished.id].status is IndexingJobStatus.COMPLETED
    assert jobs[finished.id].error_message is None
    assert any(
        record.getMessage() == "startup_interrupted_jobs_recovered"
        for record in caplog.records
    )

    # A second pass finds nothing left to recover.
    assert (await recovery_service.handle_startup_recovery()).recovered_count == 0


@pytest.mark.asyncio
async def test_reap_stale_jobs_only_fails_jobs_older_than_max_age(
    database: Any,
    create_website: WebsiteFactory,
) -> None:
    website = await create_website()
    now = utc_now()
    stale = await _add_job(
        database,
        website,
        status=IndexingJobStatus.IN_PROGRESS,
        started_at=now - timedelta(hours=7),
    )
    recent = await _add_job(
        database,
        website,
        status=IndexingJobStatus.IN_PROGRESS,
        started_at=now - timedelta(minutes=10),
    )
    recovery_service = JobRecoveryService(session_factory=database.session_scope)

    result = await recovery_service.reap_stale_jobs(timedelta(hours=6), now=now)

    assert [job.job_id for job in result.recovered_jobs] == [stale.id]
    jobs = await _load_jobs(database)
    assert jobs[stale.id].status is IndexingJobStatus.FAILED
    assert jobs[stale.id].error_message == STALE_JOB_REASON
    assert jobs[recent.id].status is IndexingJobStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_reap_stale_jobs_rejects_non_positive_age(database: Any) -> None:
    recovery_service = JobRecoveryService(session_factory=database.session_scope)

    with pytest.raises(ValueError, match="max_age"):
        await recovery_service.reap_stale_jobs(timedelta(0))
