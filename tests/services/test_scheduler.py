"""Tests for scheduler service lifecycle and trigger support."""

from __future__ import annotations

from pathlib import Path

import pytest

from gsc_sitemap_sync.services.scheduler import SchedulerService


async def _noop_job() -> None:
    return None


@pytest.mark.asyncio
async def test_scheduler_service_supports_interval_and_cron_jobs(
    tmp_path: Path,
) -> None:
    scheduler = SchedulerService(
        enabled=True,
        jobstore_url=f"sqlite:///{tmp_path / 'scheduler-jobs.sqlite'}",
    )

    scheduler.add_interval_job(job_id="interval-job", func=_noop_job, seconds=60)
    scheduler.add_cron_job(job_id="cron-job", func=_noop_job, minute="*/5", hour="*")

    await scheduler.start()
    try:
        assert scheduler.running is True
        jobs = scheduler.list_jobs()
        assert {job.job_id for job in jobs} == {"interval-job", "cron-job"}
        assert any("interval" in job.trigger.lower() for job in jobs)
        assert any("cron" in job.trigger.lower() for job in jobs)
        assert all(job.next_run_time is not None for job in jobs)

        # Re-registering an id replaces the stored job.
        scheduler.add_interval_job(job_id="interval-job", func=_noop_job, seconds=120)
        assert len(scheduler.list_jobs()) == 2
    finally:
        await scheduler.shutdown()

    assert scheduler.running is False


@pytest.mark.asyncio
async def test_scheduler_service_rejects_operations_when_disabled(
    tmp_path: Path,
) -> None:
    scheduler = SchedulerService(
        enabled=False,
        jobstore_url=f"sqlite:///{tmp_path / 'scheduler-disabled.sqlite'}",
    )

    await scheduler.start()

    assert scheduler.running is False
    assert scheduler.list_jobs() == []
    with pytest.raises(RuntimeError, match="disabled"):
        scheduler.add_interval_job(job_id="job", func=_noop_job, seconds=60)
    with pytest.raises(RuntimeError, match="disabled"):
        scheduler.add_cron_job(job_id="job", func=_noop_job)
    await scheduler.shutdown()


def test_scheduler_service_rejects_non_positive_interval(tmp_path: Path) -> None:
    scheduler = SchedulerService(
        enabled=True,
        jobstore_url=f"sqlite:///{tmp_path / 'scheduler-jobs.sqlite'}",
    )

    with pytest.raises(ValueError, match="greater than zero"):
        scheduler.add_interval_job(job_id="job", func=_noop_job, seconds=0)
