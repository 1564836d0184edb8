"""Daily auto-indexing fan-out and the scheduler jobs that drive it."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Final, Protocol
from uuid import UUID

from gsc_sitemap_sync.config import Settings
from gsc_sitemap_sync.models import Website
from gsc_sitemap_sync.services.job_queue import JobOrigin, QueuedJob
from gsc_sitemap_sync.services.job_recovery import JobRecoveryService
from gsc_sitemap_sync.services.scheduler import SchedulerService

DAILY_INDEXING_JOB_ID: Final[str] = "daily-auto-indexing"
STALE_JOB_REAPER_JOB_ID: Final[str] = "stale-indexing-job-reaper"

_daily_logger = logging.getLogger("gsc_sitemap_sync.daily_indexing")


class _DueWebsiteSource(Protocol):
    async def list_websites_due_for_indexing(
        self,
        *,
        now: datetime | None = None,
        interval: timedelta = ...,
    ) -> list[Website]: ...


class _JobQueue(Protocol):
    def add_job(self, website_id: UUID, origin: JobOrigin = ...) -> QueuedJob: ...


@dataclass(slots=True, frozen=True)
class DailyIndexingResult:
    website_ids: tuple[UUID, ...]

    @property
    def enqueued_count(self) -> int:
        return len(self.website_ids)


class DailyIndexingService:
    """Enqueue every website whose auto-indexing run is due."""

    def __init__(
        self,
        *,
        store: _DueWebsiteSource,
        queue: _JobQueue,
        recovery: JobRecoveryService,
        scheduler: SchedulerService,
        settings: Settings,
    ) -> None:
        self._store = store
        self._queue = queue
        self._recovery = recovery
        self._scheduler = scheduler
        self._settings = settings

    @property
    def interval(self) -> timedelta:
        return timedelta(hours=self._settings.AUTO_INDEXING_INTERVAL_HOURS)

    async def enqueue_due_websites(
        self, *, now: datetime | None = None
    ) -> DailyIndexingResult:
        websites = await self._store.list_websites_due_for_indexing(
            now=now, interval=self.interval
        )
        website_ids = tuple(
            self._queue.add_job(website.id, JobOrigin.SCHEDULED).website_id
            for website in websites
        )
        _daily_logger.info(
            "daily_indexing_enqueued",
            extra={
                "website_count": len(website_ids),
                "website_ids": [str(website_id) for website_id in website_ids],
            },
        )
        return DailyIndexingResult(website_ids=website_ids)

    async def reap_stale_jobs(self) -> int:
        result = await self._recovery.reap_stale_jobs(
            timedelta(hours=self._settings.STALE_JOB_TIMEOUT_HOURS)
        )
        return result.recovered_count

    def register_jobs(self) -> None:
        if not self._scheduler.enabled:
            return

        self._scheduler.add_cron_job(
            job_id=DAILY_INDEXING_JOB_ID,
            func=run_scheduled_daily_indexing,
            hour=self._settings.DAILY_INDEXING_CRON_HOUR,
            minute=self._settings.DAILY_INDEXING_CRON_MINUTE,
            name="Daily Auto-Indexing",
        )
        self._scheduler.add_interval_job(
            job_id=STALE_JOB_REAPER_JOB_ID,
            func=run_scheduled_stale_job_reaper,
            seconds=self._settings.STALE_JOB_REAPER_INTERVAL_SECONDS,
            name="Stale Indexing Job Reaper",
        )
        _daily_logger.info(
            "daily_indexing_jobs_registered",
            extra={
                "cron_hour": self._settings.DAILY_INDEXING_CRON_HOUR,
                "cron_minute": self._settings.DAILY_INDEXING_CRON_MINUTE,
                "reaper_interval_seconds": (
                    self._settings.STALE_JOB_REAPER_INTERVAL_SECONDS
                ),
            },
        )


_daily_indexing_service: DailyIndexingService | None = None


def set_daily_indexing_service(service: DailyIndexingService | None) -> None:
    global _daily_indexing_service
    _daily_indexing_service = service


def _require_daily_indexing_service() -> DailyIndexingService:
    if _daily_indexing_service is None:
        raise RuntimeError("Daily indexing service is not initialized")

    return _daily_indexing_service


async def run_scheduled_daily_indexing() -> None:
    await _require_daily_indexing_service().enqueue_due_websites()


async def run_scheduled_stale_job_reaper() -> None:
    await _require_daily_indexing_service().reap_stale_jobs()


__all__ = [
    "DAILY_INDEXING_JOB_ID",
    "DailyIndexingResult",
    "DailyIndexingService",
    "STALE_JOB_REAPER_JOB_ID",
    "run_scheduled_daily_indexing",
    "run_scheduled_stale_job_reaper",
    "set_daily_indexing_service",
]
