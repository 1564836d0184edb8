"""Fail indexing jobs abandoned by a crash, restart or hung run."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gsc_sitemap_sync.models import IndexingJob, IndexingJobStatus
from gsc_sitemap_sync.utils.timestamps import utc_now

SessionScopeFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

STARTUP_RECOVERY_REASON = "Job interrupted by application restart"
STALE_JOB_REASON = "Job exceeded the maximum run time and was marked failed"

_recovery_logger = logging.getLogger("gsc_sitemap_sync.recovery")


@dataclass(slots=True, frozen=True)
class RecoveredJob:
    job_id: UUID
    website_id: UUID
    started_at: datetime
    processed_pages: int


@dataclass(slots=True, frozen=True)
class RecoveryResult:
    """Jobs moved from ``in_progress`` to ``failed`` by one recovery pass."""

    recovered_jobs: tuple[RecoveredJob, ...]

    @property
    def recovered_count(self) -> int:
        return len(self.recovered_jobs)


class JobRecoveryService:
    """Close out ``in_progress`` jobs whose worker can no longer finish them."""

    def __init__(self, *, session_factory: SessionScopeFactory | None = None) -> None:
        if session_factory is None:
            from gsc_sitemap_sync.database import session_scope

            session_factory = session_scope

        self._session_factory = session_factory

    async def handle_startup_recovery(self) -> RecoveryResult:
        """Fail every running job; the in-memory queue never survives a restart."""

        result = await self._mark_running_jobs_failed(
            started_before=None,
            reason=STARTUP_RECOVERY_REASON,
        )
        if result.recovered_count:
            _recovery_logger.warning(
                "startup_interrupted_jobs_recovered",
                extra={
                    "count": result.recovered_count,
                    "job_ids": [str(job.job_id) for job in result.recovered_jobs],
                },
            )
        else:
            _recovery_logger.info("startup_interrupted_jobs_not_found")
        return result

    async def reap_stale_jobs(
        self,
        max_age: timedelta,
        *,
        now: datetime | None = None,
    ) -> RecoveryResult:
        if max_age <= timedelta(0):
            raise ValueError("max_age must be positive")

        cutoff = (now or utc_now()) - max_age
        result = await self._mark_running_jobs_failed(
            started_before=cutoff,
            reason=STALE_JOB_REASON,
        )
        if result.recovered_count:
            _recovery_logger.warning(
                "stale_jobs_reaped",
                extra={
                    "count": result.recovered_count,
                    "cutoff": cutoff.isoformat(),
                    "job_ids": [str(job.job_id) for job in result.recovered_jobs],
                },
            )
        return result

    async def _mark_running_jobs_failed(
        self,
        *,
        started_before: datetime | None,
        reason: str,
    ) -> RecoveryResult:
        statement = select(IndexingJob).where(
            IndexingJob.status == IndexingJobStatus.IN_PROGRESS
        )
        if started_before is not None:
            statement = statement.where(IndexingJob.started_at < started_before)

        failed_at = utc_now()
        recovered: list[RecoveredJob] = []
        async with self._session_factory() as session:
            rows = (await session.scalars(statement.order_by(IndexingJob.started_at))).all()
            for row in rows:
                row.status = IndexingJobStatus.FAILED
                row.completed_at = failed_at
                row.error_message = reason
                recovered.append(
                    RecoveredJob(
                        job_id=row.id,
                        website_id=row.website_id,
                        started_at=row.started_at,
                        processed_pages=int(row.processed_pages),
                    )
                )

        return RecoveryResult(recovered_jobs=tuple(recovered))


__all__ = [
    "JobRecoveryService",
    "RecoveredJob",
    "RecoveryResult",
    "STALE_JOB_REASON",
    "STARTUP_RECOVERY_REASON",
]
