"""Persistence operations required by the indexing pipeline."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Any, Final, Protocol, cast
from uuid import UUID

from sqlalchemy import DateTime, bindparam, delete, func, insert, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from gsc_sitemap_sync.errors import DatabaseError, NotFoundError
from gsc_sitemap_sync.models import (
    EmailNotification,
    IndexingJob,
    IndexingJobDetail,
    IndexingJobStatus,
    IndexingStatus,
    NotificationType,
    Page,
    SubmissionStatus,
    User,
    Website,
)
from gsc_sitemap_sync.utils.timestamps import utc_now

SessionScopeFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

QUERY_CHUNK_SIZE: Final[int] = 500
WRITE_BATCH_SIZE: Final[int] = 500

_logger = logging.getLogger("gsc_sitemap_sync.store")


@dataclass(slots=True, frozen=True)
class PageUpsert:
    """Final state of a checked page to be written back."""

    url: str
    indexing_status: IndexingStatus
    last_crawled_at: datetime | None = None
    last_submitted_at: datetime | None = None
    last_modified_at: datetime | None = None


class IndexingStore(Protocol):
    """Storage interface consumed by the orchestrator and its collaborators."""

    async def get_website(self, website_id: UUID) -> Website | None: ...

    async def get_user(self, user_id: UUID) -> User | None: ...

    async def get_pages_by_website_id(
        self, website_id: UUID, *, all: bool = True
    ) -> list[Page]: ...

    async def create_indexing_job(
        self,
        website_id: UUID,
        *,
        total_pages: int,
        status: IndexingJobStatus = ...,
        error_message: str | None = ...,
    ) -> IndexingJob: ...

    async def update_indexing_job(
        self,
        job_id: UUID,
        *,
        status: IndexingJobStatus,
        processed_pages: int | None = ...,
        error_message: str | None = ...,
    ) -> IndexingJob: ...

    async def create_indexing_job_detail(
        self,
        job_id: UUID,
        *,
        url: str,
        page_id: UUID | None,
        status: SubmissionStatus,
        response: str | None,
    ) -> IndexingJobDetail: ...

    async def persist_sync_results(
        self,
        website_id: UUID,
        *,
        pages: Sequence[PageUpsert],
        removed_page_ids: Sequence[UUID],
        auto_indexed: bool,
    ) -> None: ...

    async def create_email_notification(
        self,
        *,
        user_id: UUID,
        website_id: UUID | None,
        notification_type: NotificationType,
        subject: str,
        content: str,
    ) -> EmailNotification: ...


def _chunks(values: Sequence[Any], size: int) -> list[Sequence[Any]]:
    return [values[start : start + size] for start in range(0, len(values), size)]


class SqlAlchemyIndexingStore:
    """``IndexingStore`` backed by the async SQLAlchemy session scope."""

    def __init__(self, *, session_factory: SessionScopeFactory | None = None) -> None:
        if session_factory is None:
            from gsc_sitemap_sync.database import session_scope

            session_factory = session_scope

        self._session_factory = session_factory

    async def get_website(self, website_id: UUID) -> Website | None:
        async with self._session_factory() as session:
            return await session.get(Website, website_id)

    async def get_user(self, user_id: UUID) -> User | None:
        async with self._session_factory() as session:
            return await session.get(User, user_id)

    async def list_websites_due_for_indexing(
        self,
        *,
        now: datetime | None = None,
        interval: timedelta = timedelta(days=1),
    ) -> list[Website]:
        """Enabled auto-indexing websites not auto-indexed within ``interval``."""

        cutoff = (now or utc_now()) - interval
        async with self._session_factory() as session:
            result = await session.scalars(
                select(Website)
                .where(
                    Website.enabled.is_(True),
                    Website.auto_indexing_enabled.is_(True),
                    or_(
                        Website.last_auto_index_at.is_(None),
                        Website.last_auto_index_at < cutoff,
                    ),
                )
                .order_by(Website.created_at, Website.domain)
            )
            return list(result)

    async def get_pages_by_website_id(
        self,
        website_id: UUID,
        *,
        all: bool = True,
        page: int = 1,
        page_size: int = 50,
    ) -> list[Page]:
        statement = select(Page).where(Page.website_id == website_id).order_by(Page.url)
        if not all:
            if page < 1 or page_size < 1:
                raise ValueError("page and page_size must be greater than zero")
            statement = statement.offset((page - 1) * page_size).limit(page_size)

        async with self._session_factory() as session:
            return list(await session.scalars(statement))

    async def get_page(self, website_id: UUID, page_id: UUID) -> Page | None:
        async with self._session_factory() as session:
            return await session.scalar(
                select(Page).where(Page.id == page_id, Page.website_id == website_id)
            )

    async def count_pages(self, website_id: UUID) -> int:
        async with self._session_factory() as session:
            count = await session.scalar(
                select(func.count(Page.id)).where(Page.website_id == website_id)
            )
            return int(count or 0)

    async def update_website_settings(
        self,
        website_id: UUID,
        *,
        enabled: bool | None = None,
        auto_indexing_enabled: bool | None = None,
    ) -> Website:
        """Flip the website switches that were provided; ``None`` leaves one as is."""

        async with self._session_factory() as session:
            website = await session.get(Website, website_id)
            if website is None:
                raise NotFoundError(f"Website {website_id} not found")
            if enabled is not None:
                website.enabled = enabled
            if auto_indexing_enabled is not None:
                website.auto_indexing_enabled = auto_indexing_enabled
            website.updated_at = utc_now()
            await session.flush()
            return website

    async def bulk_upsert_pages(
        self, website_id: UUID, pages: Sequence[PageUpsert]
    ) -> int:
        async with self._session_factory() as session:
            return await self._bulk_upsert_pages(session, website_id, pages)

    async def remove_pages(self, website_id: UUID, page_ids: Sequence[UUID]) -> int:
        async with self._session_factory() as session:
            return await self._remove_pages(session, website_id, page_ids)

    async def update_website_timestamps(
        self,
        website_id: UUID,
        *,
        synced: bool,
        auto_indexed: bool,
    ) -> None:
        async with self._session_factory() as session:
            await self._update_website_timestamps(
                session, website_id, synced=synced, auto_indexed=auto_indexed
            )

    async def persist_sync_results(
        self,
        website_id: UUID,
        *,
        pages: Sequence[PageUpsert],
        removed_page_ids: Sequence[UUID],
        auto_indexed: bool,
    ) -> None:
        """Write page states, drop removed pages and stamp the website atomically."""

        try:
            async with self._session_factory() as session:
                upserted = await self._bulk_upsert_pages(session, website_id, pages)
                removed = await self._remove_pages(session, website_id, removed_page_ids)
                await self._update_website_timestamps(
                    session, website_id, synced=True, auto_indexed=auto_indexed
                )
        except SQLAlchemyError as exc:
            raise DatabaseError(
                f"Failed to persist sync results for website {website_id}"
            ) from exc

        _logger.info(
            "sync_results_persisted",
            extra={
                "website_id": str(website_id),
                "upserted_pages": upserted,
                "removed_pages": removed,
                "auto_indexed": auto_indexed,
            },
        )

    async def mark_page_submitted(
        self,
        page_id: UUID,
        *,
        submitted_at: datetime | None = None,
    ) -> Page:
        async with self._session_factory() as session:
            page = await session.get(Page, page_id)
            if page is None:
                raise NotFoundError(f"Page {page_id} not found")
            page.indexing_status = IndexingStatus.SUBMITTED
            page.last_submitted_at = submitted_at or utc_now()
            page.updated_at = utc_now()
            await session.flush()
            return page

    async def create_indexing_job(
        self,
        website_id: UUID,
        *,
        total_pages: int,
        status: IndexingJobStatus = IndexingJobStatus.IN_PROGRESS,
        error_message: str | None = None,
    ) -> IndexingJob:
        started_at = utc_now()
        job = IndexingJob(
            website_id=website_id,
            status=status,
            started_at=started_at,
            completed_at=started_at if status.is_terminal else None,
            total_pages=total_pages,
            processed_pages=0,
            error_message=error_message,
        )
        async with self._session_factory() as session:
            session.add(job)
            await session.flush()
        return job

    async def update_indexing_job(
        self,
        job_id: UUID,
        *,
        status: IndexingJobStatus,
        processed_pages: int | None = None,
        error_message: str | None = None,
    ) -> IndexingJob:
        async with self._session_factory() as session:
            job = await session.get(IndexingJob, job_id)
            if job is None:
                raise NotFoundError(f"Indexing job {job_id} not found")

            job.status = status
            if processed_pages is not None:
                job.processed_pages = processed_pages
            if error_message is not None:
                job.error_message = error_message[:2048]
            if status.is_terminal:
                job.completed_at = utc_now()
            await session.flush()
            return job

    async def create_indexing_job_detail(
        self,
        job_id: UUID,
        *,
        url: str,
        page_id: UUID | None,
        status: SubmissionStatus,
        response: str | None,
    ) -> IndexingJobDetail:
        detail = IndexingJobDetail(
            job_id=job_id,
            page_id=page_id,
            url=url,
            status=status,
            response=response,
            submitted_at=utc_now(),
        )
        async with self._session_factory() as session:
            session.add(detail)
            await session.flush()
        return detail

    async def list_indexing_jobs(
        self, website_id: UUID, *, limit: int = 20
    ) -> list[IndexingJob]:
        async with self._session_factory() as session:
            result = await session.scalars(
                select(IndexingJob)
                .where(IndexingJob.website_id == website_id)
                .order_by(IndexingJob.started_at.desc())
                .limit(limit)
            )
            return list(result)

    async def get_indexing_job(self, job_id: UUID) -> IndexingJob | None:
        async with self._session_factory() as session:
            return await session.scalar(
                select(IndexingJob)
                .options(selectinload(IndexingJob.details))
                .where(IndexingJob.id == job_id)
            )

    async def create_email_notification(
        self,
        *,
        user_id: UUID,
        website_id: UUID | None,
        notification_type: NotificationType,
        subject: str,
        content: str,
    ) -> EmailNotification:
        notification = EmailNotification(
            user_id=user_id,
            website_id=website_id,
            type=notification_type,
            subject=subject,
            content=content,
            created_at=utc_now(),
        )
        async with self._session_factory() as session:
            session.add(notification)
            await session.flush()
        return notification

    @staticmethod
    async def _bulk_upsert_pages(
        session: AsyncSession,
        website_id: UUID,
        pages: Sequence[PageUpsert],
    ) -> int:
        pages_by_url = {page.url: page for page in pages}
        if not pages_by_url:
            return 0

        existing_ids: dict[str, UUID] = {}
        for url_chunk in _chunks(list(pages_by_url), QUERY_CHUNK_SIZE):
            rows = await session.execute(
                select(Page.url, Page.id).where(
                    Page.website_id == website_id,
                    Page.url.in_(url_chunk),
                )
            )
            existing_ids.update({url: page_id for url, page_id in rows})

        new_rows: list[dict[str, object]] = []
        changed_rows: list[dict[str, object]] = []
        for url, page in pages_by_url.items():
            page_id = existing_ids.get(url)
            if page_id is None:
                new_rows.append(
                    {
                        "website_id": website_id,
                        "url": url,
                        "indexing_status": page.indexing_status,
                        "last_crawled_at": page.last_crawled_at,
                        "last_submitted_at": page.last_submitted_at,
                        "last_modified_at": page.last_modified_at,
                    }
                )
                continue
            changed_rows.append(
                {
                    "b_id": page_id,
                    "b_indexing_status": page.indexing_status,
                    "b_last_crawled_at": page.last_crawled_at,
                    "b_last_submitted_at": page.last_submitted_at,
                    "b_last_modified_at": page.last_modified_at,
                }
            )

        for batch in _chunks(new_rows, WRITE_BATCH_SIZE):
            await session.execute(insert(Page), list(batch))

        page_table = cast(Any, Page.__table__)
        timestamp_type = DateTime(timezone=True)
        # Missing timestamps keep the stored value instead of clearing it.
        update_statement = (
            update(page_table)
            .where(page_table.c.id == bindparam("b_id"))
            .values(
                indexing_status=bindparam("b_indexing_status"),
                last_crawled_at=func.coalesce(
                    bindparam("b_last_crawled_at", type_=timestamp_type),
                    page_table.c.last_crawled_at,
                ),
                last_submitted_at=func.coalesce(
                    bindparam("b_last_submitted_at", type_=timestamp_type),
                    page_table.c.last_submitted_at,
                ),
                last_modified_at=func.coalesce(
                    bindparam("b_last_modified_at", type_=timestamp_type),
                    page_table.c.last_modified_at,
                ),
                updated_at=func.now(),
            )
        )
        for batch in _chunks(changed_rows, WRITE_BATCH_SIZE):
            await session.execute(update_statement, list(batch))

        return len(new_rows) + len(changed_rows)

    @staticmethod
    async def _remove_pages(
        session: AsyncSession,
        website_id: UUID,
        page_ids: Sequence[UUID],
    ) -> int:
        removed = 0
        for id_chunk in _chunks(list(page_ids), QUERY_CHUNK_SIZE):
            result = await session.execute(
                delete(Page)
                .where(Page.website_id == website_id, Page.id.in_(id_chunk))
                .execution_options(synchronize_session=False)
            )
            removed += int(getattr(result, "rowcount", 0) or 0)
        return removed

    @staticmethod
    async def _update_website_timestamps(
        session: AsyncSession,
        website_id: UUID,
        *,
        synced: bool,
        auto_indexed: bool,
    ) -> None:
        values: dict[str, datetime] = {}
        now = utc_now()
        if synced:
            values["last_sync_at"] = now
        if auto_indexed:
            values["last_auto_index_at"] = now
        if not values:
            return

        result = await session.execute(
            update(Website)
            .where(Website.id == website_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if not getattr(result, "rowcount", 0):
            raise NotFoundError(f"Website {website_id} not found")


__all__ = [
    "IndexingStore",
    "PageUpsert",
    "SessionScopeFactory",
    "SqlAlchemyIndexingStore",
]
