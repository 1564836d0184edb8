"""Website-scoped synchronization, job history and manual submission routes."""

from __future__ import annotations

from datetime import timedelta
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from gsc_sitemap_sync.api.dependencies import (
    get_app_settings,
    get_indexing_store,
    get_job_queue,
    get_submission_engine,
)
from gsc_sitemap_sync.config import Settings
from gsc_sitemap_sync.errors import AppError, NotFoundError, ValidationError
from gsc_sitemap_sync.models import IndexingJob, Website
from gsc_sitemap_sync.schemas.indexing import (
    AutoIndexingToggleRequest,
    IndexingJobRead,
    ManualSubmissionResponse,
    PageListResponse,
    PageRead,
    QueuedJobRead,
    WebsiteRead,
    WebsiteToggleRequest,
    WebsiteToggleResponse,
)
from gsc_sitemap_sync.services.indexing_store import SqlAlchemyIndexingStore
from gsc_sitemap_sync.services.job_queue import JobOrigin, QueuedJob, SerialJobQueue
from gsc_sitemap_sync.services.submission import SubmissionEngine, SubmissionError
from gsc_sitemap_sync.utils.timestamps import as_utc, utc_now

router = APIRouter(prefix="/api/websites", tags=["websites"])

_audit_logger = logging.getLogger("gsc_sitemap_sync.audit")


async def _get_website_or_404(
    *, website_id: UUID, store: SqlAlchemyIndexingStore
) -> Website:
    website = await store.get_website(website_id)
    if website is None:
        raise NotFoundError("Website not found")
    return website


@router.post(
    "/{website_id}/sync",
    response_model=QueuedJobRead,
    status_code=status.HTTP_202_ACCEPTED,
)
async def sync_website(
    website_id: UUID,
    store: SqlAlchemyIndexingStore = Depends(get_indexing_store),
    queue: SerialJobQueue = Depends(get_job_queue),
) -> QueuedJob:
    website = await _get_website_or_404(website_id=website_id, store=store)
    if not website.enabled:
        raise ValidationError("Website is disabled")

    return queue.add_job(website.id, JobOrigin.INTERACTIVE)


@router.get(
    "/{website_id}/pages",
    response_model=PageListResponse,
    status_code=status.HTTP_200_OK,
)
async def list_website_pages(
    website_id: UUID,
    all: bool = Query(default=False),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=500),
    store: SqlAlchemyIndexingStore = Depends(get_indexing_store),
) -> PageListResponse:
    await _get_website_or_404(website_id=website_id, store=store)
    pages = await store.get_pages_by_website_id(
        website_id, all=all, page=page, page_size=page_size
    )
    return PageListResponse(
        pages=[PageRead.model_validate(item) for item in pages],
        total_count=await store.count_pages(website_id),
        page=None if all else page,
        page_size=None if all else page_size,
    )


def _sync_is_stale(website: Website, settings: Settings) -> bool:
    last_sync_at = as_utc(website.last_sync_at)
    if last_sync_at is None:
        return True
    interval = timedelta(hours=settings.AUTO_INDEXING_INTERVAL_HOURS)
    return utc_now() - last_sync_at > interval


@router.post(
    "/{website_id}/toggle",
    response_model=WebsiteToggleResponse,
    status_code=status.HTTP_200_OK,
)
async def toggle_website(
    website_id: UUID,
    payload: WebsiteToggleRequest,
    store: SqlAlchemyIndexingStore = Depends(get_indexing_store),
    queue: SerialJobQueue = Depends(get_job_queue),
    settings: Settings = Depends(get_app_settings),
) -> WebsiteToggleResponse:
    await _get_website_or_404(website_id=website_id, store=store)
    website = await store.update_website_settings(
        website_id,
        enabled=payload.enabled,
        auto_indexing_enabled=payload.auto_indexing_enabled,
    )

    queued_job: QueuedJob | None = None
    if not website.enabled:
        message = "Website disabled."
    elif website.auto_indexing_enabled:
        message = "Website enabled. Auto-indexing enabled."
        if _sync_is_stale(website, settings):
            queued_job = queue.add_job(website.id, JobOrigin.INTERACTIVE)
            message = "Website enabled. Synchronization queued."
    else:
        message = "Website enabled. Auto-indexing disabled."

    _audit_logger.info(
        {
            "event": "website_toggled",
            "website_id": str(website_id),
            "enabled": website.enabled,
            "auto_indexing_enabled": website.auto_indexing_enabled,
            "sync_queued": queued_job is not None,
        }
    )
    return WebsiteToggleResponse(
        website=WebsiteRead.model_validate(website),
        message=message,
        queued_job=QueuedJobRead.model_validate(queued_job) if queued_job else None,
    )


@router.post(
    "/{website_id}/toggle-indexing",
    response_model=WebsiteToggleResponse,
    status_code=status.HTTP_200_OK,
)
async def toggle_auto_indexing(
    website_id: UUID,
    payload: AutoIndexingToggleRequest,
    store: SqlAlchemyIndexingStore = Depends(get_indexing_store),
    queue: SerialJobQueue = Depends(get_job_queue),
    settings: Settings = Depends(get_app_settings),
) -> WebsiteToggleResponse:
    await _get_website_or_404(website_id=website_id, store=store)
    website = await store.update_website_settings(
        website_id, auto_indexing_enabled=payload.enabled
    )

    queued_job: QueuedJob | None = None
    if not payload.enabled:
        message = "Auto-indexing disabled."
    else:
        message = "Auto-indexing enabled."
        if website.enabled and _sync_is_stale(website, settings):
            queued_job = queue.add_job(website.id, JobOrigin.INTERACTIVE)
            message = "Auto-indexing enabled. Synchronization queued."

    _audit_logger.info(
        {
            "event": "auto_indexing_toggled",
            "website_id": str(website_id),
            "auto_indexing_enabled": website.auto_indexing_enabled,
            "sync_queued": queued_job is not None,
        }
    )
    return WebsiteToggleResponse(
        website=WebsiteRead.model_validate(website),
        message=message,
        queued_job=QueuedJobRead.model_validate(queued_job) if queued_job else None,
    )

@router.get(
    "/{website_id}/jobs",
    response_model=list[IndexingJobRead],
    status_code=status.HTTP_200_OK,
)
async def list_website_jobs(
    website_id: UUID,
    limit: int = Query(default=20, ge=1, le=100),
    store: SqlAlchemyIndexingStore = Depends(get_indexing_store),
) -> list[IndexingJob]:
    await _get_website_or_404(website_id=website_id, store=store)
    return await store.list_indexing_jobs(website_id, limit=limit)


@router.post(
    "/{website_id}/pages/{page_id}/submit",
    response_model=ManualSubmissionResponse,
    status_code=status.HTTP_200_OK,
)
async def submit_page(
    website_id: UUID,
    page_id: UUID,
    store: SqlAlchemyIndexingStore = Depends(get_indexing_store),
    submission: SubmissionEngine = Depends(get_submission_engine),
    settings: Settings = Depends(get_app_settings),
) -> ManualSubmissionResponse:
    website = await _get_website_or_404(website_id=website_id, store=store)
    page = await store.get_page(website_id, page_id)
    if page is None:
        raise NotFoundError("Page not found")

    cooldown = timedelta(hours=settings.MANUAL_RESUBMIT_COOLDOWN_HOURS)
    last_submitted_at = as_utc(page.last_submitted_at)
    if last_submitted_at is not None and utc_now() - last_submitted_at < cooldown:
        raise ValidationError(
            "Page was submitted less than "
            f"{settings.MANUAL_RESUBMIT_COOLDOWN_HOURS} hours ago"
        )

    try:
        response = await submission.submit_url_for_indexing(website.domain, page.url)
    except SubmissionError as exc:
        if exc.rate_limited:
            raise AppError(
                exc.message, status_code=429, error_code="RATE_LIMITED"
            ) from exc
        raise AppError(
            exc.message, status_code=502, error_code="SUBMISSION_FAILED"
        ) from exc

    updated_page = await store.mark_page_submitted(page.id)
    _audit_logger.info(
        {
            "event": "manual_page_submission",
            "website_id": str(website_id),
            "page_id": str(page_id),
            "url": page.url,
        }
    )

    latest_update = response.url_notification_metadata.latest_update
    return ManualSubmissionResponse(
        page=PageRead.model_validate(updated_page),
        notification_url=response.url_notification_metadata.url or page.url,
        notify_time=latest_update.notify_time if latest_update is not None else None,
    )


__all__ = ["router"]
