"""End-to-end synchronization of one website with Google Search Console."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Protocol
from uuid import UUID

from gsc_sitemap_sync.errors import NotFoundError, ValidationError
from gsc_sitemap_sync.models import (
    IndexingJob,
    IndexingJobStatus,
    IndexingStatus,
    NotificationType,
    SubmissionStatus,
    Website,
)
from gsc_sitemap_sync.schemas.google import UrlNotificationResponse
from gsc_sitemap_sync.services.indexing_status import PageIndexingStatus
from gsc_sitemap_sync.services.indexing_store import IndexingStore, PageUpsert
from gsc_sitemap_sync.services.job_queue import JobOrigin
from gsc_sitemap_sync.services.reconciliation import (
    ReconciliationEngine,
    ReconciliationResult,
)
from gsc_sitemap_sync.services.sitemap_parser import SitemapPage, filter_sitemaps
from gsc_sitemap_sync.services.submission import SubmissionError
from gsc_sitemap_sync.utils.timestamps import utc_now

SleepCallable = Callable[[float], Awaitable[None]]

DEFAULT_SETTLE_DELAY_SECONDS = 20.0

_orchestrator_logger = logging.getLogger("gsc_sitemap_sync.orchestrator")


class _SitemapDiscoverer(Protocol):
    async def discover_sitemaps(self, domain: str) -> list[str]: ...


class _SitemapReader(Protocol):
    async def fetch_and_parse(self, url: str) -> list[SitemapPage]: ...


class _StatusClient(Protocol):
    async def fetch_bulk_indexing_status(
        self,
        website_id: UUID,
        urls: Sequence[str],
        *,
        site_url: str,
    ) -> list[PageIndexingStatus]: ...


class _Submitter(Protocol):
    async def submit_url_for_indexing(
        self, domain: str, url: str
    ) -> UrlNotificationResponse: ...


class _Notifier(Protocol):
    async def send_email_notification(
        self,
        *,
        website_id: UUID,
        user_id: UUID,
        domain: str,
        notification_type: NotificationType,
        submitted_urls: Sequence[str],
        error_message: str | None = None,
    ) -> object: ...


@dataclass(slots=True, frozen=True)
class IndexingRunResult:
    """Summary of a finished synchronization run."""

    job_id: UUID
    website_id: UUID
    status: IndexingJobStatus
    total_pages: int
    processed_pages: int
    new_pages: int
    removed_pages: int
    submitted_urls: tuple[str, ...] = ()


@dataclass(slots=True)
class _SubmissionOutcome:
    submitted_at: dict[str, datetime] = field(default_factory=dict)
    failed_urls: list[str] = field(default_factory=list)

    @property
    def submitted_urls(self) -> list[str]:
        return list(self.submitted_at)


class IndexingJobOrchestrator:
    """Discover, reconcile, inspect, submit, persist and report for a website."""

    def __init__(
        self,
        *,
        store: IndexingStore,
        discovery: _SitemapDiscoverer,
        parser: _SitemapReader,
        status_client: _StatusClient,
        submission: _Submitter,
        notifier: _Notifier,
        settle_delay_seconds: float = DEFAULT_SETTLE_DELAY_SECONDS,
        sleep: SleepCallable = asyncio.sleep,
    ) -> None:
        if settle_delay_seconds < 0:
            raise ValueError("settle_delay_seconds must be zero or greater")

        self._store = store
        self._discovery = discovery
        self._parser = parser
        self._status_client = status_client
        self._submission = submission
        self._notifier = notifier
        self._reconciler = ReconciliationEngine(store=store)
        self._settle_delay_seconds = settle_delay_seconds
        self._sleep = sleep

    async def process_website(
        self,
        website_id: UUID,
        origin: JobOrigin = JobOrigin.INTERACTIVE,
    ) -> IndexingRunResult:
        website = await self._store.get_website(website_id)
        if website is None:
            raise NotFoundError(f"Website {website_id} not found")
        if not website.enabled:
            raise ValidationError(f"Website {website.domain} is disabled")

        log_context = {
            "website_id": str(website_id),
            "domain": website.domain,
            "origin": origin.value,
        }
        _orchestrator_logger.info("indexing_run_started", extra=log_context)

        job: IndexingJob | None = None
        outcome = _SubmissionOutcome()
        try:
            pages = await self._collect_pages(website)
            job = await self._store.create_indexing_job(
                website_id, total_pages=len(pages)
            )
            reconciliation = await self._reconciler.reconcile(website_id, pages)
            urls_to_check = reconciliation.urls_to_check

            first_check = await self._status_client.fetch_bulk_indexing_status(
                website_id, urls_to_check, site_url=website.search_console_property
            )
            await self._submit_pages(
                job, website, first_check, reconciliation, outcome
            )

            final_check = first_check
            if outcome.submitted_at:
                await self._sleep(self._settle_delay_seconds)
                second_check = await self._status_client.fetch_bulk_indexing_status(
                    website_id,
                    urls_to_check,
                    site_url=website.search_console_property,
                )
                final_check = _merge_status_checks(first_check, second_check)

            await self._store.persist_sync_results(
                website_id,
                pages=_build_page_upserts(reconciliation, final_check, outcome),
                removed_page_ids=reconciliation.removed_page_ids,
                auto_indexed=origin is JobOrigin.SCHEDULED,
            )
            job = await self._store.update_indexing_job(
                job.id,
                status=IndexingJobStatus.COMPLETED,
                processed_pages=len(outcome.submitted_at),
            )
        except Exception as exc:
            await self._record_failure(website, job, exc, outcome, log_context)
            raise

        submitted_urls = outcome.submitted_urls
        if submitted_urls:
            await self._notifier.send_email_notification(
                website_id=website.id,
                user_id=website.user_id,
                domain=website.domain,
                notification_type=NotificationType.JOB_COMPLETE,
                submitted_urls=submitted_urls,
            )

        _orchestrator_logger.info(
            "indexing_run_completed",
            extra={
                **log_context,
                "job_id": str(job.id),
                "total_pages": job.total_pages,
                "processed_pages": job.processed_pages,
                "failed_submissions": len(outcome.failed_urls),
                "new_pages": len(reconciliation.new),
                "removed_pages": len(reconciliation.removed),
            },
        )
        return IndexingRunResult(
            job_id=job.id,
            website_id=website_id,
            status=job.status,
            total_pages=job.total_pages,
            processed_pages=job.processed_pages,
            new_pages=len(reconciliation.new),
            removed_pages=len(reconciliation.removed),
            submitted_urls=tuple(submitted_urls),
        )

    async def _collect_pages(self, website: Website) -> list[SitemapPage]:
        discovered = await self._discovery.discover_sitemaps(website.domain)
        sitemap_urls = filter_sitemaps(discovered)
        if not sitemap_urls:
            raise ValidationError(
                f"No indexable sitemaps found for {website.domain}"
            )

        pages: list[SitemapPage] = []
        failures: list[str] = []
        for sitemap_url in sitemap_urls:
            try:
                pages.extend(await self._parser.fetch_and_parse(sitemap_url))
            except ValidationError as exc:
                failures.append(exc.message)
                _orchestrator_logger.warning(
                    "sitemap_skipped",
                    extra={
                        "website_id": str(website.id),
                        "sitemap_url": sitemap_url,
                        "error": exc.message,
                    },
                )

        if len(failures) == len(sitemap_urls):
            raise ValidationError(
                f"All sitemaps failed for {website.domain}: {failures[-1]}"
            )
        return pages

    async def _submit_pages(
        self,
        job: IndexingJob,
        website: Website,
        statuses: Sequence[PageIndexingStatus],
        reconciliation: ReconciliationResult,
        outcome: _SubmissionOutcome,
    ) -> None:
        for status in statuses:
            if status.indexing_status is IndexingStatus.SUBMITTED_AND_INDEXED:
                continue

            stored_page = reconciliation.stored_by_url.get(status.url)
            page_id = stored_page.id if stored_page is not None else None
            try:
                response = await self._submission.submit_url_for_indexing(
                    website.domain, status.url
                )
            except SubmissionError as exc:
                outcome.failed_urls.append(status.url)
                await self._store.create_indexing_job_detail(
                    job.id,
                    url=status.url,
                    page_id=page_id,
                    status=(
                        SubmissionStatus.RATE_LIMITED
                        if exc.rate_limited
                        else SubmissionStatus.FAILED
                    ),
                    response=exc.message,
                )
                continue
            except ValidationError as exc:
                outcome.failed_urls.append(status.url)
                await self._store.create_indexing_job_detail(
                    job.id,
                    url=status.url,
                    page_id=page_id,
                    status=SubmissionStatus.FAILED,
                    response=exc.message,
                )
                continue

            outcome.submitted_at[status.url] = utc_now()
            await self._store.create_indexing_job_detail(
                job.id,
                url=status.url,
                page_id=page_id,
                status=SubmissionStatus.SUBMITTED,
                response=response.model_dump_json(by_alias=True, exclude_none=True),
            )

    async def _record_failure(
        self,
        website: Website,
        job: IndexingJob | None,
        error: Exception,
        outcome: _SubmissionOutcome,
        log_context: dict[str, str],
    ) -> None:
        error_message = str(error) or error.__class__.__name__
        _orchestrator_logger.error(
            "indexing_run_failed",
            extra={
                **log_context,
                "job_id": str(job.id) if job is not None else None,
                "error_type": error.__class__.__name__,
                "error": error_message,
            },
        )
        try:
            if job is None:
                await self._store.create_indexing_job(
                    website.id,
                    total_pages=0,
                    status=IndexingJobStatus.FAILED,
                    error_message=error_message,
                )
            else:
                await self._store.update_indexing_job(
                    job.id,
                    status=IndexingJobStatus.FAILED,
                    processed_pages=len(outcome.submitted_at),
                    error_message=error_message,
                )
        except Exception as record_error:
            # The original failure is re-raised by the caller.
            _orchestrator_logger.error(
                "indexing_job_failure_not_recorded",
                extra={
                    **log_context,
                    "error_type": record_error.__class__.__name__,
                    "error": str(record_error),
                },
            )

        await self._notifier.send_email_notification(
            website_id=website.id,
            user_id=website.user_id,
            domain=website.domain,
            notification_type=NotificationType.JOB_FAILED,
            submitted_urls=outcome.submitted_urls,
            error_message=error_message,
        )


def _merge_status_checks(
    first: Sequence[PageIndexingStatus],
    second: Sequence[PageIndexingStatus],
) -> list[PageIndexingStatus]:
    """Prefer the re-check, except where it failed and the first check did not."""

    second_by_url = {status.url: status for status in second}
    merged: list[PageIndexingStatus] = []
    for status in first:
        recheck = second_by_url.get(status.url)
        if recheck is None or recheck.failed:
            merged.append(status)
        else:
            merged.append(recheck)
    return merged


def _build_page_upserts(
    reconciliation: ReconciliationResult,
    statuses: Sequence[PageIndexingStatus],
    outcome: _SubmissionOutcome,
) -> list[PageUpsert]:
    last_modified_by_url = {
        page.url: page.last_modified for page in reconciliation.pages_to_check
    }
    return [
        PageUpsert(
            url=status.url,
            indexing_status=status.indexing_status,
            last_crawled_at=status.last_crawled_at,
            last_submitted_at=outcome.submitted_at.get(status.url),
            last_modified_at=last_modified_by_url.get(status.url),
        )
        for status in statuses
    ]


__all__ = ["IndexingJobOrchestrator", "IndexingRunResult"]
