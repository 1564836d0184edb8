"""Pydantic schemas for indexing job, page and queue resources."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, model_validator

from gsc_sitemap_sync.models import (
    IndexingJobStatus,
    IndexingStatus,
    SubmissionStatus,
)
from gsc_sitemap_sync.services.job_queue import JobOrigin


class IndexingJobRead(BaseModel):
    """Serialized indexing job without submission details."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    website_id: UUID
    status: IndexingJobStatus
    started_at: datetime
    completed_at: datetime | None
    total_pages: int
    processed_pages: int
    error_message: str | None


class IndexingJobDetailRead(BaseModel):
    """One submission attempt recorded for a job."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_id: UUID
    page_id: UUID | None
    url: str
    status: SubmissionStatus
    response: str | None
    submitted_at: datetime


class IndexingJobWithDetailsRead(IndexingJobRead):
    details: list[IndexingJobDetailRead]


class PageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    website_id: UUID
    url: str
    indexing_status: IndexingStatus
    last_crawled_at: datetime | None
    last_submitted_at: datetime | None
    last_modified_at: datetime | None


class PageListResponse(BaseModel):
    """One page of a website's tracked pages, or all of them."""

    pages: list[PageRead]
    total_count: int
    page: int | None = None
    page_size: int | None = None


class WebsiteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    domain: str
    site_url: str | None
    enabled: bool
    auto_indexing_enabled: bool
    last_sync_at: datetime | None
    last_auto_index_at: datetime | None
    created_at: datetime
    updated_at: datetime


class WebsiteToggleRequest(BaseModel):
    """Payload used to switch a website or its auto-indexing on or off."""

    enabled: bool | None = None
    auto_indexing_enabled: bool | None = None

    @model_validator(mode="after")
    def require_a_switch(self) -> WebsiteToggleRequest:
        if self.enabled is None and self.auto_indexing_enabled is None:
            raise ValueError(
                "Expected an \"enabled\" or \"auto_indexing_enabled\" boolean field"
            )
        return self


class AutoIndexingToggleRequest(BaseModel):
    enabled: bool


class QueuedJobRead(BaseModel):
    """A website waiting for, or undergoing, synchronization."""

    model_config = ConfigDict(from_attributes=True)

    website_id: UUID
    origin: JobOrigin
    enqueued_at: datetime


class QueueStatusRead(BaseModel):
    is_processing: bool
    current_job: QueuedJobRead | None
    pending_jobs: list[QueuedJobRead]


class DailyIndexingResponse(BaseModel):
    """Websites enqueued by the daily trigger."""

    enqueued_count: int
    website_ids: list[UUID]


class ManualSubmissionResponse(BaseModel):
    page: PageRead
    notification_url: str
    notify_time: datetime | None = None


class WebsiteToggleResponse(BaseModel):
    website: WebsiteRead
    message: str
    queued_job: QueuedJobRead | None = None


__all__ = [
    "AutoIndexingToggleRequest",
    "DailyIndexingResponse",
    "IndexingJobDetailRead",
    "IndexingJobRead",
    "IndexingJobWithDetailsRead",
    "ManualSubmissionResponse",
    "PageListResponse",
    "PageRead",
    "QueueStatusRead",
    "QueuedJobRead",
    "WebsiteRead",
    "WebsiteToggleRequest",
    "WebsiteToggleResponse",
]
