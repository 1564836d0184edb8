"""Pydantic models for Google Search Console and Indexing API payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _GoogleModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class IndexStatusInspectionResult(_GoogleModel):
    """``inspectionResult.indexStatusResult`` of a URL inspection."""

    verdict: str | None = None
    coverage_state: str | None = None
    robots_txt_state: str | None = None
    indexing_state: str | None = None
    page_fetch_state: str | None = None
    last_crawl_time: datetime | None = None
    google_canonical: str | None = None
    user_canonical: str | None = None
    crawled_as: str | None = None
    sitemap: list[str] = []
    referring_urls: list[str] = []


class InspectionResult(_GoogleModel):
    """``inspectionResult`` of a URL inspection."""

    inspection_result_link: str | None = None
    index_status_result: IndexStatusInspectionResult = IndexStatusInspectionResult()


class UrlInspectionResponse(_GoogleModel):
    """Response body of ``urlInspection.index.inspect``."""

    inspection_result: InspectionResult = InspectionResult()


class UrlNotification(_GoogleModel):
    """A single URL notification as echoed by the Indexing API."""

    url: str | None = None
    type: str | None = None
    notify_time: datetime | None = None


class UrlNotificationMetadata(_GoogleModel):
    """``urlNotificationMetadata`` of an Indexing API response."""

    url: str | None = None
    latest_update: UrlNotification | None = None
    latest_remove: UrlNotification | None = None


class UrlNotificationResponse(_GoogleModel):
    """Response body of ``urlNotifications.publish``."""

    url_notification_metadata: UrlNotificationMetadata = UrlNotificationMetadata()


__all__ = [
    "IndexStatusInspectionResult",
    "InspectionResult",
    "UrlInspectionResponse",
    "UrlNotification",
    "UrlNotificationMetadata",
    "UrlNotificationResponse",
]
