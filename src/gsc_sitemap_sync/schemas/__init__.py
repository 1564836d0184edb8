"""Schema exports for API serialization and Google API payloads."""

from gsc_sitemap_sync.schemas.google import (
    IndexStatusInspectionResult,
    InspectionResult,
    UrlInspectionResponse,
    UrlNotification,
    UrlNotificationMetadata,
    UrlNotificationResponse,
)

__all__ = [
    "IndexStatusInspectionResult",
    "InspectionResult",
    "UrlInspectionResponse",
    "UrlNotification",
    "UrlNotificationMetadata",
    "UrlNotificationResponse",
]
