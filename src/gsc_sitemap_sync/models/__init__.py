"""ORM model exports."""

from gsc_sitemap_sync.models.base import Base
from gsc_sitemap_sync.models.email_notification import (
    EmailNotification,
    NotificationType,
)
from gsc_sitemap_sync.models.indexing_job import (
    IndexingJob,
    IndexingJobDetail,
    IndexingJobStatus,
    SubmissionStatus,
)
from gsc_sitemap_sync.models.page import IndexingStatus, Page
from gsc_sitemap_sync.models.user import User
from gsc_sitemap_sync.models.website import Website

__all__ = [
    "Base",
    "EmailNotification",
    "IndexingJob",
    "IndexingJobDetail",
    "IndexingJobStatus",
    "IndexingStatus",
    "NotificationType",
    "Page",
    "SubmissionStatus",
    "User",
    "Website",
]
