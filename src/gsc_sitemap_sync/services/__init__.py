"""Service layer for GSC Sitemap Sync."""

from gsc_sitemap_sync.services.daily_indexing import (
    DailyIndexingResult,
    DailyIndexingService,
)
from gsc_sitemap_sync.services.http_fetcher import HttpFetcher
from gsc_sitemap_sync.services.indexing_status import (
    IndexingStatusClient,
    PageIndexingStatus,
)
from gsc_sitemap_sync.services.indexing_store import (
    IndexingStore,
    PageUpsert,
    SqlAlchemyIndexingStore,
)
from gsc_sitemap_sync.services.job_queue import JobOrigin, QueuedJob, SerialJobQueue
from gsc_sitemap_sync.services.job_recovery import JobRecoveryService
from gsc_sitemap_sync.services.notifications import (
    EmailDeliveryError,
    EmailNotificationService,
    SmtpMailer,
    render_indexing_email,
)
from gsc_sitemap_sync.services.orchestrator import (
    IndexingJobOrchestrator,
    IndexingRunResult,
)
from gsc_sitemap_sync.services.reconciliation import (
    ReconciliationEngine,
    ReconciliationResult,
    partition_pages,
)
from gsc_sitemap_sync.services.scheduler import SchedulerService
from gsc_sitemap_sync.services.sitemap_discovery import (
    SitemapDiscoveryService,
    clean_domain,
    extract_sitemap_urls,
)
from gsc_sitemap_sync.services.sitemap_parser import (
    SitemapPage,
    SitemapParser,
    filter_sitemaps,
)
from gsc_sitemap_sync.services.submission import SubmissionEngine, SubmissionError

__all__ = [
    "DailyIndexingResult",
    "DailyIndexingService",
    "EmailDeliveryError",
    "EmailNotificationService",
    "HttpFetcher",
    "IndexingJobOrchestrator",
    "IndexingRunResult",
    "IndexingStatusClient",
    "IndexingStore",
    "JobOrigin",
    "JobRecoveryService",
    "PageIndexingStatus",
    "PageUpsert",
    "QueuedJob",
    "ReconciliationEngine",
    "ReconciliationResult",
    "SchedulerService",
    "SerialJobQueue",
    "SitemapDiscoveryService",
    "SitemapPage",
    "SitemapParser",
    "SmtpMailer",
    "SqlAlchemyIndexingStore",
    "SubmissionEngine",
    "SubmissionError",
    "clean_domain",
    "extract_sitemap_urls",
    "filter_sitemaps",
    "partition_pages",
    "render_indexing_email",
]
