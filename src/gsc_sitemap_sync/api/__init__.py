"""API package exports."""

from gsc_sitemap_sync.api.indexing import router as indexing_router
from gsc_sitemap_sync.api.jobs import router as jobs_router
from gsc_sitemap_sync.api.queue import router as queue_router
from gsc_sitemap_sync.api.websites import router as websites_router

__all__ = [
    "indexing_router",
    "jobs_router",
    "queue_router",
    "websites_router",
]
