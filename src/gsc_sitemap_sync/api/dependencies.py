"""Request-scoped accessors for services created by the application lifespan."""

from __future__ import annotations

from typing import Any

from fastapi import Request

from gsc_sitemap_sync.config import Settings, get_settings
from gsc_sitemap_sync.services.daily_indexing import DailyIndexingService
from gsc_sitemap_sync.services.indexing_store import SqlAlchemyIndexingStore
from gsc_sitemap_sync.services.job_queue import SerialJobQueue
from gsc_sitemap_sync.services.submission import SubmissionEngine


def _require_state(request: Request, name: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise RuntimeError(f"Application service '{name}' is not initialized")
    return service


def get_app_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


def get_indexing_store(request: Request) -> SqlAlchemyIndexingStore:
    return _require_state(request, "indexing_store")


def get_job_queue(request: Request) -> SerialJobQueue:
    return _require_state(request, "job_queue")


def get_submission_engine(request: Request) -> SubmissionEngine:
    return _require_state(request, "submission_engine")


def get_daily_indexing_service(request: Request) -> DailyIndexingService:
    return _require_state(request, "daily_indexing_service")


__all__ = [
    "get_app_settings",
    "get_daily_indexing_service",
    "get_indexing_store",
    "get_job_queue",
    "get_submission_engine",
]
