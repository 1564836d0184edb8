"""Application entry point for GSC Sitemap Sync."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

from gsc_sitemap_sync import __version__
from gsc_sitemap_sync.api import (
    indexing_router,
    jobs_router,
    queue_router,
    websites_router,
)
from gsc_sitemap_sync.config import Settings, get_settings
from gsc_sitemap_sync.database import (
    close_database,
    initialize_database,
    run_startup_database_health_check,
)
from gsc_sitemap_sync.errors import AppError
from gsc_sitemap_sync.services.daily_indexing import (
    DailyIndexingService,
    set_daily_indexing_service,
)
from gsc_sitemap_sync.services.google_indexing_client import GoogleIndexingClient
from gsc_sitemap_sync.services.google_url_inspection_client import (
    GoogleURLInspectionClient,
)
from gsc_sitemap_sync.services.http_fetcher import HttpFetcher
from gsc_sitemap_sync.services.indexing_status import IndexingStatusClient
from gsc_sitemap_sync.services.indexing_store import SqlAlchemyIndexingStore
from gsc_sitemap_sync.services.job_queue import SerialJobQueue
from gsc_sitemap_sync.services.job_recovery import JobRecoveryService
from gsc_sitemap_sync.services.notifications import (
    EmailNotificationService,
    SmtpMailer,
)
from gsc_sitemap_sync.services.orchestrator import IndexingJobOrchestrator
from gsc_sitemap_sync.services.scheduler import SchedulerService
from gsc_sitemap_sync.services.sitemap_discovery import SitemapDiscoveryService
from gsc_sitemap_sync.services.sitemap_parser import SitemapParser
from gsc_sitemap_sync.services.submission import SubmissionEngine
from gsc_sitemap_sync.utils.logging import (
    add_request_logging_middleware,
    setup_logging,
)

__all__ = ["app", "build_pipeline", "create_app", "main"]

DEFAULT_SERVICE_ACCOUNT_FILE = Path("service-account.json")

_lifecycle_logger = logging.getLogger("gsc_sitemap_sync.lifecycle")


@dataclass(slots=True)
class Pipeline:
    """Long-lived services shared by the API and the scheduler."""

    store: SqlAlchemyIndexingStore
    submission_engine: SubmissionEngine
    orchestrator: IndexingJobOrchestrator
    job_queue: SerialJobQueue


def build_pipeline(
    settings: Settings,
    *,
    store: SqlAlchemyIndexingStore | None = None,
) -> Pipeline:
    store = store or SqlAlchemyIndexingStore()
    credentials_path = settings.GOOGLE_SERVICE_ACCOUNT_FILE
    if credentials_path is None:
        credentials_path = DEFAULT_SERVICE_ACCOUNT_FILE
        _lifecycle_logger.warning(
            "google_service_account_not_configured",
            extra={"credentials_path": str(credentials_path)},
        )

    fetcher = HttpFetcher.from_settings(settings)
    submission_engine = SubmissionEngine(
        publisher=GoogleIndexingClient(credentials_path=credentials_path)
    )
    orchestrator = IndexingJobOrchestrator(
        store=store,
        discovery=SitemapDiscoveryService(fetcher=fetcher),
        parser=SitemapParser(fetcher=fetcher),
        status_client=IndexingStatusClient.from_settings(
            settings,
            inspector=GoogleURLInspectionClient(credentials_path=credentials_path),
        ),
        submission=submission_engine,
        notifier=EmailNotificationService(
            store=store,
            mailer=SmtpMailer.from_settings(settings),
        ),
        settle_delay_seconds=settings.SUBMISSION_SETTLE_DELAY_SECONDS,
    )
    return Pipeline(
        store=store,
        submission_engine=submission_engine,
        orchestrator=orchestrator,
        job_queue=SerialJobQueue(processor=orchestrator),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()

    await initialize_database()
    await run_startup_database_health_check()

    recovery_service = JobRecoveryService()
    startup_recovery = await recovery_service.handle_startup_recovery()

    pipeline = build_pipeline(settings)
    scheduler_service = SchedulerService.from_settings(settings)
    daily_indexing_service = DailyIndexingService(
        store=pipeline.store,
        queue=pipeline.job_queue,
        recovery=recovery_service,
        scheduler=scheduler_service,
        settings=settings,
    )
    set_daily_indexing_service(daily_indexing_service)

    app.state.indexing_store = pipeline.store
    app.state.submission_engine = pipeline.submission_engine
    app.state.job_queue = pipeline.job_queue
    app.state.scheduler_service = scheduler_service
    app.state.daily_indexing_service = daily_indexing_service

    pipeline.job_queue.start()
    daily_indexing_service.register_jobs()
    await scheduler_service.start()
    _lifecycle_logger.info(
        "application_started",
        extra={
            "version": __version__,
            "recovered_jobs": startup_recovery.recovered_count,
            "scheduler_enabled": scheduler_service.enabled,
        },
    )

    try:
        yield
    finally:
        await scheduler_service.shutdown()
        await pipeline.job_queue.stop()
        set_daily_indexing_service(None)
        await close_database()
        _lifecycle_logger.info("application_stopped")


async def _handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        _lifecycle_logger.error(
            "request_failed",
            extra={
                "path": request.url.path,
                "error_code": exc.error_code,
                "error": exc.message,
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "status": "error",
            "message": exc.message,
            "error_code": exc.error_code,
        },
    )


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings)

    app = FastAPI(title="GSC Sitemap Sync", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    add_request_logging_middleware(app)
    app.add_exception_handler(AppError, _handle_app_error)  # type: ignore[arg-type]
    app.include_router(websites_router)
    app.include_router(jobs_router)
    app.include_router(indexing_router)
    app.include_router(queue_router)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "gsc_sitemap_sync.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=False,
    )
