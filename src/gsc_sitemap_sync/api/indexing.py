"""Daily auto-indexing trigger for external cron callers."""

from __future__ import annotations

from secrets import compare_digest

from fastapi import APIRouter, Depends, Header, status

from gsc_sitemap_sync.api.dependencies import (
    get_app_settings,
    get_daily_indexing_service,
)
from gsc_sitemap_sync.config import Settings
from gsc_sitemap_sync.errors import AppError, AuthorizationError
from gsc_sitemap_sync.schemas.indexing import DailyIndexingResponse
from gsc_sitemap_sync.services.daily_indexing import DailyIndexingService

router = APIRouter(prefix="/api/indexing", tags=["indexing"])


async def _require_daily_indexing_key(
    x_api_key: str | None = Header(default=None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    if settings.DAILY_INDEXING_API_KEY is None:
        raise AppError(
            "Daily indexing trigger is not configured",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="NOT_CONFIGURED",
        )

    expected_key = settings.DAILY_INDEXING_API_KEY.get_secret_value()
    if x_api_key is not None and compare_digest(x_api_key, expected_key):
        return

    raise AuthorizationError("Invalid API key")


@router.post(
    "/daily",
    response_model=DailyIndexingResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(_require_daily_indexing_key)],
)
async def trigger_daily_indexing(
    service: DailyIndexingService = Depends(get_daily_indexing_service),
) -> DailyIndexingResponse:
    result = await service.enqueue_due_websites()
    return DailyIndexingResponse(
        enqueued_count=result.enqueued_count,
        website_ids=list(result.website_ids),
    )


__all__ = ["router"]
