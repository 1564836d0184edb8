"""Tests for the API-key protected daily indexing trigger."""

from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi import FastAPI
from httpx import AsyncClient

from gsc_sitemap_sync.config import Settings
from gsc_sitemap_sync.services.daily_indexing import DailyIndexingResult

DAILY_INDEXING_API_KEY = "daily-trigger-key"


class _FakeDailyIndexingService:
    def __init__(self) -> None:
        self.website_ids = (uuid4(), uuid4())
        self.calls = 0

    async def enqueue_due_websites(self) -> DailyIndexingResult:
        self.calls += 1
        return DailyIndexingResult(website_ids=self.website_ids)


@pytest.mark.asyncio
async def test_daily_indexing_enqueues_due_websites(
    api_app: FastAPI,
    api_client: AsyncClient,
) -> None:
    service = _FakeDailyIndexingService()
    api_app.state.daily_indexing_service = service

    response = await api_client.post(
        "/api/indexing/daily", headers={"X-API-Key": DAILY_INDEXING_API_KEY}
    )

    assert response.status_code == 202
    assert response.json() == {
        "enqueued_count": 2,
        "website_ids": [str(website_id) for website_id in service.website_ids],
    }
    assert service.calls == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("headers", [{}, {"X-API-Key": "wrong-key"}])
async def test_daily_indexing_rejects_missing_or_wrong_key(
    api_app: FastAPI,
    api_client: AsyncClient,
    headers: dict[str, str],
) -> None:
    service = _FakeDailyIndexingService()
    api_app.state.daily_indexing_service = service

    response = await api_client.post("/api/indexing/daily", headers=headers)

    assert response.status_code == 403
    assert response.json() == {
        "status": "error",
        "message": "Invalid API key",
        "error_code": "AUTHORIZATION_ERROR",
    }
    assert service.calls == 0


@pytest.mark.asyncio
async def test_daily_indexing_is_unavailable_without_configured_key(
    api_app: FastAPI,
    api_client: AsyncClient,
) -> None:
    api_app.state.settings = Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        _env_file=None,  # type: ignore[call-arg]
    )
    api_app.state.daily_indexing_service = _FakeDailyIndexingService()

    response = await api_client.post(
        "/api/indexing/daily", headers={"X-API-Key": DAILY_INDEXING_API_KEY}
    )

    assert response.status_code == 503
    assert response.json()["error_code"] == "NOT_CONFIGURED"
