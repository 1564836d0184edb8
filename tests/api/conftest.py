"""Application and HTTP client fixtures for route tests."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from gsc_sitemap_sync.config import Settings
from gsc_sitemap_sync.main import create_app
from gsc_sitemap_sync.services.indexing_store import SqlAlchemyIndexingStore

DAILY_INDEXING_API_KEY = "daily-trigger-key"


@pytest.fixture
def api_app(database: Any) -> FastAPI:
    """The real application with lifespan services replaced per test."""

    app = create_app()
    app.state.settings = Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        DAILY_INDEXING_API_KEY=DAILY_INDEXING_API_KEY,
        MANUAL_RESUBMIT_COOLDOWN_HOURS=24,
        _env_file=None,  # type: ignore[call-arg]
    )
    app.state.indexing_store = SqlAlchemyIndexingStore(
        session_factory=database.session_scope
    )
    return app


@pytest_asyncio.fixture
async def api_client(api_app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=api_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
