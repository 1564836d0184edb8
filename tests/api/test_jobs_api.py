"""Tests for the indexing job audit route."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from uuid import uuid4

import pytest
from fastapi import FastAPI
from httpx import AsyncClient

from gsc_sitemap_sync.models import IndexingJobStatus, SubmissionStatus, Website

WebsiteFactory = Callable[..., Awaitable[Website]]


@pytest.mark.asyncio
async def test_get_job_includes_submission_details(
    api_app: FastAPI,
    api_client: AsyncClient,
    create_website: WebsiteFactory,
) -> None:
    website = await create_website()
    store = api_app.state.indexing_store
    job = await store.create_indexing_job(website.id, total_pages=2)
    await store.create_indexing_job_detail(
        job.id,
        url="https://example.com/a",
        page_id=None,
        status=SubmissionStatus.SUBMITTED,
        response='{"urlNotificationMetadata":{"url":"https://example.com/a"}}',
    )
    await store.create_indexing_job_detail(
        job.id,
        url="https://example.com/b",
        page_id=None,
        status=SubmissionStatus.FAILED,
        response="Backend error",
    )
    await store.update_indexing_job(
        job.id, status=IndexingJobStatus.COMPLETED, processed_pages=1
    )

    response = await api_client.get(f"/api/jobs/{job.id}")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == str(job.id)
    assert body["status"] == "completed"
    assert body["total_pages"] == 2
    assert body["processed_pages"] == 1
    assert [(detail["url"], detail["status"]) for detail in body["details"]] == [
        ("https://example.com/a", "submitted"),
        ("https://example.com/b", "failed"),
    ]


@pytest.mark.asyncio
async def test_get_job_returns_404_for_unknown_job(api_client: AsyncClient) -> None:
    response = await api_client.get(f"/api/jobs/{uuid4()}")

    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"
