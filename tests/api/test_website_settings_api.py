"""Tests for website page listing and the enable/auto-indexing switches."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import timedelta
from uuid import UUID, uuid4

import pytest
from fastapi import FastAPI
from httpx import AsyncClient

from gsc_sitemap_sync.models import IndexingStatus, Website
from gsc_sitemap_sync.services.indexing_store import PageUpsert
from gsc_sitemap_sync.services.job_queue import JobOrigin, QueuedJob
from gsc_sitemap_sync.utils.timestamps import utc_now

WebsiteFactory = Callable[..., Awaitable[Website]]


class _RecordingQueue:
    def __init__(self) -> None:
        self.jobs: list[QueuedJob] = []

    def add_job(
        self, website_id: UUID, origin: JobOrigin = JobOrigin.INTERACTIVE
    ) -> QueuedJob:
        job = QueuedJob(website_id=website_id, origin=origin)
        self.jobs.append(job)
        return job


@pytest.fixture
def queue(api_app: FastAPI) -> _RecordingQueue:
    recording_queue = _RecordingQueue()
    api_app.state.job_queue = recording_queue
    return recording_queue


async def _seed_pages(api_app: FastAPI, website: Website, count: int) -> None:
    await api_app.state.indexing_store.bulk_upsert_pages(
        website.id,
        [
            PageUpsert(
                url=f"https://example.com/page-{index:02d}",
                indexing_status=IndexingStatus.UNKNOWN,
            )
            for index in range(count)
        ],
    )


@pytest.mark.asyncio
async def test_list_website_pages_paginates_by_url(
    api_app: FastAPI,
    api_client: AsyncClient,
    create_website: WebsiteFactory,
) -> None:
    website = await create_website()
    await _seed_pages(api_app, website, 5)

    response = await api_client.get(
        f"/api/websites/{website.id}/pages", params={"page": 2, "page_size": 2}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total_count"] == 5
    assert body["page"] == 2
    assert body["page_size"] == 2
    assert [page["url"] for page in body["pages"]] == [
        "https://example.com/page-02",
        "https://example.com/page-03",
    ]


@pytest.mark.asyncio
async def test_list_website_pages_returns_everything_when_all_is_set(
    api_app: FastAPI,
    api_client: AsyncClient,
    create_website: WebsiteFactory,
) -> None:
    website = await create_website()
    await _seed_pages(api_app, website, 3)

    response = await api_client.get(
        f"/api/websites/{website.id}/pages", params={"all": "true", "page_size": 1}
    )

    assert response.status_code == 200
    body = response.json()
    assert len(body["pages"]) == 3
    assert body["total_count"] == 3
    assert body["page"] is None
    assert body["page_size"] is None


@pytest.mark.asyncio
async def test_list_website_pages_rejects_unknown_website(
    api_client: AsyncClient,
) -> None:
    response = await api_client.get(f"/api/websites/{uuid4()}/pages")

    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_toggle_website_queues_sync_for_never_synced_site(
    api_client: AsyncClient,
    create_website: WebsiteFactory,
    queue: _RecordingQueue,
) -> None:
    website = await create_website(enabled=False, auto_indexing_enabled=True)

    response = await api_client.post(
        f"/api/websites/{website.id}/toggle", json={"enabled": True}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["website"]["enabled"] is True
    assert body["website"]["auto_indexing_enabled"] is True
    assert body["message"] == "Website enabled. Synchronization queued."
    assert body["queued_job"]["website_id"] == str(website.id)
    assert [(job.website_id, job.origin) for job in queue.jobs] == [
        (website.id, JobOrigin.INTERACTIVE)
    ]


@pytest.mark.asyncio
async def test_toggle_website_skips_sync_for_recently_synced_site(
    api_client: AsyncClient,
    create_website: WebsiteFactory,
    queue: _RecordingQueue,
) -> None:
    website = await create_website(
        auto_indexing_enabled=False, last_sync_at=utc_now() - timedelta(hours=1)
    )

    response = await api_client.post(
        f"/api/websites/{website.id}/toggle", json={"auto_indexing_enabled": True}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Website enabled. Auto-indexing enabled."
    assert body["queued_job"] is None
    assert queue.jobs == []


@pytest.mark.asyncio
async def test_toggle_website_disable_never_queues(
    api_client: AsyncClient,
    create_website: WebsiteFactory,
    queue: _RecordingQueue,
) -> None:
    website = await create_website(auto_indexing_enabled=True)

    response = await api_client.post(
        f"/api/websites/{website.id}/toggle", json={"enabled": False}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["website"]["enabled"] is False
    assert body["website"]["auto_indexing_enabled"] is True
    assert body["message"] == "Website disabled."
    assert queue.jobs == []


@pytest.mark.asyncio
async def test_toggle_website_requires_a_switch(
    api_client: AsyncClient,
    create_website: WebsiteFactory,
    queue: _RecordingQueue,
) -> None:
    website = await create_website()

    response = await api_client.post(f"/api/websites/{website.id}/toggle", json={})

    assert response.status_code == 422
    assert queue.jobs == []


@pytest.mark.asyncio
async def test_toggle_website_rejects_unknown_website(
    api_client: AsyncClient,
    queue: _RecordingQueue,
) -> None:
    response = await api_client.post(
        f"/api/websites/{uuid4()}/toggle", json={"enabled": True}
    )

    assert response.status_code == 404
    assert queue.jobs == []


@pytest.mark.asyncio
async def test_toggle_auto_indexing_enables_and_queues_stale_site(
    api_client: AsyncClient,
    create_website: WebsiteFactory,
    queue: _RecordingQueue,
) -> None:
    website = await create_website(last_sync_at=utc_now() - timedelta(hours=30))

    response = await api_client.post(
        f"/api/websites/{website.id}/toggle-indexing", json={"enabled": True}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["website"]["auto_indexing_enabled"] is True
    assert body["message"] == "Auto-indexing enabled. Synchronization queued."
    assert len(queue.jobs) == 1


@pytest.mark.asyncio
async def test_toggle_auto_indexing_leaves_disabled_site_unqueued(
    api_client: AsyncClient,
    create_website: WebsiteFactory,
    queue: _RecordingQueue,
) -> None:
    website = await create_website(enabled=False)

    response = await api_client.post(
        f"/api/websites/{website.id}/toggle-indexing", json={"enabled": True}
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Auto-indexing enabled."
    assert queue.jobs == []


@pytest.mark.asyncio
async def test_toggle_auto_indexing_disables(
    api_client: AsyncClient,
    create_website: WebsiteFactory,
    queue: _RecordingQueue,
) -> None:
    website = await create_website(auto_indexing_enabled=True)

    response = await api_client.post(
        f"/api/websites/{website.id}/toggle-indexing", json={"enabled": False}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["website"]["auto_indexing_enabled"] is False
    assert body["message"] == "Auto-indexing disabled."
    assert queue.jobs == []
