"""Indexing job audit routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from gsc_sitemap_sync.api.dependencies import get_indexing_store
from gsc_sitemap_sync.errors import NotFoundError
from gsc_sitemap_sync.models import IndexingJob
from gsc_sitemap_sync.schemas.indexing import IndexingJobWithDetailsRead
from gsc_sitemap_sync.services.indexing_store import SqlAlchemyIndexingStore

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.get(
    "/{job_id}",
    response_model=IndexingJobWithDetailsRead,
    status_code=status.HTTP_200_OK,
)
async def get_job(
    job_id: UUID,
    store: SqlAlchemyIndexingStore = Depends(get_indexing_store),
) -> IndexingJob:
    job = await store.get_indexing_job(job_id)
    if job is None:
        raise NotFoundError("Indexing job not found")
    return job


__all__ = ["router"]
