"""Job queue inspection route."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from gsc_sitemap_sync.api.dependencies import get_job_queue
from gsc_sitemap_sync.schemas.indexing import QueuedJobRead, QueueStatusRead
from gsc_sitemap_sync.services.job_queue import SerialJobQueue

router = APIRouter(prefix="/api/queue", tags=["queue"])


@router.get("", response_model=QueueStatusRead, status_code=status.HTTP_200_OK)
async def get_queue_status(
    queue: SerialJobQueue = Depends(get_job_queue),
) -> QueueStatusRead:
    current_job = queue.current_job
    return QueueStatusRead(
        is_processing=queue.is_processing,
        current_job=(
            QueuedJobRead.model_validate(current_job)
            if current_job is not None
            else None
        ),
        pending_jobs=[QueuedJobRead.model_validate(job) for job in queue.pending_jobs],
    )


__all__ = ["router"]
