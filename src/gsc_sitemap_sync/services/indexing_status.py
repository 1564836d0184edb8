"""Batched, rate-limited bulk indexing status lookups."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Final, Protocol
from uuid import UUID

from gsc_sitemap_sync.config import Settings
from gsc_sitemap_sync.models import IndexingStatus
from gsc_sitemap_sync.schemas.google import UrlInspectionResponse
from gsc_sitemap_sync.utils.indexing_status import (
    derive_indexing_status_from_coverage_state,
)

DEFAULT_BATCH_SIZE: Final[int] = 100
DEFAULT_BATCH_DELAY_SECONDS: Final[float] = 1.0

SleepCallable = Callable[[float], Awaitable[None]]

_logger = logging.getLogger("gsc_sitemap_sync.indexing_status")


class _URLInspector(Protocol):
    async def inspect_url(self, url: str, site_url: str) -> UrlInspectionResponse: ...


@dataclass(slots=True, frozen=True)
class PageIndexingStatus:
    """Indexing state of one URL at inspection time."""

    url: str
    indexing_status: IndexingStatus
    last_crawled_at: datetime | None = None
    coverage_state: str | None = None

    @property
    def failed(self) -> bool:
        return self.indexing_status is IndexingStatus.ERROR


class IndexingStatusClient:
    """Inspect URLs in fixed-size concurrent batches with a pause between them."""

    def __init__(
        self,
        *,
        inspector: _URLInspector,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
        sleep: SleepCallable = asyncio.sleep,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be greater than zero")
        if batch_delay_seconds < 0:
            raise ValueError("batch_delay_seconds must be zero or greater")

        self._inspector = inspector
        self._batch_size = batch_size
        self._batch_delay_seconds = batch_delay_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, settings: Settings, *, inspector: _URLInspector
    ) -> IndexingStatusClient:
        return cls(
            inspector=inspector,
            batch_size=settings.STATUS_CHECK_BATCH_SIZE,
            batch_delay_seconds=settings.STATUS_CHECK_BATCH_DELAY_SECONDS,
        )

    async def fetch_bulk_indexing_status(
        self,
        website_id: UUID,
        urls: Sequence[str],
        *,
        site_url: str,
    ) -> list[PageIndexingStatus]:
        """Return one status per URL, in input order."""

        results: list[PageIndexingStatus] = []
        for batch_start in range(0, len(urls), self._batch_size):
            if batch_start > 0 and self._batch_delay_seconds > 0:
                await self._sleep(self._batch_delay_seconds)

            batch = urls[batch_start : batch_start + self._batch_size]
            results.extend(
                await asyncio.gather(
                    *(self._inspect(website_id, url, site_url) for url in batch)
                )
            )

        failures = sum(1 for result in results if result.failed)
        _logger.info(
            "bulk_indexing_status_fetched",
            extra={
                "website_id": str(website_id),
                "url_count": len(results),
                "failed_count": failures,
            },
        )
        return results

    async def _inspect(
        self,
        website_id: UUID,
        url: str,
        site_url: str,
    ) -> PageIndexingStatus:
        try:
            response = await self._inspector.inspect_url(url, site_url)
        except Exception as exc:
            # One failing URL must not discard the rest of the batch.
            _logger.warning(
                "url_inspection_failed",
                extra={
                    "website_id": str(website_id),
                    "url": url,
                    "error_type": exc.__class__.__name__,
                    "error": str(exc),
                },
            )
            return PageIndexingStatus(url=url, indexing_status=IndexingStatus.ERROR)

        index_status = response.inspection_result.index_status_result
        return PageIndexingStatus(
            url=url,
            indexing_status=derive_indexing_status_from_coverage_state(
                index_status.coverage_state,
                verdict=index_status.verdict,
            ),
            last_crawled_at=index_status.last_crawl_time,
            coverage_state=index_status.coverage_state,
        )


__all__ = ["IndexingStatusClient", "PageIndexingStatus"]
