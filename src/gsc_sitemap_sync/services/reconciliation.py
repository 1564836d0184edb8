"""Diff freshly discovered sitemap pages against stored pages."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import logging
from typing import Protocol
from uuid import UUID

from gsc_sitemap_sync.models import Page
from gsc_sitemap_sync.services.sitemap_parser import SitemapPage

_logger = logging.getLogger("gsc_sitemap_sync.reconciliation")


class _PageSource(Protocol):
    async def get_pages_by_website_id(
        self, website_id: UUID, *, all: bool = True
    ) -> list[Page]: ...


@dataclass(slots=True, frozen=True)
class ReconciliationResult:
    """Three-way partition of discovered versus stored pages."""

    new: list[SitemapPage]
    removed: list[Page]
    unchanged: list[SitemapPage]
    stored_by_url: dict[str, Page] = field(default_factory=dict)

    @property
    def pages_to_check(self) -> list[SitemapPage]:
        return [*self.new, *self.unchanged]

    @property
    def urls_to_check(self) -> list[str]:
        return [page.url for page in self.pages_to_check]

    @property
    def removed_page_ids(self) -> list[UUID]:
        return [page.id for page in self.removed]


def partition_pages(
    discovered: Sequence[SitemapPage],
    stored: Sequence[Page],
) -> ReconciliationResult:
    """Split pages into new, removed and unchanged sets keyed by URL."""

    stored_by_url = {page.url: page for page in stored}
    seen_urls: set[str] = set()
    new: list[SitemapPage] = []
    unchanged: list[SitemapPage] = []

    for page in discovered:
        if page.url in seen_urls:
            continue
        seen_urls.add(page.url)
        if page.url in stored_by_url:
            unchanged.append(page)
        else:
            new.append(page)

    removed = [page for page in stored if page.url not in seen_urls]
    return ReconciliationResult(
        new=new,
        removed=removed,
        unchanged=unchanged,
        stored_by_url=stored_by_url,
    )


class ReconciliationEngine:
    """Load the stored page set for a website and partition against it."""

    def __init__(self, *, store: _PageSource) -> None:
        self._store = store

    async def reconcile(
        self,
        website_id: UUID,
        discovered: Sequence[SitemapPage],
    ) -> ReconciliationResult:
        stored = await self._store.get_pages_by_website_id(website_id, all=True)
        result = partition_pages(discovered, stored)
        _logger.info(
            "reconciliation_completed",
            extra={
                "website_id": str(website_id),
                "new_pages": len(result.new),
                "removed_pages": len(result.removed),
                "unchanged_pages": len(result.unchanged),
            },
        )
        return result


__all__ = ["ReconciliationEngine", "ReconciliationResult", "partition_pages"]
