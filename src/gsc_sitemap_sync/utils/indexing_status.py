"""Utility functions for indexing status derivation."""

from __future__ import annotations

from gsc_sitemap_sync.models import IndexingStatus


def derive_indexing_status_from_coverage_state(
    coverage_state: str | None,
    *,
    verdict: str | None = None,
) -> IndexingStatus:
    """Map a Search Console coverage state onto ``IndexingStatus``.

    Coverage states are free-form English strings such as
    ``"Submitted and indexed"`` or ``"Crawled - currently not indexed"``.
    A missing state falls back to the inspection verdict, where ``PASS`` means
    the page is indexed. Anything unrecognized is ``UNKNOWN``.
    """

    normalized = (coverage_state or "").strip().casefold()

    if normalized == "submitted and indexed":
        return IndexingStatus.SUBMITTED_AND_INDEXED
    if "noindex" in normalized:
        return IndexingStatus.EXCLUDED_NOINDEX
    if normalized.startswith("indexed"):
        # Includes "Indexed, though blocked by robots.txt".
        return IndexingStatus.INDEXED
    if "blocked by robots" in normalized:
        return IndexingStatus.BLOCKED_ROBOTS
    if "duplicate" in normalized or "canonical" in normalized:
        return IndexingStatus.DUPLICATE_WITHOUT_CANONICAL
    if normalized.startswith("crawled"):
        return IndexingStatus.CRAWLED_NOT_INDEXED
    if normalized.startswith("discovered"):
        return IndexingStatus.DISCOVERED_NOT_INDEXED
    if normalized.startswith("submitted"):
        return IndexingStatus.SUBMITTED_NOT_INDEXED

    if not normalized and (verdict or "").upper() == "PASS":
        return IndexingStatus.INDEXED
    return IndexingStatus.UNKNOWN


__all__ = ["derive_indexing_status_from_coverage_state"]
