"""Locate a website's sitemaps through robots.txt or conventional paths."""

from __future__ import annotations

import logging
from typing import Final, Protocol
from urllib.parse import urlsplit

from gsc_sitemap_sync.errors import ValidationError

SITEMAP_DIRECTIVE: Final[str] = "sitemap:"
PROBE_PATHS: Final[tuple[str, ...]] = (
    "/sitemap_index.xml",
    "/sitemap.xml",
    "/wp-sitemap.xml",
    "/sitemap/sitemap-index.xml",
    "/sitemap-index.xml",
)
PROBE_ACCEPT_VARIANTS: Final[tuple[str, ...]] = ("application/xml", "text/xml")

_logger = logging.getLogger("gsc_sitemap_sync.sitemap.discovery")


class _Fetcher(Protocol):
    async def fetch_url(self, url: str) -> str: ...

    async def probe_url(self, url: str, *, accept: str = ...) -> int | None: ...


def clean_domain(domain: str) -> str:
    """Normalize a GSC property or URL to a bare host name."""

    cleaned = domain.strip()
    if cleaned.lower().startswith("sc-domain:"):
        cleaned = cleaned[len("sc-domain:") :]

    if "://" in cleaned:
        cleaned = urlsplit(cleaned).hostname or ""
    else:
        cleaned = cleaned.split("/", maxsplit=1)[0].split(":", maxsplit=1)[0]

    cleaned = cleaned.strip().lower().rstrip(".")
    if cleaned.startswith("www."):
        cleaned = cleaned[len("www.") :]
    return cleaned


def extract_sitemap_urls(robots_txt: str) -> list[str]:
    """Return the values of all ``Sitemap:`` directives in order."""

    sitemap_urls: list[str] = []
    for line in robots_txt.splitlines():
        stripped_line = line.strip()
        if not stripped_line.lower().startswith(SITEMAP_DIRECTIVE):
            continue
        value = stripped_line[len(SITEMAP_DIRECTIVE) :].strip()
        if value:
            sitemap_urls.append(value)
    return sitemap_urls


class SitemapDiscoveryService:
    """Discover sitemap URLs for a domain."""

    def __init__(self, *, fetcher: _Fetcher) -> None:
        self._fetcher = fetcher

    async def discover_sitemaps(self, domain: str) -> list[str]:
        host = clean_domain(domain)
        if not host:
            raise ValidationError(f"Invalid domain: {domain!r}")

        robots_url = f"https://{host}/robots.txt"
        try:
            robots_txt = await self._fetcher.fetch_url(robots_url)
        except ValidationError as robots_error:
            _logger.warning(
                "robots_txt_unavailable",
                extra={"domain": host, "error": robots_error.message},
            )
            try:
                return [await self.find_accessible_sitemap(host)]
            except ValidationError as fallback_error:
                # The robots.txt failure carries the blocking diagnosis.
                raise ValidationError(
                    f"{fallback_error.message}. {robots_error.message}"
                ) from robots_error

        sitemap_urls = extract_sitemap_urls(robots_txt)
        if not sitemap_urls:
            _logger.info("robots_txt_without_sitemaps", extra={"domain": host})
            return [f"https://{host}/sitemap.xml"]

        _logger.info(
            "sitemaps_discovered",
            extra={"domain": host, "sitemap_count": len(sitemap_urls)},
        )
        return sitemap_urls

    async def find_accessible_sitemap(self, domain: str) -> str:
        host = clean_domain(domain)
        for path in PROBE_PATHS:
            candidate_url = f"https://{host}{path}"
            for accept in PROBE_ACCEPT_VARIANTS:
                status_code = await self._fetcher.probe_url(candidate_url, accept=accept)
                if status_code == 200:
                    _logger.info(
                        "sitemap_probe_succeeded",
                        extra={"domain": host, "sitemap_url": candidate_url},
                    )
                    return candidate_url

        raise ValidationError(f"No accessible sitemap found for {host}")


__all__ = [
    "PROBE_PATHS",
    "SitemapDiscoveryService",
    "clean_domain",
    "extract_sitemap_urls",
]
