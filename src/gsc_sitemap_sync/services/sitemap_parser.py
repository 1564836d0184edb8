"""Sitemap XML parsing with recursive sitemap-index expansion."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
import logging
import re
from typing import Final, Protocol
from urllib.parse import urlsplit

from lxml import etree  # type: ignore[import-untyped]

from gsc_sitemap_sync.errors import ValidationError

DEFAULT_MAX_DEPTH: Final[int] = 5
INVALID_SITEMAP_MESSAGE: Final[str] = "Invalid sitemap format"

ALLOWED_SITEMAP_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"post-sitemap"),
    re.compile(r"page-sitemap"),
    re.compile(r"product-sitemap"),
    re.compile(r"^sitemap[-_]?(index|pages|posts|products)"),
    re.compile(r"^sitemap\.xml$"),
    re.compile(r"^wp-sitemap\.xml$"),
    re.compile(r"^wp-sitemap-posts-"),
)
DENIED_SITEMAP_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"category-sitemap"),
    re.compile(r"tag-sitemap"),
    re.compile(r"author-sitemap"),
    re.compile(r"archive"),
    re.compile(r"^sitemap[-_]?(category|tag|author)"),
    re.compile(r"^wp-sitemap-(taxonomies|users)-"),
)

_logger = logging.getLogger("gsc_sitemap_sync.sitemap.parser")


class _Fetcher(Protocol):
    async def fetch_bytes(self, url: str) -> bytes: ...


@dataclass(slots=True, frozen=True)
class SitemapPage:
    """A page URL listed in a sitemap."""

    url: str
    last_modified: datetime | None = None


@dataclass(slots=True)
class _ParseState:
    visited: set[str] = field(default_factory=set)


def _sitemap_name(url: str) -> str:
    path = urlsplit(url.strip()).path
    return path.rstrip("/").rsplit("/", maxsplit=1)[-1].lower()


def is_indexable_sitemap(url: str) -> bool:
    """Return whether a sitemap URL names a content sitemap worth fetching."""

    name = _sitemap_name(url)
    if any(pattern.search(name) for pattern in DENIED_SITEMAP_PATTERNS):
        return False
    return any(pattern.search(name) for pattern in ALLOWED_SITEMAP_PATTERNS)


def filter_sitemaps(urls: list[str]) -> list[str]:
    """Keep content sitemaps, dropping taxonomy and archive sitemaps."""

    return [url for url in urls if is_indexable_sitemap(url)]


def _normalize_tag_name(tag_name: str) -> str:
    if tag_name.startswith("{"):
        _, _, local_name = tag_name.partition("}")
        return local_name.lower()

    _, _, local_name = tag_name.rpartition(":")
    return (local_name or tag_name).lower()


def _child_text(parent: etree._Element, tag_name: str) -> str | None:
    for child in parent:
        if not isinstance(child.tag, str):
            continue
        if _normalize_tag_name(child.tag) != tag_name:
            continue
        if not child.text:
            return None
        return child.text.strip() or None
    return None


def _children_named(root: etree._Element, tag_name: str) -> list[etree._Element]:
    return [
        child
        for child in root
        if isinstance(child.tag, str) and _normalize_tag_name(child.tag) == tag_name
    ]


def parse_lastmod(lastmod: str | None) -> datetime | None:
    """Parse a W3C datetime or date into an aware UTC datetime."""

    if lastmod is None:
        return None

    candidate = lastmod.strip()
    if not candidate:
        return None
    if candidate.endswith("Z"):
        candidate = f"{candidate[:-1]}+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        try:
            parsed_date = date.fromisoformat(lastmod.strip())
        except ValueError:
            return None
        return datetime.combine(parsed_date, time.min, tzinfo=UTC)

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _parse_root(xml_content: bytes | str) -> etree._Element:
    # Bytes reach lxml untouched so the XML declaration decides the encoding.
    xml_bytes = (
        xml_content.encode("utf-8") if isinstance(xml_content, str) else xml_content
    )
    if not xml_bytes.strip():
        raise ValidationError(INVALID_SITEMAP_MESSAGE)

    parser = etree.XMLParser(resolve_entities=False, no_network=True, recover=False)
    try:
        root = etree.fromstring(xml_bytes.strip(), parser=parser)
    except etree.XMLSyntaxError as exc:
        raise ValidationError(INVALID_SITEMAP_MESSAGE) from exc
    if root is None or not isinstance(root.tag, str):
        raise ValidationError(INVALID_SITEMAP_MESSAGE)
    return root


class SitemapParser:
    """Parse sitemap documents into a flat list of pages."""

    def __init__(self, *, fetcher: _Fetcher, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        if max_depth < 0:
            raise ValueError("max_depth must be zero or greater")
        self._fetcher = fetcher
        self._max_depth = max_depth

    async def fetch_and_parse(self, url: str) -> list[SitemapPage]:
        content = await self._fetcher.fetch_bytes(url)
        return await self.parse_sitemap(content, source_url=url)

    async def parse_sitemap(
        self,
        xml_content: bytes | str,
        *,
        source_url: str | None = None,
    ) -> list[SitemapPage]:
        state = _ParseState()
        if source_url is not None:
            state.visited.add(source_url)
        return await self._parse(xml_content, depth=0, state=state)

    async def _parse(
        self,
        xml_content: bytes | str,
        *,
        depth: int,
        state: _ParseState,
    ) -> list[SitemapPage]:
        root = _parse_root(xml_content)
        root_name = _normalize_tag_name(root.tag)

        if root_name == "urlset":
            return self._parse_urlset(root)
        if root_name == "sitemapindex":
            return await self._parse_index(root, depth=depth, state=state)

        raise ValidationError(INVALID_SITEMAP_MESSAGE)

    @staticmethod
    def _parse_urlset(root: etree._Element) -> list[SitemapPage]:
        pages: list[SitemapPage] = []
        for url_element in _children_named(root, "url"):
            loc = _child_text(url_element, "loc")
            if loc is None:
                continue
            pages.append(
                SitemapPage(
                    url=loc,
                    last_modified=parse_lastmod(_child_text(url_element, "lastmod")),
                )
            )
        return pages

    async def _parse_index(
        self,
        root: etree._Element,
        *,
        depth: int,
        state: _ParseState,
    ) -> list[SitemapPage]:
        child_urls = [
            loc
            for element in _children_named(root, "sitemap")
            if (loc := _child_text(element, "loc")) is not None
        ]
        selected_urls = filter_sitemaps(child_urls)
        _logger.info(
            "sitemap_index_expanding",
            extra={
                "child_sitemaps": len(child_urls),
                "selected_sitemaps": len(selected_urls),
                "depth": depth,
            },
        )

        if depth >= self._max_depth:
            _logger.warning(
                "sitemap_index_depth_exceeded",
                extra={"depth": depth, "max_depth": self._max_depth},
            )
            if selected_urls:
                raise ValidationError(
                    f"Sitemap index nesting exceeds {self._max_depth} levels"
                )
            return []

        pages: list[SitemapPage] = []
        attempted = 0
        failures: list[str] = []
        for child_url in selected_urls:
            if child_url in state.visited:
                continue
            state.visited.add(child_url)
            attempted += 1

            try:
                content = await self._fetcher.fetch_bytes(child_url)
                pages.extend(await self._parse(content, depth=depth + 1, state=state))
            except ValidationError as exc:
                failures.append(exc.message)
                _logger.warning(
                    "child_sitemap_skipped",
                    extra={"sitemap_url": child_url, "error": exc.message},
                )

        # An index whose children all failed yields no URL set, not an empty one.
        if attempted and len(failures) == attempted:
            raise ValidationError(
                f"No child sitemap of the index could be read: {failures[-1]}"
            )
        return pages


__all__ = [
    "SitemapPage",
    "SitemapParser",
    "filter_sitemaps",
    "is_indexable_sitemap",
    "parse_lastmod",
]
