"""Tests for sitemap filtering, urlset parsing and index recursion."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from gsc_sitemap_sync.errors import ValidationError
from gsc_sitemap_sync.services.sitemap_parser import (
    SitemapParser,
    filter_sitemaps,
    parse_lastmod,
)

NAMESPACE = 'xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"'


def _urlset(*entries: str) -> str:
    return f"<?xml version='1.0' encoding='UTF-8'?><urlset {NAMESPACE}>{''.join(entries)}</urlset>"


def _index(*locations: str) -> str:
    children = "".join(f"<sitemap><loc>{loc}</loc></sitemap>" for loc in locations)
    return f"<sitemapindex {NAMESPACE}>{children}</sitemapindex>"


class _FakeFetcher:
    def __init__(self, documents: dict[str, str | bytes]) -> None:
        self._documents = documents
        self.fetched: list[str] = []

    async def fetch_bytes(self, url: str) -> bytes:
        self.fetched.append(url)
        if url not in self._documents:
            raise ValidationError(f"Unable to fetch {url}: not found (HTTP 404)")
        document = self._documents[url]
        return document.encode("utf-8") if isinstance(document, str) else document


def test_filter_sitemaps_applies_allow_and_deny_lists() -> None:
    urls = [
        "https://example.com/post-sitemap.xml",
        "https://example.com/page-sitemap2.xml",
        "https://example.com/product-sitemap.xml",
        "https://example.com/sitemap_index.xml",
        "https://example.com/sitemap-posts-2024.xml",
        "https://example.com/category-sitemap.xml",
        "https://example.com/tag-sitemap.xml",
        "https://example.com/author-sitemap.xml",
        "https://example.com/sitemap-category.xml",
        "https://example.com/sitemap-posts-archive.xml",
        "https://example.com/wp-sitemap-posts-post-1.xml",
        "https://example.com/wp-sitemap-taxonomies-category-1.xml",
        "https://example.com/video-sitemap.xml",
    ]

    assert filter_sitemaps(urls) == [
        "https://example.com/post-sitemap.xml",
        "https://example.com/page-sitemap2.xml",
        "https://example.com/product-sitemap.xml",
        "https://example.com/sitemap_index.xml",
        "https://example.com/sitemap-posts-2024.xml",
        "https://example.com/wp-sitemap-posts-post-1.xml",
    ]


def test_filter_sitemaps_matches_on_last_path_segment_only() -> None:
    assert filter_sitemaps(["https://example.com/archive/post-sitemap.xml"]) == [
        "https://example.com/archive/post-sitemap.xml"
    ]
    assert filter_sitemaps(["https://example.com/Post-Sitemap.XML"]) == [
        "https://example.com/Post-Sitemap.XML"
    ]


def test_parse_lastmod_accepts_dates_and_datetimes() -> None:
    assert parse_lastmod("2024-05-01") == datetime(2024, 5, 1, tzinfo=UTC)
    assert parse_lastmod("2024-05-01T10:30:00Z") == datetime(
        2024, 5, 1, 10, 30, tzinfo=UTC
    )
    assert parse_lastmod("2024-05-01T12:30:00+02:00") == datetime(
        2024, 5, 1, 10, 30, tzinfo=UTC
    )
    assert parse_lastmod("yesterday") is None
    assert parse_lastmod(None) is None


@pytest.mark.asyncio
async def test_parse_sitemap_reads_urlset_entries() -> None:
    parser = SitemapParser(fetcher=_FakeFetcher({}))
    xml = _urlset(
        "<url><loc> https://example.com/a </loc><lastmod>2024-01-02</lastmod></url>",
        "<url><loc>https://example.com/b</loc></url>",
        "<url><lastmod>2024-01-02</lastmod></url>",
    )

    pages = await parser.parse_sitemap(xml)

    assert [page.url for page in pages] == ["https://example.com/a", "https://example.com/b"]
    assert pages[0].last_modified == datetime(2024, 1, 2, tzinfo=UTC)
    assert pages[1].last_modified is None


@pytest.mark.asyncio
async def test_parse_sitemap_expands_filtered_index_children() -> None:
    fetcher = _FakeFetcher(
        {
            "https://example.com/post-sitemap.xml": _urlset(
                "<url><loc>https://example.com/post-1</loc></url>"
            ),
            "https://example.com/page-sitemap.xml": _urlset(
                "<url><loc>https://example.com/about</loc></url>"
            ),
        }
    )
    parser = SitemapParser(fetcher=fetcher)
    xml = _index(
        "https://example.com/post-sitemap.xml",
        "https://example.com/category-sitemap.xml",
        "https://example.com/page-sitemap.xml",
    )

    pages = await parser.parse_sitemap(xml)

    assert [page.url for page in pages] == [
        "https://example.com/post-1",
        "https://example.com/about",
    ]
    assert "https://example.com/category-sitemap.xml" not in fetcher.fetched


@pytest.mark.asyncio
async def test_parse_sitemap_skips_failing_children() -> None:
    fetcher = _FakeFetcher(
        {
            "https://example.com/post-sitemap.xml": "<html>not a sitemap</html>",
            "https://example.com/page-sitemap.xml": _urlset(
                "<url><loc>https://example.com/about</loc></url>"
            ),
        }
    )
    parser = SitemapParser(fetcher=fetcher)
    xml = _index(
        "https://example.com/post-sitemap.xml",
        "https://example.com/product-sitemap.xml",
        "https://example.com/page-sitemap.xml",
    )

    pages = await parser.parse_sitemap(xml)

    assert [page.url for page in pages] == ["https://example.com/about"]


@pytest.mark.asyncio
async def test_parse_sitemap_terminates_on_cyclic_indexes() -> None:
    fetcher = _FakeFetcher(
        {
            "https://example.com/sitemap_index.xml": _index(
                "https://example.com/sitemap-pages.xml"
            ),
            "https://example.com/sitemap-pages.xml": _index(
                "https://example.com/sitemap_index.xml"
            ),
        }
    )
    parser = SitemapParser(fetcher=fetcher)

    pages = await parser.fetch_and_parse("https://example.com/sitemap_index.xml")

    assert pages == []
    assert fetcher.fetched == [
        "https://example.com/sitemap_index.xml",
        "https://example.com/sitemap-pages.xml",
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    ["", "<html><body>hello</body></html>", "<urlset><url>", "plain text"],
)
async def test_parse_sitemap_rejects_invalid_documents(content: str) -> None:
    parser = SitemapParser(fetcher=_FakeFetcher({}))

    with pytest.raises(ValidationError, match="Invalid sitemap format"):
        await parser.parse_sitemap(content)


@pytest.mark.asyncio
async def test_parse_sitemap_rejects_index_when_every_child_fails() -> None:
    fetcher = _FakeFetcher(
        {"https://example.com/page-sitemap.xml": "<html>blocked</html>"}
    )
    parser = SitemapParser(fetcher=fetcher)
    xml = _index(
        "https://example.com/post-sitemap.xml",
        "https://example.com/page-sitemap.xml",
    )

    with pytest.raises(ValidationError, match="No child sitemap of the index"):
        await parser.parse_sitemap(xml)

    assert fetcher.fetched == [
        "https://example.com/post-sitemap.xml",
        "https://example.com/page-sitemap.xml",
    ]


@pytest.mark.asyncio
async def test_parse_sitemap_accepts_index_without_indexable_children() -> None:
    parser = SitemapParser(fetcher=_FakeFetcher({}))

    pages = await parser.parse_sitemap(_index("https://example.com/tag-sitemap.xml"))

    assert pages == []


@pytest.mark.asyncio
async def test_fetch_and_parse_honours_declared_document_encoding() -> None:
    document = (
        "<?xml version='1.0' encoding='ISO-8859-1'?>"
        f"<urlset {NAMESPACE}><url><loc>https://example.com/café</loc></url></urlset>"
    ).encode("iso-8859-1")
    fetcher = _FakeFetcher({"https://example.com/sitemap.xml": document})
    parser = SitemapParser(fetcher=fetcher)

    pages = await parser.fetch_and_parse("https://example.com/sitemap.xml")

    assert [page.url for page in pages] == ["https://example.com/café"]
