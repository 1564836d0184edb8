"""Outbound fetching of robots.txt and sitemap documents.

Many hosts sit behind bot protection that rejects unknown clients, so every
fetch rotates through a fixed list of user agents, replays challenge cookies
once, and for sitemap URLs falls back to the conventional sitemap locations
on the same origin before giving up with a diagnostic error.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import dataclass, field
import gzip
import logging
from typing import Final
from urllib.parse import urlsplit

import httpx

from gsc_sitemap_sync.config import Settings
from gsc_sitemap_sync.errors import ValidationError

DEFAULT_TIMEOUT_SECONDS: Final[float] = 10.0
DEFAULT_AGENT_DELAY_SECONDS: Final[float] = 0.75
DEFAULT_MAX_REDIRECTS: Final[int] = 5
BODY_SAMPLE_LENGTH: Final[int] = 2048
GZIP_MAGIC_BYTES: Final[bytes] = b"\x1f\x8b"

DEFAULT_USER_AGENTS: Final[tuple[str, ...]] = (
    "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)",
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/17.4 Safari/605.1.15"
    ),
    "Mozilla/5.0 (X11; Linux x86_64; rv:125.0) Gecko/20100101 Firefox/125.0",
)
BROWSER_HEADERS: Final[dict[str, str]] = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "text/plain;q=0.8,*/*;q=0.7"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}
SITEMAP_PATH_VARIANTS: Final[tuple[str, ...]] = (
    "/sitemap_index.xml",
    "/sitemap.xml",
    "/wp-sitemap.xml",
    "/sitemap/sitemap-index.xml",
    "/sitemap-index.xml",
)
COOKIE_RETRY_STATUS_CODES: Final[frozenset[int]] = frozenset({403, 503})
BLOCKING_STATUS_CODES: Final[frozenset[int]] = frozenset({401, 403, 406, 429, 503})

SleepCallable = Callable[[float], Awaitable[None]]

_logger = logging.getLogger("gsc_sitemap_sync.http.fetcher")


@dataclass(slots=True, frozen=True)
class FetchAttempt:
    """Outcome of one GET issued with one user agent."""

    url: str
    user_agent: str
    status_code: int | None
    headers: dict[str, str] = field(default_factory=dict)
    body_sample: str = ""
    error: str | None = None


@dataclass(slots=True, frozen=True)
class FetchedDocument:
    """Raw response body plus the charset the server declared, if any."""

    url: str
    content: bytes
    declared_encoding: str | None = None

    @property
    def text(self) -> str:
        return self.content.decode(self.declared_encoding or "utf-8", errors="replace")


def _request_headers(user_agent: str) -> dict[str, str]:
    return {"User-Agent": user_agent, **BROWSER_HEADERS}


def _cookie_header(response: httpx.Response) -> str | None:
    cookies = [
        raw_cookie.split(";", maxsplit=1)[0].strip()
        for raw_cookie in response.headers.get_list("set-cookie")
    ]
    cookies = [cookie for cookie in cookies if "=" in cookie]
    if not cookies:
        return None
    return "; ".join(cookies)


def _body_sample(response: httpx.Response) -> str:
    try:
        return response.text[:BODY_SAMPLE_LENGTH]
    except (UnicodeDecodeError, LookupError):
        return ""


def _response_content(response: httpx.Response) -> bytes:
    content = response.content
    if not content.startswith(GZIP_MAGIC_BYTES):
        return content

    try:
        return gzip.decompress(content)
    except (OSError, EOFError) as exc:
        raise ValidationError(
            f"Unable to decompress gzipped content from {response.url}"
        ) from exc


def _attempt_from_response(
    url: str, user_agent: str, response: httpx.Response
) -> FetchAttempt:
    return FetchAttempt(
        url=url,
        user_agent=user_agent,
        status_code=response.status_code,
        headers={key.lower(): value for key, value in response.headers.items()},
        body_sample="" if response.is_success else _body_sample(response),
    )


def _sitemap_variant_urls(url: str) -> Iterator[str]:
    split_url = urlsplit(url)
    origin = f"{split_url.scheme}://{split_url.netloc}"
    for path in SITEMAP_PATH_VARIANTS:
        if path == split_url.path:
            continue
        yield f"{origin}{path}"


def _looks_like_cloudflare(attempt: FetchAttempt) -> bool:
    server = attempt.headers.get("server", "").lower()
    body = attempt.body_sample.lower()
    return (
        "cloudflare" in server
        or "cf-ray" in attempt.headers
        or "cf-mitigated" in attempt.headers
        or "just a moment..." in body
    )


def _looks_like_sucuri(attempt: FetchAttempt) -> bool:
    server = attempt.headers.get("server", "").lower()
    return (
        "x-sucuri-id" in attempt.headers
        or "sucuri" in server
        or "sucuri website firewall" in attempt.body_sample.lower()
    )


def describe_blocking(attempts: Sequence[FetchAttempt]) -> str:
    """Infer the most likely reason every attempt failed."""

    responded = [attempt for attempt in attempts if attempt.status_code is not None]
    if not responded:
        return "the host did not respond (network error or timeout)"

    if any(_looks_like_cloudflare(attempt) for attempt in responded):
        return "blocked by Cloudflare bot protection"
    if any("wordfence" in attempt.body_sample.lower() for attempt in responded):
        return "blocked by the Wordfence security plugin"
    if any(_looks_like_sucuri(attempt) for attempt in responded):
        return "blocked by the Sucuri website firewall"

    status_codes = sorted(
        {attempt.status_code for attempt in responded if attempt.status_code}
    )
    if any(code in BLOCKING_STATUS_CODES for code in status_codes):
        return (
            "blocked by a web application firewall (WAF) or bot protection "
            f"(HTTP {', '.join(str(code) for code in status_codes)})"
        )
    if status_codes == [404]:
        return "not found (HTTP 404)"
    return f"unexpected HTTP status ({', '.join(str(code) for code in status_codes)})"


class HttpFetcher:
    """Fetch text documents with user-agent rotation and sitemap fallbacks."""

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        agent_delay_seconds: float = DEFAULT_AGENT_DELAY_SECONDS,
        user_agents: Sequence[str] = DEFAULT_USER_AGENTS,
        self_identifying_agent: str | None = None,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepCallable = asyncio.sleep,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        if agent_delay_seconds < 0:
            raise ValueError("agent_delay_seconds must be zero or greater")
        if max_redirects < 0:
            raise ValueError("max_redirects must be zero or greater")

        agents = list(user_agents)
        if self_identifying_agent:
            agents.append(self_identifying_agent)
        if not agents:
            raise ValueError("at least one user agent is required")

        self._timeout_seconds = timeout_seconds
        self._agent_delay_seconds = agent_delay_seconds
        self._user_agents: tuple[str, ...] = tuple(agents)
        self._max_redirects = max_redirects
        self._transport = transport
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> HttpFetcher:
        return cls(
            timeout_seconds=settings.HTTP_FETCH_TIMEOUT_SECONDS,
            agent_delay_seconds=settings.HTTP_AGENT_DELAY_SECONDS,
            self_identifying_agent=settings.OUTBOUND_HTTP_USER_AGENT,
        )

    @property
    def user_agents(self) -> tuple[str, ...]:
        return self._user_agents

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout_seconds),
            follow_redirects=True,
            max_redirects=self._max_redirects,
            transport=self._transport,
        )

    async def fetch_url(self, url: str) -> str:
        """Return the decoded body of ``url`` or raise ``ValidationError``."""

        return (await self.fetch_document(url)).text

    async def fetch_bytes(self, url: str) -> bytes:
        """Return the undecoded body of ``url``, gzip already removed.

        XML documents declare their own encoding, so sitemap parsing works on
        bytes and leaves decoding to the XML parser.
        """

        return (await self.fetch_document(url)).content

    async def fetch_document(self, url: str) -> FetchedDocument:
        attempts: list[FetchAttempt] = []
        document = await self._fetch_with_agent_rotation(url, attempts)
        if document is not None:
            return document

        if "sitemap" in urlsplit(url).path.lower():
            for variant_url in _sitemap_variant_urls(url):
                document = await self._fetch_with_agent_rotation(
                    variant_url, attempts
                )
                if document is not None:
                    _logger.info(
                        {
                            "event": "sitemap_variant_fetched",
                            "requested_url": url,
                            "variant_url": variant_url,
                        }
                    )
                    return document

        reason = describe_blocking(attempts)
        _logger.warning(
            {
                "event": "fetch_exhausted",
                "url": url,
                "attempts": len(attempts),
                "reason": reason,
            }
        )
        raise ValidationError(f"Unable to fetch {url}: {reason}")

    async def probe_url(
        self,
        url: str,
        *,
        accept: str = "application/xml",
    ) -> int | None:
        """Issue a HEAD request and return its status, or ``None`` on error."""

        headers = {"User-Agent": self._user_agents[0], "Accept": accept}
        async with self._client() as client:
            try:
                response = await client.head(url, headers=headers)
            except httpx.HTTPError as exc:
                _logger.debug(
                    {"event": "probe_failed", "url": url, "error": str(exc)}
                )
                return None
        return response.status_code

    async def _fetch_with_agent_rotation(
        self,
        url: str,
        attempts: list[FetchAttempt],
    ) -> FetchedDocument | None:
        for user_agent in self._user_agents:
            if attempts and self._agent_delay_seconds > 0:
                await self._sleep(self._agent_delay_seconds)

            attempt, document = await self._attempt(url, user_agent)
            attempts.append(attempt)
            if document is not None:
                return document

            _logger.debug(
                {
                    "event": "fetch_attempt_failed",
                    "url": url,
                    "user_agent": user_agent,
                    "status_code": attempt.status_code,
                    "error": attempt.error,
                }
            )
        return None

    async def _attempt(
        self,
        url: str,
        user_agent: str,
    ) -> tuple[FetchAttempt, FetchedDocument | None]:
        headers = _request_headers(user_agent)
        async with self._client() as client:
            try:
                response = await client.get(url, headers=headers)
                cookie = _cookie_header(response)
                if response.status_code in COOKIE_RETRY_STATUS_CODES and cookie:
                    _logger.debug(
                        {
                            "event": "fetch_cookie_retry",
                            "url": url,
                            "status_code": response.status_code,
                        }
                    )
                    response = await client.get(
                        url, headers={**headers, "Cookie": cookie}
                    )
            except httpx.HTTPError as exc:
                return (
                    FetchAttempt(
                        url=url,
                        user_agent=user_agent,
                        status_code=None,
                        error=str(exc) or exc.__class__.__name__,
                    ),
                    None,
                )

        attempt = _attempt_from_response(url, user_agent, response)
        if not response.is_success:
            return attempt, None
        return attempt, FetchedDocument(
            url=str(response.url),
            content=_response_content(response),
            declared_encoding=response.charset_encoding,
        )


__all__ = [
    "BROWSER_HEADERS",
    "DEFAULT_USER_AGENTS",
    "FetchAttempt",
    "FetchedDocument",
    "HttpFetcher",
    "SITEMAP_PATH_VARIANTS",
    "describe_blocking",
]
