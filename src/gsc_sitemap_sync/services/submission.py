"""Submit page URLs to the Google Indexing API."""

from __future__ import annotations

import logging
from typing import Protocol
from urllib.parse import urlsplit

from gsc_sitemap_sync.errors import ValidationError
from gsc_sitemap_sync.schemas.google import UrlNotificationResponse
from gsc_sitemap_sync.services.google_credentials import GoogleCredentialsError
from gsc_sitemap_sync.services.google_errors import GoogleAPIError, QuotaExceededError
from gsc_sitemap_sync.services.sitemap_discovery import clean_domain

_logger = logging.getLogger("gsc_sitemap_sync.submission")


class _URLPublisher(Protocol):
    async def publish(
        self, url: str, notification_type: str = ...
    ) -> UrlNotificationResponse: ...


class SubmissionError(Exception):
    """Raised when a URL could not be submitted for indexing."""

    def __init__(self, url: str, message: str, *, rate_limited: bool = False) -> None:
        self.url = url
        self.message = message
        self.rate_limited = rate_limited
        super().__init__(f"Failed to submit {url}: {message}")


def url_belongs_to_domain(url: str, domain: str) -> bool:
    split_url = urlsplit(url)
    if split_url.scheme not in {"http", "https"} or not split_url.hostname:
        return False

    host = split_url.hostname.lower()
    bare_domain = clean_domain(domain)
    return host == bare_domain or host.endswith(f".{bare_domain}")


class SubmissionEngine:
    """Request indexing of one URL at a time."""

    def __init__(self, *, publisher: _URLPublisher) -> None:
        self._publisher = publisher

    async def submit_url_for_indexing(
        self, domain: str, url: str
    ) -> UrlNotificationResponse:
        if not url_belongs_to_domain(url, domain):
            raise ValidationError(f"URL {url} does not belong to {domain}")

        try:
            response = await self._publisher.publish(url, "URL_UPDATED")
        except QuotaExceededError as exc:
            _logger.warning(
                "url_submission_rate_limited",
                extra={"domain": domain, "url": url, "error": exc.message},
            )
            raise SubmissionError(url, exc.message, rate_limited=True) from exc
        except GoogleAPIError as exc:
            _logger.error(
                "url_submission_failed",
                extra={
                    "domain": domain,
                    "url": url,
                    "status_code": exc.status_code,
                    "error": exc.message,
                },
            )
            raise SubmissionError(url, exc.message) from exc
        except GoogleCredentialsError as exc:
            _logger.error(
                "url_submission_credentials_error",
                extra={"domain": domain, "url": url, "error": str(exc)},
            )
            raise SubmissionError(url, str(exc)) from exc
        except Exception as exc:
            # Transport failures (timeouts, refresh errors) stay scoped to this URL.
            error_message = str(exc) or exc.__class__.__name__
            _logger.error(
                "url_submission_transport_error",
                extra={
                    "domain": domain,
                    "url": url,
                    "error_type": exc.__class__.__name__,
                    "error": error_message,
                },
            )
            raise SubmissionError(url, error_message) from exc

        _logger.info("url_submitted", extra={"domain": domain, "url": url})
        return response


__all__ = ["SubmissionEngine", "SubmissionError", "url_belongs_to_domain"]
