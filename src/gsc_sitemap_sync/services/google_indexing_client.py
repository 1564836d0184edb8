"""Google Indexing API v3 client with sync and async wrappers."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Final, Protocol, cast
from urllib.parse import urlparse

from googleapiclient.discovery import build  # type: ignore[import-untyped]
from pydantic import ValidationError as PayloadValidationError

from gsc_sitemap_sync.schemas.google import UrlNotificationResponse
from gsc_sitemap_sync.services.google_credentials import (
    INDEXING_SCOPE,
    load_service_account_credentials,
)
from gsc_sitemap_sync.services.google_errors import (
    GoogleAPIError,
    InvalidURLError,
    execute_with_google_retry,
)

PUBLISH_OPERATION: Final[str] = "urlNotifications.publish"
ALLOWED_NOTIFICATION_TYPES: Final[frozenset[str]] = frozenset(
    {"URL_UPDATED", "URL_DELETED"}
)
_LOGGER = logging.getLogger("gsc_sitemap_sync.google_api.indexing")


class _GoogleBuildCallable(Protocol):
    def __call__(
        self,
        service_name: str,
        version: str,
        *,
        credentials: Any,
        cache_discovery: bool,
    ) -> Any: ...


class GoogleIndexingClient:
    """Publish URL notifications through the Indexing API."""

    def __init__(
        self,
        *,
        credentials_path: str | Path,
        builder: _GoogleBuildCallable = build,
        max_retries: int = 3,
    ) -> None:
        self._credentials_path = Path(credentials_path).expanduser()
        self._builder = builder
        self._max_retries = max_retries
        self._service: Any | None = None

    @property
    def _indexing_service(self) -> Any:
        if self._service is None:
            credentials = load_service_account_credentials(
                self._credentials_path,
                scopes=(INDEXING_SCOPE,),
            )
            self._service = self._builder(
                "indexing",
                "v3",
                credentials=credentials,
                cache_discovery=False,
            )
        return self._service

    def publish_sync(
        self,
        url: str,
        notification_type: str = "URL_UPDATED",
    ) -> UrlNotificationResponse:
        """Publish a single URL notification."""

        normalized_type = notification_type.strip().upper()
        if normalized_type not in ALLOWED_NOTIFICATION_TYPES:
            raise ValueError(
                "notification_type must be one of: "
                + ", ".join(sorted(ALLOWED_NOTIFICATION_TYPES))
            )

        parsed_url = urlparse(url)
        if parsed_url.scheme not in {"http", "https"} or not parsed_url.netloc:
            raise InvalidURLError(
                "URL must include an http or https scheme and hostname",
                operation=PUBLISH_OPERATION,
            )

        response = execute_with_google_retry(
            lambda: cast(
                dict[str, Any],
                self._indexing_service.urlNotifications()
                .publish(body={"url": url, "type": normalized_type})
                .execute(),
            ),
            operation=PUBLISH_OPERATION,
            max_retries=self._max_retries,
        )

        try:
            return UrlNotificationResponse.model_validate(response)
        except PayloadValidationError as exc:
            _LOGGER.error(
                "google_api_unexpected_payload",
                extra={"operation": PUBLISH_OPERATION, "url": url},
            )
            raise GoogleAPIError(
                f"Unexpected URL notification payload: {exc.error_count()} errors",
                operation=PUBLISH_OPERATION,
            ) from exc

    async def publish(
        self,
        url: str,
        notification_type: str = "URL_UPDATED",
    ) -> UrlNotificationResponse:
        """Async wrapper running the blocking API call in a worker thread."""

        return await asyncio.to_thread(self.publish_sync, url, notification_type)


__all__ = ["GoogleIndexingClient"]
