"""Google Search Console URL Inspection API client with async wrappers."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Protocol, cast
from urllib.parse import urlparse

from googleapiclient.discovery import build  # type: ignore[import-untyped]
from pydantic import ValidationError as PayloadValidationError

from gsc_sitemap_sync.schemas.google import UrlInspectionResponse
from gsc_sitemap_sync.services.google_credentials import (
    WEBMASTERS_SCOPE,
    load_service_account_credentials,
)
from gsc_sitemap_sync.services.google_errors import (
    GoogleAPIError,
    InvalidURLError,
    execute_with_google_retry,
)

INSPECT_OPERATION = "urlInspection.index.inspect"
_LOGGER = logging.getLogger("gsc_sitemap_sync.google_api.search_console")


class _GoogleBuildCallable(Protocol):
    def __call__(
        self,
        service_name: str,
        version: str,
        *,
        credentials: Any,
        cache_discovery: bool,
    ) -> Any: ...


def _is_valid_url(url: str) -> bool:
    parsed_url = urlparse(url)
    return parsed_url.scheme in {"http", "https"} and bool(parsed_url.netloc)


def _is_valid_site_url(site_url: str) -> bool:
    if site_url.startswith("sc-domain:"):
        return site_url != "sc-domain:"
    return _is_valid_url(site_url)


class GoogleURLInspectionClient:
    """Inspect URLs through the Search Console API."""

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
    def _search_console_service(self) -> Any:
        if self._service is None:
            credentials = load_service_account_credentials(
                self._credentials_path,
                scopes=(WEBMASTERS_SCOPE,),
            )
            self._service = self._builder(
                "searchconsole",
                "v1",
                credentials=credentials,
                cache_discovery=False,
            )
        return self._service

    def inspect_url_sync(self, url: str, site_url: str) -> UrlInspectionResponse:
        """Inspect ``url`` within the ``site_url`` property."""

        inspection_url = url.strip()
        property_url = site_url.strip()
        if not _is_valid_url(inspection_url) or not _is_valid_site_url(property_url):
            raise InvalidURLError(
                "inspection URL must be http(s) and site URL must be a URL-prefix "
                "property or sc-domain:<domain>",
                operation=INSPECT_OPERATION,
            )

        response = execute_with_google_retry(
            lambda: cast(
                dict[str, Any],
                self._search_console_service.urlInspection()
                .index()
                .inspect(
                    body={"inspectionUrl": inspection_url, "siteUrl": property_url}
                )
                .execute(),
            ),
            operation=INSPECT_OPERATION,
            max_retries=self._max_retries,
        )

        try:
            return UrlInspectionResponse.model_validate(response)
        except PayloadValidationError as exc:
            _LOGGER.error(
                "google_api_unexpected_payload",
                extra={"operation": INSPECT_OPERATION, "inspection_url": inspection_url},
            )
            raise GoogleAPIError(
                f"Unexpected URL inspection payload: {exc.error_count()} errors",
                operation=INSPECT_OPERATION,
            ) from exc

    async def inspect_url(self, url: str, site_url: str) -> UrlInspectionResponse:
        """Async wrapper running the blocking API call in a worker thread."""

        return await asyncio.to_thread(self.inspect_url_sync, url, site_url)


__all__ = ["GoogleURLInspectionClient"]
