"""Tests for the Google Indexing API v3 client."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest
from googleapiclient.errors import HttpError  # type: ignore[import-untyped]

from gsc_sitemap_sync.services.google_credentials import INDEXING_SCOPE
from gsc_sitemap_sync.services.google_errors import (
    GoogleAPIError,
    InvalidURLError,
    QuotaExceededError,
)
from gsc_sitemap_sync.services.google_indexing_client import GoogleIndexingClient

LOADER_TARGET = (
    "gsc_sitemap_sync.services.google_indexing_client.load_service_account_credentials"
)


class _FakeRequest:
    def __init__(self, outcome: dict[str, Any] | Exception) -> None:
        self._outcome = outcome

    def execute(self) -> dict[str, Any]:
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome


class _FakeURLNotifications:
    def __init__(self, publish_map: dict[str, dict[str, Any] | Exception]) -> None:
        self._publish_map = publish_map
        self.bodies: list[dict[str, str]] = []

    def publish(self, *, body: dict[str, str]) -> _FakeRequest:
        self.bodies.append(body)
        return _FakeRequest(self._publish_map[body["url"]])


class _FakeIndexingService:
    def __init__(self, publish_map: dict[str, dict[str, Any] | Exception]) -> None:
        self.notifications = _FakeURLNotifications(publish_map)

    def urlNotifications(self) -> _FakeURLNotifications:  # noqa: N802
        return self.notifications


def _http_error(status: int, reason: str, content: str) -> HttpError:
    response = SimpleNamespace(status=status, reason=reason)
    return HttpError(response, content.encode("utf-8"), uri=None)


def _client(service: _FakeIndexingService, **kwargs: Any) -> GoogleIndexingClient:
    return GoogleIndexingClient(
        credentials_path="/tmp/fake-service-account.json",
        builder=lambda *_args, **_kwargs: service,
        **kwargs,
    )


def test_publish_sync_returns_parsed_notification(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    captured_scopes: list[str] = []
    built_services: list[tuple[str, str]] = []

    def fake_credentials_loader(
        credentials_path: str, *, scopes: tuple[str, ...]
    ) -> object:
        del credentials_path
        captured_scopes.extend(scopes)
        return object()

    monkeypatch.setattr(LOADER_TARGET, fake_credentials_loader)

    service = _FakeIndexingService(
        {
            "https://example.com/page": {
                "urlNotificationMetadata": {
                    "url": "https://example.com/page",
                    "latestUpdate": {
                        "url": "https://example.com/page",
                        "type": "URL_UPDATED",
                        "notifyTime": "2026-10-19T09:15:00Z",
                    },
                }
            }
        }
    )

    def builder(service_name: str, version: str, **_: Any) -> _FakeIndexingService:
        built_services.append((service_name, version))
        return service

    client = GoogleIndexingClient(
        credentials_path="/tmp/fake-service-account.json", builder=builder
    )

    first = client.publish_sync("https://example.com/page")
    client.publish_sync("https://example.com/page", "url_updated")

    assert first.url_notification_metadata.url == "https://example.com/page"
    latest_update = first.url_notification_metadata.latest_update
    assert latest_update is not None
    assert latest_update.type == "URL_UPDATED"
    assert captured_scopes == [INDEXING_SCOPE]
    # The discovery client is built once and reused.
    assert built_services == [("indexing", "v3")]
    assert service.notifications.bodies == [
        {"url": "https://example.com/page", "type": "URL_UPDATED"},
        {"url": "https://example.com/page", "type": "URL_UPDATED"},
    ]


def test_publish_sync_validates_arguments_before_calling_google() -> None:
    service = _FakeIndexingService({})
    client = _client(service)

    with pytest.raises(ValueError, match="notification_type"):
        client.publish_sync("https://example.com/page", "URL_REFRESHED")
    with pytest.raises(InvalidURLError):
        client.publish_sync("example.com/page")

    assert service.notifications.bodies == []


def test_publish_sync_raises_typed_quota_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(LOADER_TARGET, lambda *_args, **_kwargs: object())
    service = _FakeIndexingService(
        {
            "https://example.com/quota": _http_error(
                429,
                "Too Many Requests",
                '{"error": {"message": "Quota exceeded for quota metric"}}',
            )
        }
    )
    client = _client(service, max_retries=0)

    with pytest.raises(QuotaExceededError) as exc_info:
        client.publish_sync("https://example.com/quota")

    assert exc_info.value.operation == "urlNotifications.publish"
    assert len(service.notifications.bodies) == 1


def test_publish_sync_rejects_unexpected_payloads(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(LOADER_TARGET, lambda *_args, **_kwargs: object())
    service = _FakeIndexingService(
        {
            "https://example.com/odd": {
                "urlNotificationMetadata": {"latestUpdate": {"notifyTime": "soon"}}
            }
        }
    )

    with pytest.raises(GoogleAPIError, match="Unexpected URL notification payload"):
        _client(service).publish_sync("https://example.com/odd")


@pytest.mark.asyncio
async def test_publish_runs_in_worker_thread(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(LOADER_TARGET, lambda *_args, **_kwargs: object())
    service = _FakeIndexingService(
        {"https://example.com/async": {"urlNotificationMetadata": {}}}
    )

    response = await _client(service).publish("https://example.com/async")

    assert response.url_notification_metadata.latest_update is None
