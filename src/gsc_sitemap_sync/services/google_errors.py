"""Typed Google API errors and transient retry for synchronous API calls."""

from __future__ import annotations

from collections.abc import Callable
import json
import logging
from time import sleep
from typing import Any, TypeVar, cast

from googleapiclient.errors import HttpError  # type: ignore[import-untyped]

MAX_RETRY_DELAY_SECONDS = 60.0
TRANSIENT_HTTP_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})
QUOTA_ERROR_REASONS = frozenset(
    {
        "ratelimitexceeded",
        "userratelimitexceeded",
        "quotaexceeded",
        "dailylimitexceeded",
    }
)
TRANSIENT_ERROR_REASONS = QUOTA_ERROR_REASONS | {"backenderror", "internalerror"}
AUTH_ERROR_REASONS = frozenset(
    {
        "autherror",
        "forbidden",
        "insufficientpermissions",
        "insufficientauthenticationscopes",
        "unauthorized",
        "permissiondenied",
    }
)

_LOGGER = logging.getLogger("gsc_sitemap_sync.google_api")

R = TypeVar("R")


class GoogleAPIError(Exception):
    """Google API failure with the parsed response context."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        reasons: frozenset[str] = frozenset(),
        details: dict[str, Any] | None = None,
        operation: str | None = None,
        retry_after_seconds: int | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.reasons = reasons
        self.details = details
        self.operation = operation
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        if self.status_code in TRANSIENT_HTTP_STATUS_CODES:
            return True
        return bool(self.reasons & TRANSIENT_ERROR_REASONS)


class QuotaExceededError(GoogleAPIError):
    """Raised when a Google API quota or rate limit is exceeded."""

    @property
    def is_retryable(self) -> bool:
        # Daily quotas do not reset within a retry window.
        return "dailylimitexceeded" not in self.reasons


class AuthenticationError(GoogleAPIError):
    """Raised when the credential is rejected or lacks access to the property."""

    @property
    def is_retryable(self) -> bool:
        return False


class InvalidURLError(GoogleAPIError):
    """Raised when Google rejects the URL or property argument."""

    @property
    def is_retryable(self) -> bool:
        return False


def _response_status(error: HttpError) -> int | None:
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        return cast(int, status_code)
    response = getattr(error, "resp", None)
    status = getattr(response, "status", None)
    return int(status) if status is not None else None


def _error_payload(error: HttpError) -> dict[str, Any] | None:
    content = getattr(error, "content", b"")
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    if not isinstance(content, str) or not content.strip():
        return None

    try:
        payload = json.loads(content)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None

    error_payload = payload.get("error")
    if isinstance(error_payload, dict):
        return cast(dict[str, Any], error_payload)
    return cast(dict[str, Any], payload)


def _retry_after_seconds(error: HttpError) -> int | None:
    response = getattr(error, "resp", None)
    getter = getattr(response, "get", None)
    if not callable(getter):
        return None

    retry_after = getter("retry-after") or getter("Retry-After")
    if retry_after is None:
        return None
    retry_after_text = str(retry_after).strip()
    return int(retry_after_text) if retry_after_text.isdigit() else None


def _payload_reasons(details: dict[str, Any] | None) -> frozenset[str]:
    if details is None:
        return frozenset()

    reasons: set[str] = set()
    for candidate in (details.get("status"), details.get("reason")):
        if isinstance(candidate, str):
            reasons.add(candidate.replace("_", "").strip().lower())

    errors = details.get("errors")
    if isinstance(errors, list):
        for item in errors:
            if isinstance(item, dict) and isinstance(item.get("reason"), str):
                reasons.add(item["reason"].strip().lower())
    return frozenset(reasons)


def parse_google_http_error(
    error: HttpError,
    *,
    operation: str | None = None,
) -> GoogleAPIError:
    """Convert a googleapiclient ``HttpError`` into a typed ``GoogleAPIError``."""

    status_code = _response_status(error)
    details = _error_payload(error)
    reasons = _payload_reasons(details)
    message = str(details.get("message")) if details and details.get("message") else str(error)
    diagnostic_text = f"{getattr(error, 'reason', '') or ''} {message}".lower()

    error_type: type[GoogleAPIError] = GoogleAPIError
    if (
        status_code == 429
        or reasons & QUOTA_ERROR_REASONS
        or "quota" in diagnostic_text
        or "rate limit" in diagnostic_text
    ):
        error_type = QuotaExceededError
    elif status_code in {401, 403} and (not reasons or reasons & AUTH_ERROR_REASONS):
        error_type = AuthenticationError
    elif status_code in {400, 422} and "url" in diagnostic_text:
        error_type = InvalidURLError

    parsed_error = error_type(
        message,
        status_code=status_code,
        reasons=reasons,
        details=details,
        operation=operation,
        retry_after_seconds=_retry_after_seconds(error),
    )
    _LOGGER.warning(
        "google_api_http_error",
        extra={
            "operation": operation,
            "status_code": status_code,
            "error_type": error_type.__name__,
            "error_message": message,
        },
    )
    return parsed_error


def execute_with_google_retry(
    request: Callable[[], R],
    *,
    operation: str,
    max_retries: int = 3,
    base_delay_seconds: float = 0.5,
) -> R:
    """Run a blocking Google API request, retrying transient failures."""

    if max_retries < 0:
        raise ValueError("max_retries must be zero or greater")
    if base_delay_seconds < 0:
        raise ValueError("base_delay_seconds must be zero or greater")

    attempt = 0
    while True:
        try:
            return request()
        except HttpError as exc:
            parsed_error = parse_google_http_error(exc, operation=operation)
            if attempt >= max_retries or not parsed_error.is_retryable:
                raise parsed_error from exc

        delay_seconds = base_delay_seconds * (2**attempt)
        if parsed_error.retry_after_seconds is not None:
            delay_seconds = min(
                max(delay_seconds, float(parsed_error.retry_after_seconds)),
                MAX_RETRY_DELAY_SECONDS,
            )
        attempt += 1
        _LOGGER.info(
            "google_api_retrying",
            extra={
                "operation": operation,
                "attempt": attempt,
                "max_retries": max_retries,
                "delay_seconds": delay_seconds,
            },
        )
        sleep(delay_seconds)


__all__ = [
    "AuthenticationError",
    "GoogleAPIError",
    "InvalidURLError",
    "QuotaExceededError",
    "execute_with_google_retry",
    "parse_google_http_error",
]
