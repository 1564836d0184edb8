"""Service account credential loading for the Search Console and Indexing APIs."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from google.oauth2 import service_account

WEBMASTERS_SCOPE = "https://www.googleapis.com/auth/webmasters"
INDEXING_SCOPE = "https://www.googleapis.com/auth/indexing"
REQUIRED_SERVICE_ACCOUNT_FIELDS = frozenset(
    {"type", "project_id", "private_key", "client_email", "token_uri"}
)


class GoogleCredentialsError(Exception):
    """Raised when a service account key file cannot be used."""


def _read_key_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise GoogleCredentialsError(f"Service account key file not found: {path}")

    try:
        payload: Any = json.loads(path.read_text(encoding="utf-8"))
    except OSError as error:
        raise GoogleCredentialsError(
            f"Unable to read service account key file {path}: {error}"
        ) from error
    except json.JSONDecodeError as error:
        raise GoogleCredentialsError(
            f"Service account key file {path} is not valid JSON "
            f"(line {error.lineno}, column {error.colno})"
        ) from error

    if not isinstance(payload, dict):
        raise GoogleCredentialsError(
            f"Service account key file {path} must contain a JSON object"
        )

    missing_fields = sorted(REQUIRED_SERVICE_ACCOUNT_FIELDS.difference(payload))
    if missing_fields:
        raise GoogleCredentialsError(
            f"Service account key file {path} is missing: {', '.join(missing_fields)}"
        )
    if payload["type"] != "service_account":
        raise GoogleCredentialsError(
            f"Service account key file {path} must have type 'service_account'"
        )
    return cast(dict[str, Any], payload)


@lru_cache(maxsize=32)
def _cached_credentials(
    credentials_path: str, scopes: tuple[str, ...]
) -> service_account.Credentials:
    payload = _read_key_file(Path(credentials_path))
    try:
        credentials = service_account.Credentials.from_service_account_info(  # type: ignore[no-untyped-call]
            payload,
            scopes=list(scopes),
        )
    except ValueError as error:
        raise GoogleCredentialsError(
            f"Unable to build credentials from {credentials_path}: {error}"
        ) from error
    return cast(service_account.Credentials, credentials)


def load_service_account_credentials(
    credentials_path: str | Path,
    *,
    scopes: tuple[str, ...],
) -> service_account.Credentials:
    """Load (and cache) scoped service account credentials from a key file."""

    resolved_path = Path(credentials_path).expanduser().resolve()
    normalized_scopes = tuple(dict.fromkeys(scope.strip() for scope in scopes))
    if not normalized_scopes or "" in normalized_scopes:
        raise GoogleCredentialsError("At least one non-empty scope is required")
    return _cached_credentials(str(resolved_path), normalized_scopes)


def clear_google_credentials_cache() -> None:
    """Forget loaded credentials, e.g. after a key rotation."""

    _cached_credentials.cache_clear()


__all__ = [
    "GoogleCredentialsError",
    "INDEXING_SCOPE",
    "WEBMASTERS_SCOPE",
    "clear_google_credentials_cache",
    "load_service_account_credentials",
]
