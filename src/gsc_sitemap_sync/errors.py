"""Application error taxonomy shared by the pipeline and the HTTP API."""

from __future__ import annotations


class AppError(Exception):
    """Base application error carrying an HTTP-equivalent status code."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        super().__init__(message)


class ValidationError(AppError):
    """Malformed or unreachable input such as a sitemap or robots.txt."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class AuthorizationError(AppError):
    """Caller is not allowed to perform the operation."""

    status_code = 403
    error_code = "AUTHORIZATION_ERROR"


class NotFoundError(AppError):
    """Requested resource does not exist."""

    status_code = 404
    error_code = "NOT_FOUND"


class DatabaseError(AppError):
    """Persistence layer failure."""

    status_code = 500
    error_code = "DATABASE_ERROR"


__all__ = [
    "AppError",
    "AuthorizationError",
    "DatabaseError",
    "NotFoundError",
    "ValidationError",
]
