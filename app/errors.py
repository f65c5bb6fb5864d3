"""
Application error taxonomy.

Every error raised on purpose by the catalog carries the HTTP status it maps to,
the exception handlers in `app.main` turn them into `{"message": ...}` bodies.
"""

from typing import Optional


class AppError(Exception):
    """Base class for catalog errors."""

    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidArgument(AppError):
    status_code = 400


class Unauthenticated(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404


class Conflict(AppError):
    # duplicates are reported as bad requests, the frontend relies on it
    status_code = 400


class UpstreamError(AppError):
    status_code = 502


class DuplicateEntryError(Exception):
    """Raised by the datastore when a unique constraint rejects a write."""

    def __init__(self, constraint: Optional[str] = None):
        super().__init__(f"unique constraint violated: {constraint}")
        self.constraint = constraint
