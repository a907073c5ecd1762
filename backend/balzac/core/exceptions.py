"""
Domain exceptions raised by the service layer.

Each exception carries the HTTP status the API answers with; the handler
registered in ``balzac.main`` renders them as ``{"detail": message}``.
"""

from fastapi import status


class BalzacError(Exception):
    """Base class for errors with a user-facing message."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(BalzacError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotAuthenticated(BalzacError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDenied(BalzacError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(BalzacError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(BalzacError):
    status_code = status.HTTP_409_CONFLICT


class RateLimitExceeded(BalzacError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class UpstreamError(BalzacError):
    """A third-party provider (payment gateway, email API) failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
