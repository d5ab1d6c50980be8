"""
core/errors.py -- Error taxonomy shared by the auth, catalog, and api layers.

Flows and stores raise these; api/main.py renders every ApiError as the
standard response envelope with the class's status code and the instance's
human-readable message. Nothing else (no stack trace, no internal id) reaches
the client.

Layer rule: core/ is the kernel. No imports from api/, auth/, or catalog/.
"""

from __future__ import annotations


class ApiError(Exception):
    """Base class for errors that map to a client-facing HTTP status."""

    status_code: int = 500
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(ApiError):
    """Malformed or missing input."""

    status_code = 400
    default_message = "Bad Request"


class UnauthenticatedError(ApiError):
    """Missing, invalid, expired, or revoked credentials."""

    status_code = 401
    default_message = "Unauthorized Access"


class ForbiddenError(ApiError):
    """Authenticated, but the role or ownership check failed."""

    status_code = 403
    default_message = "Forbidden Access"


class NotFoundError(ApiError):
    """Missing entity, or an entity that belongs to another organization."""

    status_code = 404
    default_message = "Resource not found."


class ConflictError(ApiError):
    """A unique field (email, organization name) is already taken."""

    status_code = 409
    default_message = "Resource already exists."


class RateLimitedError(ApiError):
    """Too many failed login attempts for one identity."""

    status_code = 429
    default_message = "Too many login attempts. Please try again later."

    def __init__(self, message: str | None = None, retry_after: int = 0) -> None:
        super().__init__(message)
        self.retry_after = retry_after
