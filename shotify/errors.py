"""
Error taxonomy shared by the services and mapped to HTTP by ``shotify.app``.
"""

from __future__ import annotations


class ShotifyError(Exception):
    """Base class for errors that map onto the response envelope."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, detail: str | None = None, *, message: str | None = None):
        super().__init__(detail or self.message)
        self.detail = detail or self.message
        if message:
            self.message = message


class InvalidArgumentError(ShotifyError):
    status_code = 400
    message = "Invalid request"


class NotFoundError(ShotifyError):
    status_code = 404
    message = "Not found"


class ConflictError(ShotifyError):
    status_code = 409
    message = "Conflict"


class UnauthenticatedError(ShotifyError):
    status_code = 401
    message = "Unauthorized"


class UpstreamError(ShotifyError):
    """A database, object-store or remote fetch failed."""

    status_code = 502
    message = "Upstream service failure"
