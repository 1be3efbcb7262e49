"""
Error taxonomy shared by the storage layer, the services and the HTTP API.

Each error carries the HTTP status it maps to; ``main.py`` installs a single
handler that renders any ``ChatSyncError`` as ``{"detail": ...}``.
"""

from fastapi import status


class ChatSyncError(Exception):
    """Base class for all ChatSync errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthenticated(ChatSyncError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Unauthenticated"


class Forbidden(ChatSyncError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class NotFound(ChatSyncError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class BadRequest(ChatSyncError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request"


class Conflict(ChatSyncError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class InternalError(ChatSyncError):
    """Unexpected failure in a storage call."""
