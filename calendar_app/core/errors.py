"""
Error taxonomy shared by every layer of the application.

Each error carries an ``ErrorKind`` tag, a client-facing message, an optional
HTTP status and optional details. Services raise these; the HTTP adapter in
``calendar_app.main`` is the only place that turns a kind into a response.

    Kind                     Status
    -----------------------  ------------------------------
    VALIDATION               400
    CALENDAR_NOT_CONNECTED   400
    UNAUTHENTICATED          401
    REAUTH_REQUIRED          401 (needsReauth flag)
    EXTERNAL_AUTH            401 (needsReauth flag)
    EXTERNAL_API             provider 401/403/404, else 500
    STORE / INTERNAL         500
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    UNAUTHENTICATED = "unauthenticated"
    REAUTH_REQUIRED = "reauth_required"
    CALENDAR_NOT_CONNECTED = "calendar_not_connected"
    EXTERNAL_AUTH = "external_auth_error"
    EXTERNAL_API = "external_api_error"
    STORE = "store_error"
    INTERNAL = "internal_error"


class AppError(Exception):
    """Base exception for all classified application errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.details = details

    def __repr__(self) -> str:
        return f"<{type(self).__name__} kind={self.kind.value} status={self.http_status} message={self.message!r}>"


class ValidationError(AppError):
    """Malformed or out-of-range caller input. Never reaches the provider."""

    kind = ErrorKind.VALIDATION


class CalendarNotConnected(AppError):
    """The user record exists but its calendar link is marked disconnected."""

    kind = ErrorKind.CALENDAR_NOT_CONNECTED


class Unauthenticated(AppError):
    """No usable session; the client should show the login screen."""

    kind = ErrorKind.UNAUTHENTICATED


class ReauthRequired(AppError):
    """Session existed but its Google token is unusable and cannot be refreshed."""

    kind = ErrorKind.REAUTH_REQUIRED


class ExternalAuthError(AppError):
    """Google rejected a token exchange, refresh or identity lookup."""

    kind = ErrorKind.EXTERNAL_AUTH


class ExternalApiError(AppError):
    """
    Google Calendar rejected a call.

    ``http_status`` is the provider's status code (None for transport
    failures) and ``response`` the raw body, kept for logging only.
    """

    kind = ErrorKind.EXTERNAL_API

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        response: Any = None,
        details: Any = None,
    ):
        super().__init__(message, http_status=http_status, details=details)
        self.response = response


class StoreError(AppError):
    """A write to the user or session store failed."""

    kind = ErrorKind.STORE


# ---------------------------------------------------------------------------
# HTTP MAPPING
# ---------------------------------------------------------------------------

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CALENDAR_NOT_CONNECTED: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.REAUTH_REQUIRED: 401,
    ErrorKind.EXTERNAL_AUTH: 401,
    ErrorKind.STORE: 500,
    ErrorKind.INTERNAL: 500,
}

# Provider statuses that are passed through to the client unchanged
PASSTHROUGH_PROVIDER_STATUSES = (401, 403, 404)


def status_for(error: AppError) -> int:
    """Resolve the HTTP status the adapter should send for ``error``."""
    if error.kind is ErrorKind.EXTERNAL_API:
        if error.http_status in PASSTHROUGH_PROVIDER_STATUSES:
            return error.http_status
        return 500
    return _STATUS_BY_KIND[error.kind]


def needs_reauth(error: AppError) -> bool:
    """Whether the client should be told to reconnect rather than plain login."""
    if error.kind in (ErrorKind.REAUTH_REQUIRED, ErrorKind.EXTERNAL_AUTH):
        return True
    return error.kind is ErrorKind.EXTERNAL_API and error.http_status == 401
