"""
Google OAuth integration: token client and response schemas.
"""

from calendar_app.environments.google.auth.client import GoogleAuthClient
from calendar_app.environments.google.auth.schemas import (
    CALENDAR_SCOPES,
    PROFILE_SCOPES,
    GoogleTokenResponse,
    GoogleUserInfo,
)

__all__ = [
    "CALENDAR_SCOPES",
    "PROFILE_SCOPES",
    "GoogleAuthClient",
    "GoogleTokenResponse",
    "GoogleUserInfo",
]
