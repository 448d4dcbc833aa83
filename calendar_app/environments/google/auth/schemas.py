"""
Payloads exchanged with Google's OAuth endpoints.

The token endpoint answers the code exchange and the refresh grant with the
same shape; the userinfo endpoint identifies the account behind a token.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# OAUTH SCOPE CONSTANTS
# ---------------------------------------------------------------------------
# Reference: https://developers.google.com/identity/protocols/oauth2/scopes

# Profile scopes - name, picture and email of the account
PROFILE_SCOPES = [
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
]

# Calendar scopes - read/write access to events only (no calendar settings)
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar.events",
]

# Google access tokens live about an hour; used when expires_in is missing
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600


# ---------------------------------------------------------------------------
# TOKEN RESPONSES
# ---------------------------------------------------------------------------

class GoogleTokenResponse(BaseModel):
    """
    Token grant result.

    ``refresh_token`` is present on the first consent (access_type=offline,
    prompt=consent) and only occasionally on refreshes, when Google rotates it.
    """
    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = Field(None, description="Lifetime in seconds, typically 3599")
    refresh_token: Optional[str] = None
    scope: Optional[str] = Field(None, description="Granted scopes, space separated")
    id_token: Optional[str] = None

    def get_scopes_list(self) -> List[str]:
        """Granted scopes as a list."""
        if self.scope:
            return self.scope.split()
        return []

    def get_expires_at(self, now: Optional[datetime] = None) -> datetime:
        """Expiry instant; one hour from now when Google omits expires_in."""
        now = now or datetime.now(timezone.utc)
        seconds = self.expires_in if self.expires_in else DEFAULT_TOKEN_LIFETIME_SECONDS
        return now + timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# USER INFO
# ---------------------------------------------------------------------------

class GoogleUserInfo(BaseModel):
    """
    Account profile behind an access token.

    The v2 endpoint names the subject ``id``, the OpenID endpoint names it
    ``sub``; either is accepted.
    """
    id: Optional[str] = None
    sub: Optional[str] = None
    email: Optional[str] = None
    verified_email: Optional[bool] = None
    name: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    picture: Optional[str] = Field(None, description="Avatar URL")
    locale: Optional[str] = None

    def get_subject(self) -> Optional[str]:
        return self.id or self.sub
