"""
Base classes and data structures for identity-provider integrations.

EnvironmentProvider is the contract the OAuth flow and the session gate code
against. GoogleAuthClient implements it against Google's endpoints; tests
substitute an in-memory fake.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

# Provider errors live with the rest of the taxonomy; re-exported for clients
from calendar_app.core.errors import ExternalApiError, ExternalAuthError

__all__ = [
    "EnvironmentProvider",
    "ExternalApiError",
    "ExternalAuthError",
    "OAuthTokens",
    "UserInfo",
]


# ---------------------------------------------------------------------------
# DATA STRUCTURES
# ---------------------------------------------------------------------------


@dataclass
class OAuthTokens:
    """
    Token data returned by a code exchange or a refresh.

    refresh_token is only set when the provider issued one in this response.
    """
    access_token: str
    expires_at: datetime
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    scopes: Optional[List[str]] = None


@dataclass
class UserInfo:
    """Identity of the account that granted access."""
    provider_user_id: str  # Google's 'sub' / 'id'
    email: Optional[str] = None
    name: Optional[str] = None
    picture_url: Optional[str] = None


# ---------------------------------------------------------------------------
# ABSTRACT BASE CLASS
# ---------------------------------------------------------------------------


class EnvironmentProvider(ABC):
    """
    Sign-in provider: consent URL, code exchange, refresh and identity.

    Implementations raise ExternalAuthError for every failure.
    """

    provider_name: str = ""

    @abstractmethod
    def build_authorization_url(self, state: Optional[str] = None) -> str:
        """Build the consent-screen URL carrying ``state``."""

    @abstractmethod
    async def exchange_code_for_tokens(self, code: str) -> OAuthTokens:
        """Exchange an authorization code for tokens."""

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str) -> OAuthTokens:
        """Mint a new access token from a refresh token."""

    @abstractmethod
    async def get_user_info(self, access_token: str) -> UserInfo:
        """Fetch the identity behind ``access_token``."""
