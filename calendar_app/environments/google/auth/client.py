"""
Google sign-in: the OAuth 2.0 authorization code grant with offline access.

Call order:
1. build_authorization_url() → User redirected to Google's consent screen
2. exchange_code_for_tokens() → Called in the callback, gets tokens
3. get_user_info() → Fetch the Google account behind the token
4. refresh_access_token() → Renew expired access tokens

Every failure, whether Google answered with an error or the request never
completed, is raised as ExternalAuthError.

References:
===========
- OAuth 2.0: https://developers.google.com/identity/protocols/oauth2
- Token endpoint: https://oauth2.googleapis.com/token
- Userinfo: https://www.googleapis.com/oauth2/v2/userinfo
"""

import logging
import secrets
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError as PydanticValidationError

from calendar_app.core.config import Settings
from calendar_app.environments.base import (
    EnvironmentProvider,
    ExternalAuthError,
    OAuthTokens,
    UserInfo,
)
from calendar_app.environments.google.auth.schemas import (
    CALENDAR_SCOPES,
    PROFILE_SCOPES,
    GoogleTokenResponse,
    GoogleUserInfo,
)


logger = logging.getLogger("calendar_app.environments.google.auth")


class GoogleAuthClient(EnvironmentProvider):
    """
    Token and identity calls against Google, one client per application.

        client = GoogleAuthClient.from_settings(settings)
        url = client.build_authorization_url(state=create_oauth_state(settings))
        tokens = await client.exchange_code_for_tokens(code)
        identity = await client.get_user_info(tokens.access_token)

    ``transport`` lets tests route requests to an httpx.MockTransport.
    """

    provider_name = "google"

    # Google OAuth endpoints
    AUTHORIZATION_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self._transport = transport

        if not self.client_id or not self.client_secret:
            logger.warning(
                "GOOGLE_CLIENT_ID or GOOGLE_CLIENT_SECRET is empty; sign-in will fail"
            )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "GoogleAuthClient":
        return cls(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_uri=settings.GOOGLE_REDIRECT_URI,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    # -------------------------------------------------------------------------
    # AUTHORIZATION URL
    # -------------------------------------------------------------------------

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        """
        Generate the Google OAuth consent URL.

        Requests profile, email and calendar-events scopes with
        access_type=offline and prompt=consent, so Google issues a refresh
        token on every consent, and include_granted_scopes=true for
        incremental authorization.

        Args:
            state: Anti-replay value echoed back to the callback; a random
                one is generated when omitted

        Returns:
            The consent URL the browser should open
        """
        if state is None:
            state = self.generate_state()

        scopes = PROFILE_SCOPES + CALENDAR_SCOPES
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes),
            "state": state,
            "access_type": "offline",
            "prompt": "consent",
            "include_granted_scopes": "true",
        }

        auth_url = f"{self.AUTHORIZATION_URL}?{urlencode(params)}"

        logger.info(
            f"Generated Google auth URL with {len(scopes)} scopes",
            extra={"scopes": scopes},
        )

        return auth_url

    # -------------------------------------------------------------------------
    # TOKEN ENDPOINT
    # -------------------------------------------------------------------------

    async def _post_token_request(self, data: Dict[str, str], action: str) -> GoogleTokenResponse:
        async with self._http() as client:
            try:
                response = await client.post(self.TOKEN_URL, data=data)
            except httpx.RequestError as e:
                logger.error(f"Network error during {action}: {e}")
                raise ExternalAuthError(f"Network error during {action}", details=str(e))

        if response.status_code != 200:
            error_msg = _describe_error(response)
            logger.error(
                f"{action.capitalize()} failed: {error_msg}",
                extra={"status_code": response.status_code},
            )
            raise ExternalAuthError(
                f"{action.capitalize()} failed",
                http_status=response.status_code,
                details=error_msg,
            )

        try:
            return GoogleTokenResponse(**response.json())
        except (ValueError, PydanticValidationError) as e:
            logger.error(f"Malformed token response during {action}: {e}")
            raise ExternalAuthError(f"{action.capitalize()} failed", details="malformed token response")

    async def exchange_code_for_tokens(self, code: str) -> OAuthTokens:
        """
        Exchange an authorization code for access and refresh tokens.

        Raises:
            ExternalAuthError: Google rejected the code or was unreachable
        """
        token_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        }

        logger.info("Exchanging authorization code")
        token_response = await self._post_token_request(token_data, "token exchange")

        logger.info(
            "Authorization code exchanged",
            extra={
                "has_refresh_token": token_response.refresh_token is not None,
                "expires_in": token_response.expires_in,
                "scopes": token_response.get_scopes_list(),
            },
        )

        return OAuthTokens(
            access_token=token_response.access_token,
            token_type=token_response.token_type,
            refresh_token=token_response.refresh_token,
            expires_at=token_response.get_expires_at(),
            scopes=token_response.get_scopes_list(),
        )

    async def refresh_access_token(self, refresh_token: str) -> OAuthTokens:
        """
        Use a refresh token to get a new access token.

        Returns:
            OAuthTokens whose refresh_token is set only if Google rotated it

        Raises:
            ExternalAuthError: The refresh token is invalid, revoked, or
            Google could not be reached
        """
        if not refresh_token:
            raise ExternalAuthError("No refresh token available")

        refresh_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        logger.info("Refreshing Google access token")
        token_response = await self._post_token_request(refresh_data, "token refresh")

        logger.info(
            "Access token refreshed",
            extra={
                "expires_in": token_response.expires_in,
                "rotated_refresh_token": token_response.refresh_token is not None,
            },
        )

        return OAuthTokens(
            access_token=token_response.access_token,
            token_type=token_response.token_type,
            refresh_token=token_response.refresh_token,
            expires_at=token_response.get_expires_at(),
            scopes=token_response.get_scopes_list(),
        )

    # -------------------------------------------------------------------------
    # USER INFO
    # -------------------------------------------------------------------------

    async def get_user_info(self, access_token: str) -> UserInfo:
        """
        Get the Google profile behind ``access_token``.

        Raises:
            ExternalAuthError: The lookup failed or returned no subject id
        """
        logger.info("Looking up Google account")

        async with self._http() as client:
            try:
                response = await client.get(
                    self.USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
            except httpx.RequestError as e:
                logger.error("Userinfo request failed", extra={"error": str(e)})
                raise ExternalAuthError("Network error fetching user info", details=str(e))

        if response.status_code != 200:
            logger.error(
                f"Failed to fetch user info: {_describe_error(response)}",
                extra={"status_code": response.status_code},
            )
            raise ExternalAuthError("Failed to fetch user info", http_status=response.status_code)

        try:
            google_user = GoogleUserInfo(**response.json())
        except (ValueError, PydanticValidationError) as e:
            raise ExternalAuthError("Failed to fetch user info", details=str(e))

        subject = google_user.get_subject()
        if not subject:
            raise ExternalAuthError("Google profile is missing an account id")

        logger.info("Google account resolved")

        return UserInfo(
            provider_user_id=subject,
            email=google_user.email,
            name=google_user.name,
            picture_url=google_user.picture,
        )

    # -------------------------------------------------------------------------
    # UTILITY METHODS
    # -------------------------------------------------------------------------

    @staticmethod
    def generate_state() -> str:
        """Generate a random URL-safe state value (32 bytes of entropy)."""
        return secrets.token_urlsafe(32)


def _describe_error(response: httpx.Response) -> str:
    """Best-effort error text from a Google error body."""
    try:
        data: Any = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            return str(error.get("message", error))
        return str(data.get("error_description") or error or data)
    return response.text
