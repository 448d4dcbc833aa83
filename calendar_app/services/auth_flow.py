"""
Auth flow service - the Google sign-in round trip and session lifecycle.

    begin_login()       -> consent URL with a signed state
    handle_callback()   -> exchange code, upsert user, start session,
                           redirect URL for the frontend
    status()            -> who is signed in, if anyone
    logout()            -> end the session

The callback never raises: every outcome is a redirect to FRONTEND_URL with
``auth=success`` or ``auth=error&message=...``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

from calendar_app.core.config import Settings
from calendar_app.core.errors import AppError
from calendar_app.core.security import create_oauth_state, verify_oauth_state
from calendar_app.environments.base import EnvironmentProvider, OAuthTokens, UserInfo
from calendar_app.models.user import User
from calendar_app.services.session_store import SessionStore
from calendar_app.services.user_store import UserStore

logger = logging.getLogger("calendar_app.services.auth_flow")


# ---------------------------------------------------------------------------
# PROVIDER ERROR MESSAGES
# ---------------------------------------------------------------------------
# Google's ``error`` query parameter -> text shown on the login screen

OAUTH_ERROR_MESSAGES: Dict[str, str] = {
    "access_denied": "Access was denied. Please try again or contact the developer.",
    "unauthorized_client": "App is not authorized. Please contact the developer.",
    "invalid_request": "Invalid OAuth request.",
    "unsupported_response_type": "OAuth configuration error.",
    "invalid_scope": "Invalid permissions requested.",
    "server_error": "Google server error. Please try again.",
    "temporarily_unavailable": "Service temporarily unavailable. Please try again.",
}

DEFAULT_OAUTH_ERROR_MESSAGE = "OAuth authentication failed"


def map_oauth_error(code: Optional[str]) -> str:
    """Human-readable text for a provider error code; never fails."""
    return OAUTH_ERROR_MESSAGES.get(code or "", DEFAULT_OAUTH_ERROR_MESSAGE)


@dataclass
class CallbackResult:
    """Where to send the browser, and the new session token on success."""
    redirect_url: str
    session_token: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.session_token is not None


class AuthFlowService:
    """
    Orchestrates sign-in against a provider and the local stores.

    Example:
        service = AuthFlowService(settings, auth_client, UserStore(db), SessionStore(db))
        url = service.begin_login()
        result = await service.handle_callback(code="4/0Ab...", provider_error=None, state=state)
    """

    def __init__(
        self,
        settings: Settings,
        auth_client: EnvironmentProvider,
        users: UserStore,
        sessions: SessionStore,
    ):
        self.settings = settings
        self.auth_client = auth_client
        self.users = users
        self.sessions = sessions

    # -------------------------------------------------------------------------
    # LOGIN
    # -------------------------------------------------------------------------

    def begin_login(self) -> str:
        """Return the consent-screen URL with a fresh signed state."""
        return self.auth_client.build_authorization_url(state=create_oauth_state(self.settings))

    async def handle_callback(
        self,
        code: Optional[str],
        provider_error: Optional[str],
        state: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> CallbackResult:
        """
        Complete the OAuth round trip.

        The user record is committed before the session is created, so a
        session never points at an unsaved user.
        """
        if provider_error:
            logger.warning("OAuth error from provider", extra={"oauth_error": provider_error})
            return CallbackResult(self._redirect(auth="error", message=map_oauth_error(provider_error)))

        if not code:
            return CallbackResult(self._redirect(auth="error", message="no_code"))

        # A missing state is tolerated; a present one must be ours and unexpired
        if state is not None and not verify_oauth_state(self.settings, state):
            logger.warning("OAuth callback carried an invalid state")
            return CallbackResult(self._redirect(auth="error", message="invalid_state"))

        try:
            tokens = await self.auth_client.exchange_code_for_tokens(code)
            identity = await self.auth_client.get_user_info(tokens.access_token)
            user = self._upsert_user(identity, tokens)
            session_token = self.sessions.create(user.id, user_agent=user_agent)
        except AppError as e:
            logger.error(
                f"OAuth callback failed: {e.message}",
                extra={"error_kind": e.kind.value, "details": e.details},
            )
            return CallbackResult(self._redirect(auth="error", message=DEFAULT_OAUTH_ERROR_MESSAGE))

        logger.info("User signed in", extra={"user_id": str(user.id)})
        return CallbackResult(self._redirect(auth="success"), session_token=session_token)

    def _upsert_user(self, identity: UserInfo, tokens: OAuthTokens) -> User:
        user = self.users.find_by_google_id(identity.provider_user_id)

        if user is None:
            user = User(
                google_id=identity.provider_user_id,
                email=identity.email or "",
                name=identity.name,
                picture_url=identity.picture_url,
            )
            logger.info("Creating user for new Google account")
        else:
            if identity.email:
                user.email = identity.email
            if identity.name:
                user.name = identity.name
            if identity.picture_url:
                user.picture_url = identity.picture_url

        user.apply_tokens(tokens.access_token, tokens.expires_at, tokens.refresh_token)
        user.is_calendar_connected = True
        return self.users.save(user)

    def _redirect(self, **params: str) -> str:
        return f"{self.settings.FRONTEND_URL.rstrip('/')}?{urlencode(params, quote_via=quote)}"

    # -------------------------------------------------------------------------
    # STATUS / LOGOUT
    # -------------------------------------------------------------------------

    def status(self, session_token: Optional[str]) -> Dict[str, Any]:
        """
        Report the signed-in user without touching Google.

        A session whose user no longer exists is destroyed.
        """
        session = self.sessions.resolve(session_token)
        if session is None:
            return {"isAuthenticated": False, "user": None}

        user = self.users.get(session.user_id)
        if user is None:
            self.sessions.destroy(session_token)
            return {"isAuthenticated": False, "user": None}

        return {
            "isAuthenticated": True,
            "user": {
                "id": str(user.id),
                "name": user.name,
                "email": user.email,
                "picture": user.picture_url,
                "isCalendarConnected": user.is_calendar_connected,
            },
        }

    def logout(self, session_token: Optional[str]) -> None:
        self.sessions.destroy(session_token)
