"""
Session authentication gate - resolves the session cookie to a live user
whose Google access token is usable.

Executed on every protected request, in this order:
1. No live session                -> Unauthenticated
2. Session points at a missing user -> destroy session, Unauthenticated
3. Access token expired:
   - no refresh token             -> destroy session, disconnect, ReauthRequired
   - refresh succeeds             -> persist new token, continue
   - refresh fails                -> destroy session, disconnect, ReauthRequired
4. No access token at all         -> ReauthRequired (session kept)

Refreshes for the same user are serialized within the process. The second
request through the lock re-reads the record and finds it already fresh.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from calendar_app.core.errors import ExternalAuthError, ReauthRequired, Unauthenticated
from calendar_app.environments.base import EnvironmentProvider
from calendar_app.models.user import User
from calendar_app.services.session_store import SessionStore
from calendar_app.services.user_store import UserStore

logger = logging.getLogger("calendar_app.services.session_gate")


class RefreshLocks:
    """
    Per-user asyncio locks, shared by every request in one process.

    A lock exists only while some request holds or waits for it.
    """

    def __init__(self):
        self._locks: Dict[uuid.UUID, asyncio.Lock] = {}
        self._holders: Dict[uuid.UUID, int] = {}

    def active_count(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, user_id: uuid.UUID) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._holders[user_id] = self._holders.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[user_id] -= 1
            if self._holders[user_id] == 0:
                del self._holders[user_id]
                del self._locks[user_id]


class SessionAuthGate:
    """
    Turns a session token into an authenticated ``User``.

    Args:
        users: User store bound to the request's database session
        sessions: Session store bound to the same database session
        auth_client: OAuth provider used for token refresh
        locks: Process-wide refresh locks
        expose_details: Include provider error text in ReauthRequired
            (disabled in production)
    """

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        auth_client: EnvironmentProvider,
        locks: RefreshLocks,
        expose_details: bool = False,
    ):
        self.users = users
        self.sessions = sessions
        self.auth_client = auth_client
        self.locks = locks
        self.expose_details = expose_details

    async def authenticate(self, session_token: Optional[str]) -> User:
        session = self.sessions.resolve(session_token)
        if session is None:
            raise Unauthenticated("Not authenticated")

        user = self.users.get(session.user_id)
        if user is None:
            logger.warning("Session references a missing user", extra={"user_id": str(session.user_id)})
            self.sessions.destroy(session_token)
            raise Unauthenticated("User not found")

        if user.needs_refresh():
            async with self.locks.hold(user.id):
                # Another request may have refreshed while we waited
                self.users.reload(user)
                if user.needs_refresh():
                    await self._refresh(user, session_token)

        if not user.access_token:
            raise ReauthRequired("No access token available - please re-authenticate")

        return user

    async def _refresh(self, user: User, session_token: Optional[str]) -> None:
        if not user.refresh_token:
            logger.warning("Access token expired and no refresh token stored", extra={"user_id": str(user.id)})
            self._disconnect(user, session_token)
            raise ReauthRequired("Token refresh failed - please re-authenticate")

        try:
            tokens = await self.auth_client.refresh_access_token(user.refresh_token)
        except ExternalAuthError as e:
            logger.error(
                f"Token refresh failed: {e.message}",
                extra={"user_id": str(user.id), "details": e.details},
            )
            self._disconnect(user, session_token)
            raise ReauthRequired(
                "Token refresh failed - please re-authenticate",
                details=e.message if self.expose_details else None,
            )

        user.apply_tokens(tokens.access_token, tokens.expires_at, tokens.refresh_token)
        self.users.save(user)
        logger.info("Access token refreshed", extra={"user_id": str(user.id)})

    def _disconnect(self, user: User, session_token: Optional[str]) -> None:
        # The session ends even when the user row cannot be written
        try:
            self.sessions.destroy(session_token)
        finally:
            user.is_calendar_connected = False
            self.users.save(user)
