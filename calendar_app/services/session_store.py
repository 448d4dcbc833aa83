"""
Session store - server-side sessions behind the session cookie.

A session is an ``auth_sessions`` row keyed by an opaque random token. The
cookie carries only that token; the row carries the user reference and the
expiry. Expired rows are deleted the first time they are resolved.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from calendar_app.core.errors import StoreError
from calendar_app.core.security import generate_session_token
from calendar_app.models.session import AuthSession

logger = logging.getLogger("calendar_app.services.session_store")


class SessionStore:
    """
    Creates, resolves and destroys sessions.

    Example:
        store = SessionStore(db, ttl_hours=24)
        token = store.create(user.id)          # set as cookie value
        session = store.resolve(token)         # None if unknown or expired
        store.destroy(token)                   # logout
    """

    def __init__(self, db: Session, ttl_hours: int = 24):
        self.db = db
        self.ttl = timedelta(hours=ttl_hours)

    def create(self, user_id: uuid.UUID, user_agent: Optional[str] = None) -> str:
        """
        Start a session for ``user_id``.

        Returns:
            The session token to place in the cookie
        """
        now = datetime.now(timezone.utc)
        session = AuthSession(
            token=generate_session_token(),
            user_id=user_id,
            user_agent=user_agent[:512] if user_agent else None,
            created_at=now,
            expires_at=now + self.ttl,
        )
        self.db.add(session)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Session write failed")
            raise StoreError("Failed to create session", details=str(e))

        logger.info("Session created", extra={"user_id": str(user_id)})
        return session.token

    def resolve(self, token: Optional[str]) -> Optional[AuthSession]:
        """Return the live session for ``token``, or None."""
        if not token:
            return None

        session = self.db.query(AuthSession).filter(AuthSession.token == token).first()
        if session is None:
            return None

        if session.is_expired():
            logger.info("Session expired", extra={"user_id": str(session.user_id)})
            self._delete(session)
            return None

        return session

    def destroy(self, token: Optional[str]) -> None:
        """End the session for ``token``. Unknown tokens are ignored."""
        if not token:
            return
        session = self.db.query(AuthSession).filter(AuthSession.token == token).first()
        if session is not None:
            self._delete(session)
            logger.info("Session destroyed", extra={"user_id": str(session.user_id)})

    def _delete(self, session: AuthSession) -> None:
        self.db.delete(session)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Session delete failed")
            raise StoreError("Failed to destroy session", details=str(e))
