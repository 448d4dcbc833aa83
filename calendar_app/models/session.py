"""
AuthSession model - server-side session referenced by the session cookie.

The browser only ever holds the opaque ``token``. The row points at a user
(reference, not ownership) and expires after SESSION_TTL_HOURS.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from calendar_app.db.base import Base
from calendar_app.models.user import as_utc


class AuthSession(Base):
    __tablename__ = "auth_sessions"

    token: Mapped[str] = mapped_column(String(128), primary_key=True)

    # No foreign key cascade: a missing user is detected and the session destroyed
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)

    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return as_utc(now) >= as_utc(self.expires_at)

    def __repr__(self) -> str:
        return f"<AuthSession(user_id={self.user_id}, expires_at={self.expires_at})>"
