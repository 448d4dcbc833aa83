"""
User model - one linked Google account and its current OAuth tokens.

A user is identified by Google's stable subject id (``google_id``). The
record is created on the first successful OAuth callback, updated on every
re-consent and token refresh, and never deleted by the application: logging
out only ends the session.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from calendar_app.db.base import Base


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as SQLite returns them) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class User(Base):
    """
    SQLAlchemy ORM model for the 'users' table.

    Schema discipline:
    - google_id: required and unique, the natural key for upserts
    - email: required but not unique (Google accounts can share aliases)
    - access_token: optional, so a record can exist before the first
      successful token fetch
    """

    __tablename__ = "users"

    # ---------------------------------------------------------------------------
    # IDENTITY
    # ---------------------------------------------------------------------------
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # google_id: Google's 'sub' claim, immutable once written
    google_id: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)

    email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)

    # ---------------------------------------------------------------------------
    # PROFILE INFORMATION
    # ---------------------------------------------------------------------------
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    picture_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    # ---------------------------------------------------------------------------
    # TOKEN DATA
    # ---------------------------------------------------------------------------
    # access_token and token_expiry are always written together (apply_tokens)
    access_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    token_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # is_calendar_connected: forced False when a refresh fails, so the record
    # survives while the dashboard shows the calendar as disconnected
    is_calendar_connected: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # ---------------------------------------------------------------------------
    # TIMESTAMPS
    # ---------------------------------------------------------------------------
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # ---------------------------------------------------------------------------
    # HELPER METHODS
    # ---------------------------------------------------------------------------
    def needs_refresh(self, now: Optional[datetime] = None) -> bool:
        """
        Check if the access token must be refreshed before use.

        Returns:
            True if now >= token_expiry (the boundary counts as expired)
            True if token_expiry is not set
        """
        if self.token_expiry is None:
            return True
        now = now or datetime.now(timezone.utc)
        return as_utc(now) >= as_utc(self.token_expiry)

    def apply_tokens(
        self,
        access_token: str,
        expires_at: datetime,
        refresh_token: Optional[str] = None,
    ) -> None:
        """
        Store a freshly issued access token together with its expiry.

        The refresh token is only replaced when Google sent a new one; an
        absent refresh token never clears the stored value.
        """
        self.access_token = access_token
        self.token_expiry = expires_at
        if refresh_token:
            self.refresh_token = refresh_token

    def __repr__(self) -> str:
        return f"<User(id={self.id}, google_id='{self.google_id}', email='{self.email}')>"
