"""
Security utilities - session identifiers and the signed OAuth state parameter.
"""

import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from calendar_app.core.config import Settings

# Marks a JWT as an OAuth state token so no other signed value can stand in for it
STATE_PURPOSE = "google_oauth_state"


def generate_session_token() -> str:
    """
    Generate an opaque session identifier for the session cookie.

    Returns:
        43-character URL-safe string (32 bytes of entropy)
    """
    return secrets.token_urlsafe(32)


def create_oauth_state(settings: Settings, expires_delta: timedelta | None = None) -> str:
    """
    Create the anti-replay ``state`` value sent to Google's consent screen.

    The value is a short-lived JWT signed with SECRET_KEY, so the callback can
    verify it without keeping server-side state. Every call embeds a fresh
    nonce, so two login attempts never share a state.

    Args:
        settings: Application settings (SECRET_KEY, ALGORITHM, expiry)
        expires_delta: Optional custom lifetime

    Returns:
        Signed state string
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta
        if expires_delta
        else timedelta(minutes=settings.OAUTH_STATE_EXPIRE_MINUTES)
    )
    to_encode = {
        "purpose": STATE_PURPOSE,
        "nonce": secrets.token_urlsafe(16),
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_oauth_state(settings: Settings, state: str) -> bool:
    """
    Check that ``state`` was issued by this server and has not expired.

    Returns:
        True if the signature, expiry and purpose all check out
    """
    try:
        payload = jwt.decode(state, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return False
    return payload.get("purpose") == STATE_PURPOSE
