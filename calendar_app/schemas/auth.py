"""
Auth schemas - response bodies for the sign-in endpoints.
"""

from typing import Optional

from calendar_app.schemas.common import CamelModel


class AuthUrlResponse(CamelModel):
    """
    Response for GET /auth/google.

    Example:
    {"authUrl": "https://accounts.google.com/o/oauth2/v2/auth?client_id=..."}
    """
    auth_url: str


class AuthUserOut(CamelModel):
    """
    The signed-in user as the dashboard sees it. Tokens are never included.
    """
    id: str
    name: Optional[str] = None
    email: str
    picture: Optional[str] = None
    is_calendar_connected: bool


class AuthStatusResponse(CamelModel):
    """
    Response for GET /auth/status.

    Example:
    {
        "isAuthenticated": true,
        "user": {
            "id": "550e8400-e29b-41d4-a716-446655440000",
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "picture": "https://lh3.googleusercontent.com/a/...",
            "isCalendarConnected": true
        }
    }
    """
    is_authenticated: bool
    user: Optional[AuthUserOut] = None
