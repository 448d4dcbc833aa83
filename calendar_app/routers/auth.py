"""
Auth Router - Google sign-in endpoints and the session cookie.

Endpoints:
==========
- GET  /auth/google          → Consent-screen URL for the frontend to open
- GET  /auth/google/callback → Google's redirect target; sets the session
                               cookie and sends the browser back to the frontend
- GET  /auth/status          → Who is signed in
- POST /auth/logout          → End the session and clear the cookie

OAuth Flow:
===========
1. Frontend calls GET /auth/google and navigates to the returned URL
2. User grants permissions on Google's consent screen
3. Google redirects to /auth/google/callback with code and state
4. Backend exchanges the code, stores the user, starts a session
5. Browser lands on FRONTEND_URL?auth=success (or ?auth=error&message=...)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from calendar_app.core.config import Settings
from calendar_app.core.errors import StoreError
from calendar_app.deps import get_auth_flow, get_session_token, get_settings
from calendar_app.schemas.auth import AuthStatusResponse, AuthUrlResponse
from calendar_app.schemas.common import MessageResponse
from calendar_app.services.auth_flow import AuthFlowService


logger = logging.getLogger("calendar_app.routers.auth")


# ---------------------------------------------------------------------------
# ROUTER SETUP
# ---------------------------------------------------------------------------
router = APIRouter(prefix="/auth", tags=["auth"])


# ---------------------------------------------------------------------------
# SESSION COOKIE
# ---------------------------------------------------------------------------

def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    """
    HttpOnly so scripts cannot read it; Secure with SameSite=None in
    production so a frontend on another site can send it.
    """
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_TTL_HOURS * 3600,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite=settings.cookie_samesite,
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    # Attributes must match the ones the cookie was set with
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite=settings.cookie_samesite,
    )


# ---------------------------------------------------------------------------
# ENDPOINTS
# ---------------------------------------------------------------------------

@router.get("/google", response_model=AuthUrlResponse)
async def google_login(flow: AuthFlowService = Depends(get_auth_flow)):
    """
    Return the Google consent-screen URL.

    The frontend navigates the browser there; the URL carries a signed,
    short-lived state that the callback checks.
    """
    return {"authUrl": flow.begin_login()}


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: Optional[str] = Query(None, description="Authorization code from Google"),
    state: Optional[str] = Query(None, description="Signed state from GET /auth/google"),
    error: Optional[str] = Query(None, description="Error code from Google"),
    flow: AuthFlowService = Depends(get_auth_flow),
    settings: Settings = Depends(get_settings),
):
    """
    Handle Google's redirect after the consent screen.

    Always answers with a redirect to the frontend. The session cookie is
    only set when the user record was saved and the session created.
    """
    result = await flow.handle_callback(
        code=code,
        provider_error=error,
        state=state,
        user_agent=request.headers.get("user-agent"),
    )

    response = RedirectResponse(url=result.redirect_url, status_code=302)
    if result.session_token:
        set_session_cookie(response, result.session_token, settings)
    return response


@router.get("/status", response_model=AuthStatusResponse)
def auth_status(
    session_token: Optional[str] = Depends(get_session_token),
    flow: AuthFlowService = Depends(get_auth_flow),
):
    """
    Report the signed-in user, without calling Google.

    Never fails with 401; a missing or stale session is reported as
    ``isAuthenticated: false``.
    """
    try:
        return flow.status(session_token)
    except StoreError:
        logger.exception("Failed to check authentication status")
        return JSONResponse(
            status_code=500,
            content={
                "isAuthenticated": False,
                "user": None,
                "error": "Failed to check authentication status",
            },
        )


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    session_token: Optional[str] = Depends(get_session_token),
    flow: AuthFlowService = Depends(get_auth_flow),
    settings: Settings = Depends(get_settings),
):
    """End the session and clear the session cookie."""
    try:
        flow.logout(session_token)
    except StoreError as e:
        raise StoreError("Failed to logout", details=e.details)

    clear_session_cookie(response, settings)
    return {"message": "Logged out successfully"}
