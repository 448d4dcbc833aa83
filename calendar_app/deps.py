"""
Dependencies module - reusable FastAPI dependencies for route handlers.

Long-lived collaborators (settings, Google clients, refresh locks) live on
``app.state`` and are built once by ``create_app``. Request-scoped ones
(stores, services) are assembled here per request around the request's
database session. Tests swap any of them through ``app.dependency_overrides``.

The main dependency is get_current_user, which runs the session gate.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from calendar_app.core.config import Settings
from calendar_app.db.session import get_db
from calendar_app.environments.base import EnvironmentProvider
from calendar_app.models.user import User
from calendar_app.services.auth_flow import AuthFlowService
from calendar_app.services.calendar_service import CalendarClientFactory, CalendarService
from calendar_app.services.session_gate import RefreshLocks, SessionAuthGate
from calendar_app.services.session_store import SessionStore
from calendar_app.services.user_store import UserStore


# ---------------------------------------------------------------------------
# APP-LEVEL COLLABORATORS
# ---------------------------------------------------------------------------

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_client(request: Request) -> EnvironmentProvider:
    return request.app.state.auth_client


def get_calendar_client_factory(request: Request) -> CalendarClientFactory:
    return request.app.state.calendar_client_factory


def get_refresh_locks(request: Request) -> RefreshLocks:
    return request.app.state.refresh_locks


# ---------------------------------------------------------------------------
# REQUEST-SCOPED COLLABORATORS
# ---------------------------------------------------------------------------

def get_session_token(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Optional[str]:
    """The opaque session id from the session cookie, if the browser sent one."""
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def get_user_store(db: Session = Depends(get_db)) -> UserStore:
    return UserStore(db)


def get_session_store(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> SessionStore:
    return SessionStore(db, ttl_hours=settings.SESSION_TTL_HOURS)


def get_auth_flow(
    settings: Settings = Depends(get_settings),
    auth_client: EnvironmentProvider = Depends(get_auth_client),
    users: UserStore = Depends(get_user_store),
    sessions: SessionStore = Depends(get_session_store),
) -> AuthFlowService:
    return AuthFlowService(settings, auth_client, users, sessions)


async def get_current_user(
    session_token: Optional[str] = Depends(get_session_token),
    settings: Settings = Depends(get_settings),
    auth_client: EnvironmentProvider = Depends(get_auth_client),
    users: UserStore = Depends(get_user_store),
    sessions: SessionStore = Depends(get_session_store),
    locks: RefreshLocks = Depends(get_refresh_locks),
) -> User:
    """
    Resolve the session cookie to a user with a usable Google token.

    Any route that includes `current_user: User = Depends(get_current_user)`
    requires a live session. Failures are raised as Unauthenticated or
    ReauthRequired and rendered by the application's error handler.
    """
    gate = SessionAuthGate(
        users=users,
        sessions=sessions,
        auth_client=auth_client,
        locks=locks,
        expose_details=not settings.is_production,
    )
    return await gate.authenticate(session_token)


def get_calendar_service(
    current_user: User = Depends(get_current_user),
    client_factory: CalendarClientFactory = Depends(get_calendar_client_factory),
) -> CalendarService:
    return CalendarService(current_user, client_factory)
