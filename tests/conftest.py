"""
Test configuration and fixtures for pytest.

This module provides shared fixtures used across all tests:
- Test settings (SQLite in-memory, test environment)
- Fake Google OAuth and Calendar clients
- Test application and client (FastAPI TestClient)
- User and session helpers
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Generator, List, Optional
from urllib.parse import urlencode

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from calendar_app.core.config import Settings
from calendar_app.db.session import create_db_engine, create_session_factory, init_db
from calendar_app.deps import get_auth_client, get_calendar_client_factory
from calendar_app.environments.base import EnvironmentProvider, OAuthTokens, UserInfo
from calendar_app.environments.google.calendar.schemas import CalendarEvent, EventCreateRequest
from calendar_app.main import create_app
from calendar_app.models.user import User
from calendar_app.services.session_store import SessionStore


# ---------------------------------------------------------------------------
# FAKE GOOGLE CLIENTS
# ---------------------------------------------------------------------------

def _in_one_hour() -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=1)


class FakeAuthClient(EnvironmentProvider):
    """
    In-memory OAuth provider.

    Tests set ``tokens``, ``identity``, ``exchange_error`` and
    ``refresh_result`` (OAuthTokens or an exception to raise).
    """

    provider_name = "google"

    def __init__(self):
        self.tokens = OAuthTokens(
            access_token="access-1",
            refresh_token="refresh-1",
            expires_at=_in_one_hour(),
        )
        self.identity = UserInfo(
            provider_user_id="google-123",
            email="ada@example.com",
            name="Ada Lovelace",
            picture_url="https://example.com/ada.png",
        )
        self.exchange_error: Optional[Exception] = None
        self.refresh_result: Any = OAuthTokens(
            access_token="access-refreshed",
            expires_at=_in_one_hour(),
        )
        self.refresh_delay = 0.0
        self.exchanged_codes: List[str] = []
        self.refresh_calls: List[str] = []

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        return "https://accounts.example.com/auth?" + urlencode({"state": state or ""})

    async def exchange_code_for_tokens(self, code: str) -> OAuthTokens:
        self.exchanged_codes.append(code)
        if self.exchange_error:
            raise self.exchange_error
        return self.tokens

    async def refresh_access_token(self, refresh_token: str) -> OAuthTokens:
        self.refresh_calls.append(refresh_token)
        if self.refresh_delay:
            await asyncio.sleep(self.refresh_delay)
        if isinstance(self.refresh_result, Exception):
            raise self.refresh_result
        return self.refresh_result

    async def get_user_info(self, access_token: str) -> UserInfo:
        return self.identity


class FakeCalendarClient:
    """
    Stand-in for GoogleCalendarClient that records every call.

    ``error`` is raised by every operation when set; ``list_handler``
    computes list results from the call's keyword arguments.
    """

    def __init__(self):
        self.events = [
            CalendarEvent(
                id="evt-1",
                summary="Standup",
                start={"dateTime": "2025-01-15T10:00:00+00:00"},
                end={"dateTime": "2025-01-15T10:15:00+00:00"},
                htmlLink="https://calendar.google.com/event?eid=evt-1",
            )
        ]
        self.error: Optional[Exception] = None
        self.list_handler: Optional[Callable[..., list]] = None
        self.tokens_seen: List[str] = []
        self.list_calls: List[dict] = []
        self.created: List[EventCreateRequest] = []
        self.deleted: List[str] = []

    def factory(self, access_token: str) -> "FakeCalendarClient":
        self.tokens_seen.append(access_token)
        return self

    async def list_events(self, **kwargs) -> List[CalendarEvent]:
        self.list_calls.append(kwargs)
        if self.error:
            raise self.error
        if self.list_handler:
            return self.list_handler(**kwargs)
        return list(self.events)

    async def create_event(self, request: EventCreateRequest) -> CalendarEvent:
        self.created.append(request)
        if self.error:
            raise self.error
        body = request.to_event_body()
        return CalendarEvent(
            id="evt-new",
            summary=body["summary"],
            description=body["description"],
            start=body["start"],
            end=body["end"],
            htmlLink="https://calendar.google.com/event?eid=evt-new",
        )

    async def delete_event(self, event_id: str) -> bool:
        self.deleted.append(event_id)
        if self.error:
            raise self.error
        return True


# ---------------------------------------------------------------------------
# SETTINGS / APP FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> Settings:
    """Test settings; ignores any local .env file."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        DATABASE_URL="sqlite://",
        SECRET_KEY="test-secret-key",
        GOOGLE_CLIENT_ID="test-client-id",
        GOOGLE_CLIENT_SECRET="test-client-secret",
        FRONTEND_URL="http://localhost:5173",
    )


@pytest.fixture
def fake_auth() -> FakeAuthClient:
    return FakeAuthClient()


@pytest.fixture
def fake_calendar() -> FakeCalendarClient:
    return FakeCalendarClient()


@pytest.fixture
def app(settings: Settings, fake_auth: FakeAuthClient, fake_calendar: FakeCalendarClient) -> FastAPI:
    """
    Application wired to the fake Google clients.
    """
    application = create_app(settings)
    application.dependency_overrides[get_auth_client] = lambda: fake_auth
    application.dependency_overrides[get_calendar_client_factory] = lambda: fake_calendar.factory
    return application


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """
    Test client; entering the context runs the lifespan, which creates the tables.
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db(app: FastAPI, client: TestClient) -> Generator[Session, None, None]:
    """A session on the same in-memory database the app uses."""
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """
    Standalone in-memory database for service-level tests (no app).
    """
    engine = create_db_engine("sqlite://")
    init_db(engine)
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


# ---------------------------------------------------------------------------
# USER / SESSION HELPERS
# ---------------------------------------------------------------------------

def build_user(**overrides) -> User:
    values = {
        "google_id": "google-123",
        "email": "ada@example.com",
        "name": "Ada Lovelace",
        "picture_url": "https://example.com/ada.png",
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "token_expiry": _in_one_hour(),
        "is_calendar_connected": True,
    }
    values.update(overrides)
    return User(**values)


@pytest.fixture
def make_user() -> Callable[..., User]:
    """
    Factory that saves a user into a given session.

    Usage:
        user = make_user(db, token_expiry=past)
    """
    def _make(session: Session, **overrides) -> User:
        user = build_user(**overrides)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def sign_in(client: TestClient, db: Session, settings: Settings) -> Callable[[User], str]:
    """
    Start a session for a user and put its cookie on the test client.
    """
    def _sign_in(user: User) -> str:
        token = SessionStore(db, ttl_hours=settings.SESSION_TTL_HOURS).create(user.id)
        client.cookies.set(settings.SESSION_COOKIE_NAME, token)
        return token

    return _sign_in
