"""
Tests for SessionAuthGate - session resolution and token refresh.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from calendar_app.core.errors import ExternalAuthError, ReauthRequired, StoreError, Unauthenticated
from calendar_app.environments.base import OAuthTokens
from calendar_app.models.session import AuthSession
from calendar_app.models.user import User, as_utc
from calendar_app.services.session_gate import RefreshLocks, SessionAuthGate
from calendar_app.services.session_store import SessionStore
from calendar_app.services.user_store import UserStore


# ===========================================================================
# FIXTURES
# ===========================================================================

def save_user(db: Session, **overrides) -> User:
    values = {
        "google_id": "google-123",
        "email": "ada@example.com",
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "token_expiry": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    values.update(overrides)
    user = User(**values)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def locks() -> RefreshLocks:
    return RefreshLocks()


@pytest.fixture
def gate_factory(db_session: Session, fake_auth, locks):
    def _gate(expose_details: bool = True) -> SessionAuthGate:
        return SessionAuthGate(
            users=UserStore(db_session),
            sessions=SessionStore(db_session),
            auth_client=fake_auth,
            locks=locks,
            expose_details=expose_details,
        )

    return _gate


def _expired() -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=5)


def _session_count(db: Session) -> int:
    return db.query(AuthSession).count()


# ===========================================================================
# SESSION RESOLUTION
# ===========================================================================

class TestSessionResolution:
    @pytest.mark.asyncio
    async def test_missing_token_is_unauthenticated(self, gate_factory):
        with pytest.raises(Unauthenticated):
            await gate_factory().authenticate(None)

    @pytest.mark.asyncio
    async def test_unknown_token_is_unauthenticated(self, gate_factory):
        with pytest.raises(Unauthenticated):
            await gate_factory().authenticate("no-such-session")

    @pytest.mark.asyncio
    async def test_expired_session_is_unauthenticated_and_removed(self, db_session, gate_factory):
        user = save_user(db_session)
        db_session.add(AuthSession(
            token="stale",
            user_id=user.id,
            expires_at=datetime.now(timezone.utc) - timedelta(seconds=1),
        ))
        db_session.commit()

        with pytest.raises(Unauthenticated):
            await gate_factory().authenticate("stale")

        assert _session_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_missing_user_destroys_session(self, db_session, gate_factory):
        user = save_user(db_session)
        token = SessionStore(db_session).create(user.id)
        db_session.delete(user)
        db_session.commit()

        with pytest.raises(Unauthenticated) as exc_info:
            await gate_factory().authenticate(token)

        assert exc_info.value.message == "User not found"
        assert _session_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_fresh_token_passes_without_refresh(self, db_session, gate_factory, fake_auth):
        user = save_user(db_session)
        token = SessionStore(db_session).create(user.id)

        result = await gate_factory().authenticate(token)

        assert result.id == user.id
        assert fake_auth.refresh_calls == []


# ===========================================================================
# TOKEN REFRESH
# ===========================================================================

class TestRefresh:
    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed_and_saved(self, db_session, gate_factory, fake_auth):
        user = save_user(db_session, token_expiry=_expired(), refresh_token="refresh-1")
        token = SessionStore(db_session).create(user.id)

        result = await gate_factory().authenticate(token)

        assert fake_auth.refresh_calls == ["refresh-1"]
        assert result.access_token == "access-refreshed"
        assert result.needs_refresh() is False

        db_session.expire_all()
        stored = db_session.query(User).filter(User.id == user.id).one()
        assert stored.access_token == "access-refreshed"
        # Google did not rotate the refresh token
        assert stored.refresh_token == "refresh-1"
        assert as_utc(stored.token_expiry) > datetime.now(timezone.utc)

    @pytest.mark.asyncio
    async def test_rotated_refresh_token_is_stored(self, db_session, gate_factory, fake_auth):
        fake_auth.refresh_result = OAuthTokens(
            access_token="access-2",
            refresh_token="refresh-2",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
        user = save_user(db_session, token_expiry=_expired())
        token = SessionStore(db_session).create(user.id)

        result = await gate_factory().authenticate(token)

        assert result.refresh_token == "refresh-2"

    @pytest.mark.asyncio
    async def test_no_refresh_token_requires_reauth(self, db_session, gate_factory, fake_auth):
        user = save_user(db_session, token_expiry=_expired(), refresh_token=None)
        token = SessionStore(db_session).create(user.id)

        with pytest.raises(ReauthRequired):
            await gate_factory().authenticate(token)

        assert fake_auth.refresh_calls == []
        assert _session_count(db_session) == 0
        db_session.expire_all()
        assert db_session.get(User, user.id).is_calendar_connected is False

    @pytest.mark.asyncio
    async def test_failed_refresh_disconnects_and_ends_session(self, db_session, gate_factory, fake_auth):
        fake_auth.refresh_result = ExternalAuthError("Token refresh failed", http_status=400)
        user = save_user(db_session, token_expiry=_expired())
        token = SessionStore(db_session).create(user.id)

        with pytest.raises(ReauthRequired) as exc_info:
            await gate_factory(expose_details=True).authenticate(token)

        assert exc_info.value.details == "Token refresh failed"
        assert _session_count(db_session) == 0
        db_session.expire_all()
        stored = db_session.get(User, user.id)
        assert stored is not None
        assert stored.is_calendar_connected is False

    @pytest.mark.asyncio
    async def test_failed_refresh_hides_details_in_production(self, db_session, gate_factory, fake_auth):
        fake_auth.refresh_result = ExternalAuthError("Token refresh failed")
        user = save_user(db_session, token_expiry=_expired())
        token = SessionStore(db_session).create(user.id)

        with pytest.raises(ReauthRequired) as exc_info:
            await gate_factory(expose_details=False).authenticate(token)

        assert exc_info.value.details is None

    @pytest.mark.asyncio
    async def test_missing_access_token_keeps_session(self, db_session, gate_factory):
        user = save_user(db_session, access_token=None)
        token = SessionStore(db_session).create(user.id)

        with pytest.raises(ReauthRequired) as exc_info:
            await gate_factory().authenticate(token)

        assert exc_info.value.message == "No access token available - please re-authenticate"
        assert _session_count(db_session) == 1

    @pytest.mark.asyncio
    async def test_concurrent_requests_refresh_once(self, db_session, gate_factory, fake_auth):
        fake_auth.refresh_delay = 0.05
        user = save_user(db_session, token_expiry=_expired())
        token = SessionStore(db_session).create(user.id)

        first, second = await asyncio.gather(
            gate_factory().authenticate(token),
            gate_factory().authenticate(token),
        )

        assert len(fake_auth.refresh_calls) == 1
        assert first.access_token == second.access_token == "access-refreshed"

    @pytest.mark.asyncio
    async def test_locks_are_released_after_refresh(self, db_session, gate_factory, locks):
        user = save_user(db_session, token_expiry=_expired())
        token = SessionStore(db_session).create(user.id)

        await asyncio.gather(
            gate_factory().authenticate(token),
            gate_factory().authenticate(token),
        )

        assert locks.active_count() == 0

    @pytest.mark.asyncio
    async def test_session_ends_even_if_user_write_fails(self, db_session, gate_factory, fake_auth):
        fake_auth.refresh_result = ExternalAuthError("Token refresh failed", http_status=400)
        user = save_user(db_session, token_expiry=_expired())
        token = SessionStore(db_session).create(user.id)

        with patch.object(UserStore, "save", side_effect=StoreError("Failed to save user")):
            with pytest.raises(StoreError):
                await gate_factory().authenticate(token)

        assert _session_count(db_session) == 0


class TestRefreshLocks:
    @pytest.mark.asyncio
    async def test_lock_is_dropped_when_last_holder_leaves(self, locks):
        user_id = uuid.uuid4()

        async with locks.hold(user_id):
            assert locks.active_count() == 1

        assert locks.active_count() == 0

    @pytest.mark.asyncio
    async def test_waiters_share_one_lock(self, locks):
        user_id = uuid.uuid4()
        order = []

        async def worker(name):
            async with locks.hold(user_id):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-in", "a-out", "b-in", "b-out"]
        assert locks.active_count() == 0
