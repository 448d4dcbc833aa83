"""
Tests for the sign-in endpoints: /auth/google, the callback, status and logout.
"""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy.orm import Session

from calendar_app.core.errors import ExternalAuthError
from calendar_app.core.security import create_oauth_state, verify_oauth_state
from calendar_app.environments.base import OAuthTokens, UserInfo
from calendar_app.models.session import AuthSession
from calendar_app.models.user import User
from calendar_app.services.auth_flow import OAUTH_ERROR_MESSAGES, map_oauth_error


def _callback(client, **params):
    return client.get("/auth/google/callback", params=params, follow_redirects=False)


def _redirect_params(response) -> dict:
    location = response.headers["location"]
    assert location.startswith("http://localhost:5173")
    return {key: values[0] for key, values in parse_qs(urlparse(location).query).items()}


# ===========================================================================
# LOGIN URL
# ===========================================================================

class TestLoginUrl:
    def test_returns_url_with_signed_state(self, client, settings):
        response = client.get("/auth/google")

        assert response.status_code == 200
        auth_url = response.json()["authUrl"]
        state = parse_qs(urlparse(auth_url).query)["state"][0]
        assert verify_oauth_state(settings, state) is True


# ===========================================================================
# CALLBACK
# ===========================================================================

class TestCallbackErrors:
    @pytest.mark.parametrize("code", sorted(OAUTH_ERROR_MESSAGES))
    def test_provider_errors_are_mapped(self, client, db, code):
        response = _callback(client, error=code)

        assert response.status_code == 302
        params = _redirect_params(response)
        assert params == {"auth": "error", "message": OAUTH_ERROR_MESSAGES[code]}
        assert db.query(User).count() == 0

    def test_unknown_provider_error_uses_default(self, client):
        params = _redirect_params(_callback(client, error="something_new"))

        assert params["message"] == "OAuth authentication failed"

    def test_mapping_is_total(self):
        assert map_oauth_error(None) == "OAuth authentication failed"
        assert map_oauth_error("access_denied") == (
            "Access was denied. Please try again or contact the developer."
        )

    def test_missing_code(self, client, fake_auth):
        params = _redirect_params(_callback(client))

        assert params == {"auth": "error", "message": "no_code"}
        assert fake_auth.exchanged_codes == []

    def test_invalid_state(self, client, fake_auth):
        params = _redirect_params(_callback(client, code="auth-code", state="forged"))

        assert params == {"auth": "error", "message": "invalid_state"}
        assert fake_auth.exchanged_codes == []

    def test_exchange_failure_leaves_no_user_or_session(self, client, db, fake_auth, settings):
        fake_auth.exchange_error = ExternalAuthError("Token exchange failed", http_status=400)

        response = _callback(client, code="bad-code")

        assert _redirect_params(response) == {"auth": "error", "message": "OAuth authentication failed"}
        assert settings.SESSION_COOKIE_NAME not in response.headers.get("set-cookie", "")
        assert db.query(User).count() == 0
        assert db.query(AuthSession).count() == 0


class TestCallbackSuccess:
    def test_new_user_is_created_and_signed_in(self, client, db, settings):
        state = create_oauth_state(settings)

        response = _callback(client, code="auth-code", state=state)

        assert response.status_code == 302
        assert _redirect_params(response) == {"auth": "success"}

        cookie = response.headers["set-cookie"]
        assert cookie.startswith(f"{settings.SESSION_COOKIE_NAME}=")
        assert "HttpOnly" in cookie
        assert "samesite=lax" in cookie.lower()
        assert "Max-Age=86400" in cookie

        user = db.query(User).one()
        assert user.google_id == "google-123"
        assert user.email == "ada@example.com"
        assert user.access_token == "access-1"
        assert user.refresh_token == "refresh-1"
        assert user.is_calendar_connected is True

        status = client.get("/auth/status").json()
        assert status["isAuthenticated"] is True
        assert status["user"] == {
            "id": str(user.id),
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "picture": "https://example.com/ada.png",
            "isCalendarConnected": True,
        }

    def test_missing_state_is_tolerated(self, client):
        assert _redirect_params(_callback(client, code="auth-code")) == {"auth": "success"}

    def test_repeat_login_updates_the_same_user(self, client, db, fake_auth):
        _callback(client, code="first")

        fake_auth.tokens = OAuthTokens(
            access_token="access-2",
            refresh_token=None,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
        fake_auth.identity = UserInfo(
            provider_user_id="google-123",
            email="ada@example.com",
            name="Ada King",
            picture_url="https://example.com/ada-2.png",
        )
        _callback(client, code="second")

        db.expire_all()
        users = db.query(User).all()
        assert len(users) == 1
        assert users[0].access_token == "access-2"
        assert users[0].refresh_token == "refresh-1"
        assert users[0].name == "Ada King"

    def test_repeat_login_reconnects_calendar(self, client, db, make_user):
        make_user(db, is_calendar_connected=False, refresh_token=None)

        _callback(client, code="auth-code")

        db.expire_all()
        user = db.query(User).one()
        assert user.is_calendar_connected is True
        assert user.refresh_token == "refresh-1"


# ===========================================================================
# STATUS / LOGOUT
# ===========================================================================

class TestStatus:
    def test_no_cookie(self, client):
        assert client.get("/auth/status").json() == {"isAuthenticated": False, "user": None}

    def test_session_for_deleted_user_is_dropped(self, client, db: Session, make_user, sign_in):
        user = make_user(db)
        sign_in(user)
        db.delete(user)
        db.commit()

        assert client.get("/auth/status").json()["isAuthenticated"] is False
        assert db.query(AuthSession).count() == 0

    def test_status_after_failed_refresh(self, client, db, make_user, sign_in, fake_auth):
        fake_auth.refresh_result = ExternalAuthError("Token refresh failed", http_status=400)
        user = make_user(db, token_expiry=datetime.now(timezone.utc) - timedelta(minutes=1))
        sign_in(user)

        response = client.get("/calendar/events")

        assert response.status_code == 401
        assert response.json()["needsReauth"] is True
        assert client.get("/auth/status").json() == {"isAuthenticated": False, "user": None}
        db.expire_all()
        assert db.get(User, user.id).is_calendar_connected is False


class TestLogout:
    def test_logout_ends_session_and_clears_cookie(self, client, db, make_user, sign_in, settings):
        sign_in(make_user(db))

        response = client.post("/auth/logout")

        assert response.status_code == 200
        assert response.json() == {"message": "Logged out successfully"}
        assert settings.SESSION_COOKIE_NAME in response.headers["set-cookie"]
        assert "Max-Age=0" in response.headers["set-cookie"]
        assert db.query(AuthSession).count() == 0
        assert client.get("/auth/status").json()["isAuthenticated"] is False

    def test_logout_without_session(self, client):
        response = client.post("/auth/logout")

        assert response.status_code == 200
