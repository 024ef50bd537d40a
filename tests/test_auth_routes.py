"""
tests/test_auth_routes.py -- Integration tests for the /api/v1/admin endpoints.

Coverage:
  - Login: success sets cookie + no-store; unknown email 404; non-admin 403
    regardless of password; wrong password 401; validation reports every field;
    only the email is trimmed
  - Login rate limit: 6th attempt for the same (ip, email) is 429 with
    retryAfter; a different email is judged on its merits
  - Verify: Bearer and cookie transport; missing, expired, malformed tokens;
    deleted account -> 403
  - Refresh, logout, profile

Fixtures used (from conftest.py):
  - api_client: (client, admin_token, editor_token)
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, EDITOR_EMAIL, EDITOR_PASSWORD, auth_headers
from fastapi.testclient import TestClient

from auth.models import User
from auth.tokens import AUTH_COOKIE_NAME, create_access_token
from main import create_admin


@pytest.fixture(autouse=True)
def clear_cookies(api_client):
    """Login responses set a cookie on the shared client; drop it after each test."""
    client, _, _ = api_client
    yield
    client.cookies.clear()


def _login(client: TestClient, email: str, password: str):
    return client.post("/api/v1/admin/login", json={"email": email, "password": password})


class TestLogin:
    def test_login_success(self, api_client: tuple[TestClient, str, str]) -> None:
        """Valid admin credentials return a token, the user and the auth cookie."""
        client, _, _ = api_client
        resp = _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        data = resp.json()
        assert data["success"] is True
        assert data["token"]
        assert data["user"]["email"] == ADMIN_EMAIL
        assert data["user"]["role"] == "ADMIN"
        assert data["expiresIn"] == 4 * 60 * 60
        assert resp.headers["Cache-Control"] == "no-store"
        set_cookie = resp.headers["set-cookie"]
        assert f"{AUTH_COOKIE_NAME}=" in set_cookie
        assert "HttpOnly" in set_cookie
        assert "samesite=lax" in set_cookie.lower()

    def test_login_unknown_email_404(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = _login(client, "nobody@ariacreative.test", "whatever123")
        assert resp.status_code == 404
        assert resp.json()["error"] == "user_not_found"

    def test_login_non_admin_403_even_with_correct_password(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = _login(client, EDITOR_EMAIL, EDITOR_PASSWORD)
        assert resp.status_code == 403
        assert resp.json()["error"] == "admin_only"

    def test_login_non_admin_403_with_wrong_password(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = _login(client, EDITOR_EMAIL, "wrongpassword")
        assert resp.status_code == 403

    def test_login_wrong_password_401_without_token(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = _login(client, ADMIN_EMAIL, "wrongpassword")
        assert resp.status_code == 401
        data = resp.json()
        assert data["success"] is False
        assert data["error"] == "bad_credentials"
        assert "token" not in data
        assert AUTH_COOKIE_NAME not in resp.cookies

    def test_login_email_is_case_sensitive(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = _login(client, ADMIN_EMAIL.upper(), ADMIN_PASSWORD)
        assert resp.status_code == 404

    def test_login_validation_lists_every_violation(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = _login(client, "not-an-email", "short")
        assert resp.status_code == 422
        data = resp.json()
        assert data["error"] == "validation_error"
        fields = {d["field"] for d in data["details"]}
        assert fields == {"email", "password"}

    def test_login_invalid_json_400(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = client.post(
            "/api/v1/admin/login",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_json"

    def test_login_keeps_password_whitespace(self, api_client: tuple[TestClient, str, str]) -> None:
        """Only the email is trimmed; a password with surrounding spaces must match as typed."""
        client, _, _ = api_client
        create_admin(client.app.state.user_store, "spaced@ariacreative.test", "Spaced Admin", "  secretpw  ")
        resp = _login(client, "  spaced@ariacreative.test ", "  secretpw  ")
        assert resp.status_code == 200, resp.text
        assert resp.json()["user"]["email"] == "spaced@ariacreative.test"
        assert _login(client, "spaced@ariacreative.test", "secretpw").status_code == 401


class TestLoginRateLimit:
    def test_sixth_attempt_is_rate_limited(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        for _ in range(5):
            assert _login(client, ADMIN_EMAIL, "wrongpassword").status_code == 401
        resp = _login(client, ADMIN_EMAIL, "wrongpassword")
        assert resp.status_code == 429
        data = resp.json()
        assert data["error"] == "too_many_attempts"
        retry_after = datetime.fromisoformat(data["retryAfter"])
        assert retry_after > datetime.now(timezone.utc)
        assert int(resp.headers["Retry-After"]) <= 15 * 60

    def test_correct_password_still_limited_after_window_exhausted(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        for _ in range(5):
            _login(client, ADMIN_EMAIL, "wrongpassword")
        assert _login(client, ADMIN_EMAIL, ADMIN_PASSWORD).status_code == 429

    def test_other_email_from_same_ip_not_limited(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        for _ in range(6):
            _login(client, ADMIN_EMAIL, "wrongpassword")
        resp = _login(client, EDITOR_EMAIL, EDITOR_PASSWORD)
        assert resp.status_code == 403, "Different email must be judged on its merits, not rate limited"

    def test_invalid_bodies_count_towards_limit(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        for _ in range(5):
            assert _login(client, ADMIN_EMAIL, "short").status_code == 422
        assert _login(client, ADMIN_EMAIL, ADMIN_PASSWORD).status_code == 429


class TestVerify:
    def test_verify_with_bearer(self, api_client: tuple[TestClient, str, str]) -> None:
        client, admin_token, _ = api_client
        resp = client.post("/api/v1/admin/verify", headers=auth_headers(admin_token))
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["success"] is True
        assert data["user"]["email"] == ADMIN_EMAIL
        assert datetime.fromisoformat(data["expiresAt"]) > datetime.now(timezone.utc)

    def test_verify_with_cookie_from_login(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        assert _login(client, ADMIN_EMAIL, ADMIN_PASSWORD).status_code == 200
        resp = client.post("/api/v1/admin/verify")
        assert resp.status_code == 200, "Cookie set by login must authenticate follow-up requests"

    def test_verify_missing_token(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/admin/verify")
        assert resp.status_code == 401
        assert resp.json()["error"] == "missing_token"

    def test_verify_expired_token(self, api_client: tuple[TestClient, str, str]) -> None:
        """A 4-hour token presented after 5 hours is reported as expired, not invalid."""
        client, _, _ = api_client
        admin = User(id="ignored", email=ADMIN_EMAIL, name="Aria Admin", role="ADMIN")
        token = create_access_token(admin, now=datetime.now(timezone.utc) - timedelta(hours=5))
        resp = client.post("/api/v1/admin/verify", headers=auth_headers(token))
        assert resp.status_code == 401
        data = resp.json()
        assert data["error"] == "token_expired"
        assert "expiredAt" in data

    def test_verify_malformed_token(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/admin/verify", headers=auth_headers("not.a.jwt"))
        assert resp.status_code == 401
        assert resp.json()["error"] == "token_invalid"

    def test_verify_tampered_token(self, api_client: tuple[TestClient, str, str]) -> None:
        client, admin_token, _ = api_client
        head, payload, signature = admin_token.split(".")
        tampered = f"{head}.{payload}.{signature[::-1]}"
        resp = client.post("/api/v1/admin/verify", headers=auth_headers(tampered))
        assert resp.status_code == 401
        assert resp.json()["error"] == "token_invalid"

    def test_verify_unknown_account_403(self, api_client: tuple[TestClient, str, str]) -> None:
        """A well-signed token for an email with no account is refused."""
        client, _, _ = api_client
        ghost = User(id="ghost-id", email="ghost@ariacreative.test", name="Ghost", role="ADMIN")
        resp = client.post("/api/v1/admin/verify", headers=auth_headers(create_access_token(ghost)))
        assert resp.status_code == 403
        assert resp.json()["error"] == "account_invalid"


class TestRefreshLogoutProfile:
    def test_refresh_returns_new_token_and_cookie(self, api_client: tuple[TestClient, str, str]) -> None:
        client, admin_token, _ = api_client
        resp = client.post("/api/v1/admin/refresh", headers=auth_headers(admin_token))
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["token"]
        assert AUTH_COOKIE_NAME in resp.headers["set-cookie"]
        verify = client.post("/api/v1/admin/verify", headers=auth_headers(data["token"]))
        assert verify.status_code == 200

    def test_refresh_requires_token(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        assert client.post("/api/v1/admin/refresh").status_code == 401

    def test_logout_clears_cookie(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = api_client
        _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
        resp = client.post("/api/v1/admin/logout")
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert f'{AUTH_COOKIE_NAME}=""' in resp.headers["set-cookie"]
        assert client.post("/api/v1/admin/verify").status_code == 401

    def test_profile(self, api_client: tuple[TestClient, str, str]) -> None:
        client, admin_token, _ = api_client
        resp = client.get("/api/v1/admin/profile", headers=auth_headers(admin_token))
        assert resp.status_code == 200
        data = resp.json()
        assert data["email"] == ADMIN_EMAIL
        assert data["name"] == "Aria Admin"
        assert data["createdAt"]
        assert "hashedPassword" not in data
