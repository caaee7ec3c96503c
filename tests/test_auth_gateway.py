"""Tests for the auth gateway: bearer/cookie sessions, silent refresh and the auth routes."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

USER = SimpleNamespace(
    id="2f1e7c5a-1111-4222-8333-444455556666",
    email="ops@example.com",
    user_metadata={"full_name": "Ops"},
    app_metadata={},
    created_at="2024-01-01T00:00:00+00:00",
    updated_at=None,
)


def _session(access: str, refresh: str) -> SimpleNamespace:
    return SimpleNamespace(access_token=access, refresh_token=refresh, expires_in=3600)


def _auth_result(access: str = "access-2", refresh: str = "refresh-2") -> SimpleNamespace:
    return SimpleNamespace(user=USER, session=_session(access, refresh))


def _set_cookies(response) -> str:
    return "\n".join(response.headers.get_list("set-cookie"))


class TestGateway:
    def test_no_credentials(self, anonymous_client: TestClient) -> None:
        response = anonymous_client.get("/api/permissions")
        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required"}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_bearer_token(self, anonymous_client: TestClient, auth_backend: MagicMock) -> None:
        auth_backend.auth.get_user.return_value = SimpleNamespace(user=USER)
        response = anonymous_client.get("/api/roles", headers={"Authorization": "Bearer access-1"})
        assert response.status_code == 200
        auth_backend.auth.get_user.assert_called_once_with(jwt="access-1")

    def test_session_cookie(self, anonymous_client: TestClient, auth_backend: MagicMock) -> None:
        auth_backend.auth.get_user.return_value = SimpleNamespace(user=USER)
        anonymous_client.cookies.set("sb-access-token", "access-1")
        response = anonymous_client.get("/api/roles")
        assert response.status_code == 200

    def test_user_lookup_is_cached(self, anonymous_client: TestClient, auth_backend: MagicMock) -> None:
        auth_backend.auth.get_user.return_value = SimpleNamespace(user=USER)
        headers = {"Authorization": "Bearer access-1"}
        anonymous_client.get("/api/roles", headers=headers)
        anonymous_client.get("/api/permissions", headers=headers)
        assert auth_backend.auth.get_user.call_count == 1

    def test_expired_token_refreshed_from_cookie(self, anonymous_client: TestClient, auth_backend: MagicMock) -> None:
        auth_backend.auth.get_user.side_effect = Exception("JWT expired")
        auth_backend.auth.refresh_session.return_value = _auth_result()
        anonymous_client.cookies.set("sb-access-token", "access-1")
        anonymous_client.cookies.set("sb-refresh-token", "refresh-1")

        response = anonymous_client.get("/api/roles")

        assert response.status_code == 200
        auth_backend.auth.refresh_session.assert_called_once_with("refresh-1")
        cookies = _set_cookies(response)
        assert "sb-access-token=access-2" in cookies
        assert "sb-refresh-token=refresh-2" in cookies
        assert "HttpOnly" in cookies

    def test_failed_refresh_clears_session(self, anonymous_client: TestClient, auth_backend: MagicMock) -> None:
        auth_backend.auth.refresh_session.side_effect = Exception("Invalid Refresh Token")
        anonymous_client.cookies.set("sb-refresh-token", "refresh-1")

        response = anonymous_client.get("/api/roles")

        assert response.status_code == 401
        cookies = _set_cookies(response)
        assert "sb-access-token=" in cookies
        assert "sb-refresh-token=" in cookies
        assert "Max-Age=0" in cookies


class TestAuthRoutes:
    def test_login_sets_cookies(self, anonymous_client: TestClient, auth_backend: MagicMock) -> None:
        auth_backend.auth.sign_in_with_password.return_value = _auth_result("access-9", "refresh-9")
        response = anonymous_client.post("/api/auth/login", json={"email": "ops@example.com", "password": "secret"})
        assert response.status_code == 200
        assert response.json()["access_token"] == "access-9"
        assert response.json()["user_id"] == USER.id
        assert "sb-access-token=access-9" in _set_cookies(response)

    def test_bad_credentials(self, anonymous_client: TestClient, auth_backend: MagicMock) -> None:
        auth_backend.auth.sign_in_with_password.side_effect = Exception("Invalid login credentials")
        response = anonymous_client.post("/api/auth/login", json={"email": "ops@example.com", "password": "nope"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password"}

    def test_refresh_from_body(self, anonymous_client: TestClient, auth_backend: MagicMock) -> None:
        auth_backend.auth.refresh_session.return_value = _auth_result()
        response = anonymous_client.post("/api/auth/refresh", json={"refresh_token": "refresh-1"})
        assert response.status_code == 200
        assert response.json()["refresh_token"] == "refresh-2"

    def test_refresh_without_token(self, anonymous_client: TestClient) -> None:
        response = anonymous_client.post("/api/auth/refresh")
        assert response.status_code == 401

    def test_me(self, anonymous_client: TestClient, auth_backend: MagicMock) -> None:
        auth_backend.auth.get_user.return_value = SimpleNamespace(user=USER)
        response = anonymous_client.get("/api/auth/me", headers={"Authorization": "Bearer access-1"})
        assert response.status_code == 200
        assert response.json()["email"] == "ops@example.com"
        assert response.json()["is_admin"] is True

    def test_logout_clears_cookies(self, anonymous_client: TestClient, auth_backend: MagicMock) -> None:
        response = anonymous_client.post("/api/auth/logout", headers={"Authorization": "Bearer access-1"})
        assert response.status_code == 200
        assert response.json() == {"message": "Logged out successfully"}
        auth_backend.auth.sign_out.assert_called_once()
        assert "Max-Age=0" in _set_cookies(response)

    def test_register_rejects_short_password(self, anonymous_client: TestClient) -> None:
        response = anonymous_client.post("/api/auth/register", json={"email": "new@example.com", "password": "short"})
        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "password"
