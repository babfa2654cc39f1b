import pytest
from fastapi import status
from httpx import AsyncClient

from gatepass.models.shared.enums import UserRole


class TestAuth:
    """Test authentication endpoints"""

    async def test_login_success(self, client: AsyncClient, make_user, password):
        """Login with payroll number returns a bearer token and the profile"""
        user = await make_user(UserRole.STAFF, name="Login User")

        response = await client.post(
            "/api/v1/auth/login", json={"payroll_no": user.payroll_no, "password": password}
        )
        assert response.status_code == status.HTTP_200_OK

        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["user"]["payroll_no"] == user.payroll_no
        assert data["user"]["role"] == "STAFF"
        assert "hashed_password" not in data["user"]

    async def test_login_wrong_password(self, client: AsyncClient, make_user):
        user = await make_user()
        response = await client.post(
            "/api/v1/auth/login", json={"payroll_no": user.payroll_no, "password": "wrong-password"}
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "AUTHENTICATION_ERROR"

    async def test_login_inactive_user(self, client: AsyncClient, make_user, password):
        user = await make_user(is_active=False)
        response = await client.post(
            "/api/v1/auth/login", json={"payroll_no": user.payroll_no, "password": password}
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_me(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user(UserRole.HOD, name="Helen Head")
        response = await client.get("/api/v1/auth/me", headers=auth_headers(user))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["name"] == "Helen Head"

    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        body = response.json()
        assert body["error"] == "AUTHENTICATION_ERROR"
        assert body["message"] == body["detail"]

    async def test_garbage_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_change_password(self, client: AsyncClient, make_user, auth_headers, password):
        user = await make_user()
        response = await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": password, "new_password": "NewSecret456!"},
            headers=auth_headers(user),
        )
        assert response.status_code == status.HTTP_200_OK

        login = await client.post(
            "/api/v1/auth/login", json={"payroll_no": user.payroll_no, "password": "NewSecret456!"}
        )
        assert login.status_code == status.HTTP_200_OK
        assert login.json()["requires_password_change"] is False

    async def test_change_password_wrong_current(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user()
        response = await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "nope-nope", "new_password": "NewSecret456!"},
            headers=auth_headers(user),
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "VALIDATION_ERROR"


class TestHealth:
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] in {"healthy", "degraded"}
        assert "database" in response.json()["components"]
