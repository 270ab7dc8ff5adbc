"""Tests for registration, login, token handling and user search."""

from datetime import timedelta

import pytest

from epitrello.services.auth_service import create_access_token, decode_access_token
from epitrello.utils.security import get_password_hash, verify_password


class TestPasswordHashing:
    """Tests for bcrypt helpers."""

    def test_hash_and_verify(self):
        hashed = get_password_hash("TestPassword123!")

        assert hashed != "TestPassword123!"
        assert verify_password("TestPassword123!", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestTokens:
    """Tests for JWT helpers."""

    def test_round_trip(self):
        token = create_access_token({"sub": "abc", "email": "a@example.com"})

        data = decode_access_token(token)

        assert data.user_id == "abc"
        assert data.email == "a@example.com"

    def test_expired_token(self):
        token = create_access_token({"sub": "abc"}, expires_delta=timedelta(seconds=-1))

        assert decode_access_token(token) is None

    def test_garbage_token(self):
        assert decode_access_token("not.a.token") is None


class TestAuthEndpoints:
    """API tests for /api/auth."""

    @pytest.mark.asyncio
    async def test_register_and_login(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"username": "dave", "email": "Dave@Example.com", "password": "Sup3rSecret!"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["user"]["username"] == "dave"
        assert body["user"]["email"] == "dave@example.com"
        assert body["accessToken"]

        response = await client.post(
            "/api/auth/login", data={"username": "dave@example.com", "password": "Sup3rSecret!"}
        )
        assert response.status_code == 200
        token = response.json()["access_token"]

        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.json()["username"] == "dave"

    @pytest.mark.asyncio
    async def test_register_duplicate(self, client, test_user):
        response = await client.post(
            "/api/auth/register",
            json={"username": "someone", "email": test_user.email, "password": "Sup3rSecret!"},
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_register_validation_is_400(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"username": "x", "email": "not-an-email", "password": "short"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client, test_user):
        response = await client.post(
            "/api/auth/login", data={"username": test_user.email, "password": "wrong-password"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me_with_invalid_token(self, client):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401


class TestUserSearch:
    """API tests for /api/users/search."""

    @pytest.mark.asyncio
    async def test_search_excludes_caller(self, client, auth_headers, test_user, test_user_2):
        response = await client.get("/api/users/search", params={"q": "example.com"}, headers=auth_headers)

        assert response.status_code == 200
        assert [user["username"] for user in response.json()["users"]] == ["bob"]


class TestProfile:
    """API tests for /api/users/profile and /api/users/password."""

    @pytest.mark.asyncio
    async def test_get_profile(self, client, auth_headers, test_user):
        response = await client.get("/api/users/profile", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["user"]["id"] == str(test_user.id)
        assert response.json()["user"]["email"] == "alice@example.com"

    @pytest.mark.asyncio
    async def test_update_profile(self, client, auth_headers):
        response = await client.put(
            "/api/users/profile",
            json={"username": "alicia", "email": "Alicia@Example.com"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        user = response.json()["user"]
        assert (user["username"], user["email"]) == ("alicia", "alicia@example.com")

        response = await client.post(
            "/api/auth/login", data={"username": "alicia@example.com", "password": "TestPassword123!"}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_update_profile_taken_username(self, client, auth_headers, test_user_2):
        response = await client.put(
            "/api/users/profile",
            json={"username": "Bob", "email": "alice@example.com"},
            headers=auth_headers,
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_update_profile_taken_email(self, client, auth_headers, test_user_2):
        response = await client.put(
            "/api/users/profile",
            json={"username": "alice", "email": test_user_2.email},
            headers=auth_headers,
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_update_profile_validation_is_400(self, client, auth_headers):
        response = await client.put(
            "/api/users/profile", json={"username": "a", "email": "nope"}, headers=auth_headers
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_change_password(self, client, auth_headers, test_user):
        response = await client.put(
            "/api/users/password",
            json={"currentPassword": "TestPassword123!", "newPassword": "N3wSecret!pass"},
            headers=auth_headers,
        )

        assert response.status_code == 200

        response = await client.post(
            "/api/auth/login", data={"username": test_user.email, "password": "TestPassword123!"}
        )
        assert response.status_code == 401
        response = await client.post(
            "/api/auth/login", data={"username": test_user.email, "password": "N3wSecret!pass"}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_change_password_wrong_current(self, client, auth_headers):
        response = await client.put(
            "/api/users/password",
            json={"currentPassword": "wrong-password", "newPassword": "N3wSecret!pass"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Current password is incorrect"

    @pytest.mark.asyncio
    async def test_profile_requires_auth(self, client):
        response = await client.get("/api/users/profile")

        assert response.status_code == 401
