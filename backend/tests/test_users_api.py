"""
Pinboard Backend — User & Auth API Tests
==========================================

What we test:
    ✅ Registration sets the session cookie and never returns the hash
    ✅ Taken username/email → 409, invalid payload → 400
    ✅ Login by email or username; bad credentials share one 401 message
    ✅ Missing cookie → 401, bad token → 403
    ✅ Profiles with follower counts; follow toggle and its edge cases
"""

import pytest
from sqlalchemy import select

from pinboard.models import User


class TestRegister:

    @pytest.mark.asyncio
    async def test_register_sets_cookie_and_hides_hash(self, client, db_session):
        response = await client.post(
            "/users/auth/register",
            json={
                "username": "alice",
                "displayName": "Alice",
                "email": "alice@example.com",
                "password": "secret123",
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["username"] == "alice"
        assert body["displayName"] == "Alice"
        assert "password" not in body and "hashedPassword" not in body

        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith("token=")
        assert "HttpOnly" in set_cookie
        assert "Max-Age=2592000" in set_cookie
        assert "Secure" not in set_cookie

        stored = (await db_session.execute(select(User))).scalar_one()
        assert stored.hashed_password != "secret123"

    @pytest.mark.asyncio
    async def test_duplicate_username(self, client, register_user):
        await register_user("alice")
        response = await client.post(
            "/users/auth/register",
            json={
                "username": "alice",
                "displayName": "Other",
                "email": "other@example.com",
                "password": "secret123",
            },
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client, register_user):
        await register_user("alice")
        response = await client.post(
            "/users/auth/register",
            json={
                "username": "alice2",
                "displayName": "Other",
                "email": "alice@example.com",
                "password": "secret123",
            },
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_duplicate_email_ignores_case(self, client, register_user):
        await register_user("alice")
        response = await client.post(
            "/users/auth/register",
            json={
                "username": "alice2",
                "displayName": "Other",
                "email": "ALICE@Example.com",
                "password": "secret123",
            },
        )
        assert response.status_code == 409
        assert response.json()["details"]["field"] == "email"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"username": "", "displayName": "A", "email": "a@example.com", "password": "secret123"},
            {"username": "bob", "displayName": "B", "email": "not-an-email", "password": "secret123"},
            {"username": "bob", "displayName": "B", "email": "b@example.com", "password": "123"},
            {"username": "bob", "displayName": "", "email": "b@example.com", "password": "secret123"},
        ],
    )
    async def test_invalid_payload_is_400(self, client, payload):
        response = await client.post("/users/auth/register", json=payload)
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"]["errors"]


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_by_email(self, client, register_user):
        await register_user("alice")
        response = await client.post(
            "/users/auth/login",
            json={"email": "alice@example.com", "password": "secret123"},
        )
        assert response.status_code == 200
        assert response.json()["username"] == "alice"
        assert response.headers["set-cookie"].startswith("token=")

    @pytest.mark.asyncio
    async def test_login_by_username(self, client, register_user):
        await register_user("alice")
        response = await client.post(
            "/users/auth/login",
            json={"username": "alice", "password": "secret123"},
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_user_look_the_same(self, client, register_user):
        await register_user("alice")
        wrong_password = await client.post(
            "/users/auth/login",
            json={"email": "alice@example.com", "password": "not-it"},
        )
        unknown_user = await client.post(
            "/users/auth/login",
            json={"email": "nobody@example.com", "password": "secret123"},
        )
        assert wrong_password.status_code == unknown_user.status_code == 401
        assert wrong_password.json()["message"] == unknown_user.json()["message"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("login_email", ["Bob@Example.COM", "bob@example.com", "BOB@EXAMPLE.COM"])
    async def test_login_with_mixed_case_email(self, client, login_email):
        registered = await client.post(
            "/users/auth/register",
            json={
                "username": "bob",
                "displayName": "Bob",
                "email": "Bob@Example.COM",
                "password": "secret123",
            },
        )
        assert registered.status_code == 201
        client.cookies.clear()

        response = await client.post(
            "/users/auth/login",
            json={"email": login_email, "password": "secret123"},
        )
        assert response.status_code == 200, response.text
        assert response.json()["username"] == "bob"

    @pytest.mark.asyncio
    async def test_identifier_required(self, client):
        response = await client.post("/users/auth/login", json={"password": "secret123"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_logout_clears_cookie(self, client):
        response = await client.post("/users/auth/logout")
        assert response.status_code == 200
        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith("token=")
        assert "Max-Age=0" in set_cookie


class TestAuthGuard:

    @pytest.mark.asyncio
    async def test_missing_cookie_is_401(self, client, register_user):
        await register_user("bob")
        response = await client.post("/users/follow/bob")
        assert response.status_code == 401
        assert response.json()["message"] == "Token not provided"

    @pytest.mark.asyncio
    async def test_invalid_token_is_403(self, client, register_user, use_token):
        await register_user("bob")
        use_token("forged.token.value")
        response = await client.post("/users/follow/bob")
        assert response.status_code == 403
        assert response.json()["message"] == "Invalid token"


class TestProfilesAndFollows:

    @pytest.mark.asyncio
    async def test_profile_for_anonymous_viewer(self, client, register_user):
        await register_user("alice")
        response = await client.get("/users/alice")
        assert response.status_code == 200
        body = response.json()
        assert body["username"] == "alice"
        assert body["followerCount"] == 0
        assert body["followingCount"] == 0
        assert body["isFollowing"] is False
        assert "hashedPassword" not in body

    @pytest.mark.asyncio
    async def test_unknown_profile_is_404(self, client):
        response = await client.get("/users/ghost")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_follow_then_unfollow_restores_counts(self, client, register_user, use_token):
        _, alice_token = await register_user("alice")
        await register_user("bob")
        use_token(alice_token)

        followed = await client.post("/users/follow/bob")
        assert followed.status_code == 200
        assert followed.json() == {"username": "bob", "isFollowing": True}

        bob = (await client.get("/users/bob")).json()
        assert bob["followerCount"] == 1
        assert bob["isFollowing"] is True
        alice = (await client.get("/users/alice")).json()
        assert alice["followingCount"] == 1

        unfollowed = await client.post("/users/follow/bob")
        assert unfollowed.json()["isFollowing"] is False

        bob = (await client.get("/users/bob")).json()
        assert bob["followerCount"] == 0
        assert bob["isFollowing"] is False

    @pytest.mark.asyncio
    async def test_cannot_follow_yourself(self, client, register_user, use_token):
        _, token = await register_user("alice")
        use_token(token)
        response = await client.post("/users/follow/alice")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_follow_unknown_user_is_404(self, client, register_user, use_token):
        _, token = await register_user("alice")
        use_token(token)
        response = await client.post("/users/follow/ghost")
        assert response.status_code == 404
