"""
Auth API Tests
"""

from plottwist.core.security import (
    create_access_token,
    generate_password_reset_token,
    verify_token,
)


class TestRegisterAndLogin:

    async def test_register_login_me(self, client):
        res = await client.post(
            "/api/auth/register",
            json={"email": "Alice@Example.com", "username": "alice", "password": "secret123"},
        )
        assert res.status_code == 201
        assert res.json()["email"] == "alice@example.com"
        assert res.json()["is_verified"] is True
        assert "hashed_password" not in res.json()

        login = await client.post("/api/auth/login", json={"email": "alice@example.com", "password": "secret123"})
        assert login.status_code == 200
        tokens = login.json()
        assert tokens["token_type"] == "bearer"
        assert tokens["user_id"] == res.json()["id"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
        assert me.status_code == 200
        assert me.json()["username"] == "alice"

    async def test_duplicates_are_rejected(self, client, make_user):
        await make_user("alice")
        res = await client.post(
            "/api/auth/register",
            json={"email": "alice@example.com", "username": "other", "password": "secret123"},
        )
        assert res.status_code == 400
        res = await client.post(
            "/api/auth/register",
            json={"email": "other@example.com", "username": "alice", "password": "secret123"},
        )
        assert res.status_code == 400

        assert (await client.get("/api/auth/check-email", params={"email": "alice@example.com"})).json() == {"available": False}
        assert (await client.get("/api/auth/check-username", params={"username": "bob"})).json() == {"available": True}

    async def test_wrong_password_is_401(self, client, make_user):
        await make_user("alice")
        res = await client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope"})
        assert res.status_code == 401
        assert res.headers["www-authenticate"] == "Bearer"

    async def test_missing_or_bad_token_is_401(self, client):
        assert (await client.get("/api/auth/me")).status_code == 401
        res = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert res.status_code == 401

    async def test_refresh_token_cannot_be_used_as_access(self, client, make_user):
        alice = await make_user("alice")
        login = await client.post("/api/auth/login", json={"email": alice["email"], "password": "secret123"})
        refresh = login.json()["refresh_token"]

        res = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {refresh}"})
        assert res.status_code == 401

        res = await client.post("/api/auth/refresh", json={"refresh_token": refresh})
        assert res.status_code == 200
        assert verify_token(res.json()["access_token"], "access")["sub"] == alice["id"]

        res = await client.post("/api/auth/refresh", json={"refresh_token": alice["token"]})
        assert res.status_code == 401


class TestPasswords:

    async def test_update_password(self, client, make_user):
        alice = await make_user("alice")
        res = await client.post(
            "/api/auth/update-password",
            json={"current_password": "wrong", "new_password": "another123"},
            headers=alice["headers"],
        )
        assert res.status_code == 400

        res = await client.post(
            "/api/auth/update-password",
            json={"current_password": "secret123", "new_password": "another123"},
            headers=alice["headers"],
        )
        assert res.status_code == 200
        login = await client.post("/api/auth/login", json={"email": alice["email"], "password": "another123"})
        assert login.status_code == 200

    async def test_reset_password_with_token(self, client, make_user):
        alice = await make_user("alice")
        assert (await client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})).status_code == 200

        token = generate_password_reset_token(alice["email"])
        res = await client.post("/api/auth/reset-password", json={"token": token, "new_password": "fresh123"})
        assert res.status_code == 200

        # 다른 용도의 토큰은 거부
        access = create_access_token({"sub": alice["id"]})
        res = await client.post("/api/auth/reset-password", json={"token": access, "new_password": "fresh123"})
        assert res.status_code == 400

        login = await client.post("/api/auth/login", json={"email": alice["email"], "password": "fresh123"})
        assert login.status_code == 200
