"""
Tests for authentication endpoints (signup and login).

These tests verify:
  - Signup creates a user, a credit account and the welcome bonus row
  - Duplicate email signup is rejected (409 Conflict)
  - Admin can't be chosen at signup
  - Login returns a JWT; wrong password and unknown email get the same 401
  - Short passwords are rejected (422 Validation Error)
"""

from tmc_ledger.config import settings


class TestSignup:

    async def test_signup_opens_funded_account(self, client):
        response = await client.post(
            "/auth/signup",
            json={
                "email": "newuser@example.com",
                "password": "StrongPass99!",
                "name": "Jane Doe",
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "newuser@example.com"
        assert data["role"] == "patient"
        assert data["balance"] == settings.PROMOTIONAL_CREDITS
        assert "token" in data

    async def test_welcome_bonus_is_on_the_ledger(self, client, register_user):
        user = await register_user("welcome@example.com")

        response = await client.get("/tmc/transactions", headers=user["headers"])

        [row] = response.json()
        assert row["type"] == "credit"
        assert row["reason"] == "promotional_credits"
        assert row["amount"] == settings.PROMOTIONAL_CREDITS
        assert row["balance_before"] == 0
        assert row["details"] == {"kind": "promotional", "campaign": "registration"}

    async def test_promotion_switched_off(self, client, register_user, monkeypatch):
        monkeypatch.setattr(settings, "PROMOTIONAL_CREDITS", 0)
        user = await register_user("nopromo@example.com")

        balance = await client.get("/tmc/balance", headers=user["headers"])
        rows = await client.get("/tmc/transactions", headers=user["headers"])

        assert balance.json()["balance"] == 0
        assert rows.json() == []

    async def test_signup_as_doctor(self, client):
        response = await client.post(
            "/auth/signup",
            json={
                "email": "doc@example.com",
                "password": "StrongPass99!",
                "name": "Dr. Who",
                "role": "doctor",
            },
        )
        assert response.status_code == 201
        assert response.json()["role"] == "doctor"

    async def test_cannot_self_register_as_admin(self, client):
        response = await client.post(
            "/auth/signup",
            json={
                "email": "sneaky@example.com",
                "password": "StrongPass99!",
                "name": "Sneaky",
                "role": "admin",
            },
        )
        assert response.status_code == 403
        assert response.json()["error_type"] == "permission_denied"

    async def test_duplicate_email(self, client, register_user):
        await register_user("dup@example.com")

        response = await client.post(
            "/auth/signup",
            json={"email": "dup@example.com", "password": "StrongPass99!", "name": "Dup"},
        )

        assert response.status_code == 409
        assert response.json()["error_type"] == "duplicate_email"

    async def test_short_password(self, client):
        response = await client.post(
            "/auth/signup",
            json={"email": "short@example.com", "password": "abc", "name": "Short"},
        )
        assert response.status_code == 422

    async def test_invalid_email(self, client):
        response = await client.post(
            "/auth/signup",
            json={"email": "not-an-email", "password": "StrongPass99!", "name": "Bad"},
        )
        assert response.status_code == 422


class TestLogin:

    async def test_login_success(self, client, register_user):
        await register_user("login@example.com", password="CorrectPass1!")

        response = await client.post(
            "/auth/login",
            json={"email": "login@example.com", "password": "CorrectPass1!"},
        )

        assert response.status_code == 200
        assert response.json()["token_type"] == "bearer"

    async def test_wrong_password_and_unknown_email_look_the_same(self, client, register_user):
        await register_user("login@example.com", password="CorrectPass1!")

        wrong = await client.post(
            "/auth/login", json={"email": "login@example.com", "password": "WrongPass1!"}
        )
        unknown = await client.post(
            "/auth/login", json={"email": "ghost@example.com", "password": "WrongPass1!"}
        )

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()

    async def test_garbage_token_is_rejected(self, client):
        response = await client.get(
            "/tmc/balance", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401
