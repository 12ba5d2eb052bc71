"""
Tests for authentication endpoints: verified signup, login and password reset.
"""

import pytest
from httpx import AsyncClient

from app.services.auth_service import RESET_PREFIX, SIGNUP_PREFIX

SIGNUP = {
    "email": "new@example.com",
    "username": "newuser",
    "password": "securepassword123",
    "first_name": "New",
    "last_name": "Guest",
    "phone_number": "+63 900 000 0000",
}


@pytest.mark.asyncio
async def test_register_sends_code_and_verify_creates_user(client: AsyncClient, code_store, email_sender):
    """Signup parks the request; the account exists only after verification."""
    response = await client.post("/api/v1/auth/register", json=SIGNUP)
    assert response.status_code == 202
    assert response.json()["data"]["email"] == "new@example.com"

    pending = await code_store.get(SIGNUP_PREFIX + "new@example.com")
    assert pending is not None
    assert "password" not in pending
    assert pending["hashed_password"] != SIGNUP["password"]
    assert len(email_sender.to("new@example.com")) == 1
    assert pending["code"] in email_sender.to("new@example.com")[0]["html"]

    # Not yet a user
    login = await client.post("/api/v1/auth/login", json={
        "email": SIGNUP["email"], "password": SIGNUP["password"],
    })
    assert login.status_code == 401

    response = await client.post("/api/v1/auth/verify-email", json={
        "email": "new@example.com", "code": pending["code"],
    })
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["role"] == "user"
    assert data["user"]["is_email_verified"] is True
    assert "hashed_password" not in data["user"]
    assert await code_store.get(SIGNUP_PREFIX + "new@example.com") is None


@pytest.mark.asyncio
async def test_verify_with_wrong_code(client: AsyncClient, code_store):
    await client.post("/api/v1/auth/register", json=SIGNUP)
    pending = await code_store.get(SIGNUP_PREFIX + "new@example.com")
    wrong = "000000" if pending["code"] != "000000" else "111111"

    response = await client.post("/api/v1/auth/verify-email", json={
        "email": "new@example.com", "code": wrong,
    })
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid verification code"


@pytest.mark.asyncio
async def test_verify_without_pending_signup(client: AsyncClient):
    response = await client.post("/api/v1/auth/verify-email", json={
        "email": "nobody@example.com", "code": "123456",
    })
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, test_user):
    """Duplicate email returns 409."""
    response = await client.post("/api/v1/auth/register", json={**SIGNUP, "email": "guest@example.com"})
    assert response.status_code == 409
    assert response.json()["message"] == "Email already registered"


@pytest.mark.asyncio
async def test_register_duplicate_username(client: AsyncClient, test_user):
    """Duplicate username returns 409."""
    response = await client.post("/api/v1/auth/register", json={**SIGNUP, "username": "guest"})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_register_weak_password(client: AsyncClient):
    """Password under 8 chars fails validation with a field error."""
    response = await client.post("/api/v1/auth/register", json={**SIGNUP, "password": "short"})
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    assert any(d["field"] == "password" for d in body["details"])


@pytest.mark.asyncio
async def test_login_success_sets_cookie(client: AsyncClient, test_user):
    """Valid credentials return a token and set the httpOnly auth cookie."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "guest@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["token_type"] == "bearer"
    assert data["access_token"]
    assert data["user"]["id"] == test_user.id

    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith("auth=")
    assert "HttpOnly" in set_cookie


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, test_user):
    """Wrong password returns 401."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "guest@example.com",
        "password": "wrongpassword",
    })
    assert response.status_code == 401
    assert response.json() == {"message": "Invalid email or password"}


@pytest.mark.asyncio
async def test_login_nonexistent_user(client: AsyncClient):
    """Non-existent email returns 401."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "nobody@example.com",
        "password": "anything123",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_blocked_user(client: AsyncClient, db_session, test_user):
    test_user.is_blocked = True
    await db_session.commit()

    response = await client.post("/api/v1/auth/login", json={
        "email": "guest@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_me_with_cookie(client: AsyncClient, test_user):
    login = await client.post("/api/v1/auth/login", json={
        "email": "guest@example.com",
        "password": "testpassword123",
    })
    token = login.json()["data"]["access_token"]

    response = await client.get("/api/v1/auth/me", headers={"Cookie": f"auth={token}"})
    assert response.status_code == 200
    assert response.json()["data"]["email"] == "guest@example.com"


@pytest.mark.asyncio
async def test_me_with_bearer(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["username"] == "guest"


@pytest.mark.asyncio
async def test_me_unauthenticated(client: AsyncClient):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_invalid_token(client: AsyncClient):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_blocked_user_token_rejected(client: AsyncClient, db_session, test_user, auth_headers):
    test_user.is_blocked = True
    await db_session.commit()

    response = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_logout_clears_cookie(client: AsyncClient):
    response = await client.post("/api/v1/auth/logout")
    assert response.status_code == 200
    assert response.headers["set-cookie"].startswith('auth=""')


@pytest.mark.asyncio
async def test_password_reset_flow(client: AsyncClient, test_user, code_store):
    response = await client.post("/api/v1/auth/forgot-password", json={"email": "guest@example.com"})
    assert response.status_code == 200
    code = (await code_store.get(RESET_PREFIX + "guest@example.com"))["code"]

    response = await client.post("/api/v1/auth/reset-password", json={
        "email": "guest@example.com",
        "code": code,
        "new_password": "brandnewpassword",
    })
    assert response.status_code == 200

    old = await client.post("/api/v1/auth/login", json={
        "email": "guest@example.com", "password": "testpassword123",
    })
    assert old.status_code == 401
    new = await client.post("/api/v1/auth/login", json={
        "email": "guest@example.com", "password": "brandnewpassword",
    })
    assert new.status_code == 200


@pytest.mark.asyncio
async def test_forgot_password_unknown_email_is_silent(client: AsyncClient, email_sender):
    response = await client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})
    assert response.status_code == 200
    assert email_sender.sent == []


@pytest.mark.asyncio
async def test_reset_password_bad_code(client: AsyncClient, test_user):
    response = await client.post("/api/v1/auth/reset-password", json={
        "email": "guest@example.com",
        "code": "123456",
        "new_password": "brandnewpassword",
    })
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired reset code"
