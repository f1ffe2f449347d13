"""Auth API tests.

Learn: Tests cover:
1. Registration, duplicate prevention (case-insensitive), validation
2. Admin bootstrap behind the x-admin-bootstrap-key header
3. Login → JWT, with one message for every credential failure
4. The /me endpoint and every way a bearer token can be rejected
"""

import uuid

import pytest

from tasktrack.auth.jwt import create_access_token

from .helpers import ADMIN_BOOTSTRAP_KEY, PASSWORD, bearer, register_user, unique_email


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_user(client):
    """Register returns a token and the public user, role "user"."""
    email = unique_email("reg")
    r = await client.post(
        "/api/v1/auth/register",
        json={"name": "Test User", "email": email, "password": PASSWORD},
    )
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "User registered successfully"
    user = body["data"]["user"]
    assert user["email"] == email
    assert user["name"] == "Test User"
    assert user["role"] == "user"
    assert "password" not in user and "password_hash" not in user
    assert body["data"]["token"]


@pytest.mark.asyncio
async def test_register_normalizes_email(client):
    r = await client.post(
        "/api/v1/auth/register",
        json={"name": "Case", "email": "Mixed.Case@Example.COM", "password": PASSWORD},
    )
    assert r.status_code == 201
    assert r.json()["data"]["user"]["email"] == "mixed.case@example.com"


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    """Same address in a different case is still a duplicate."""
    email = unique_email("dup")
    body = {"name": "User 1", "email": email, "password": PASSWORD}

    r1 = await client.post("/api/v1/auth/register", json=body)
    assert r1.status_code == 201

    r2 = await client.post(
        "/api/v1/auth/register", json={**body, "email": email.upper()}
    )
    assert r2.status_code == 409
    assert r2.json() == {"success": False, "message": "Email already registered"}


@pytest.mark.asyncio
async def test_register_short_password(client):
    """Password must be at least 6 characters."""
    r = await client.post(
        "/api/v1/auth/register",
        json={"name": "Short", "email": unique_email(), "password": "abc"},
    )
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert "password" in body["message"]


@pytest.mark.asyncio
async def test_register_blank_name(client):
    r = await client.post(
        "/api/v1/auth/register",
        json={"name": "   ", "email": unique_email(), "password": PASSWORD},
    )
    assert r.status_code == 400
    assert "name" in r.json()["message"]


@pytest.mark.asyncio
async def test_register_invalid_email(client):
    r = await client.post(
        "/api/v1/auth/register",
        json={"name": "X", "email": "not-an-email", "password": PASSWORD},
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_register_ignores_role_in_body(client):
    r = await client.post(
        "/api/v1/auth/register",
        json={"name": "Sneaky", "email": unique_email(), "password": PASSWORD, "role": "admin"},
    )
    assert r.status_code == 201
    assert r.json()["data"]["user"]["role"] == "user"


# ═══════════════════════════════════════════════════════════
# Admin bootstrap
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_admin_with_key(client):
    r = await client.post(
        "/api/v1/auth/register-admin",
        json={"name": "Root", "email": unique_email("root"), "password": PASSWORD},
        headers={"x-admin-bootstrap-key": ADMIN_BOOTSTRAP_KEY},
    )
    assert r.status_code == 201
    body = r.json()
    assert body["message"] == "Admin registered successfully"
    assert body["data"]["user"]["role"] == "admin"


@pytest.mark.asyncio
async def test_register_admin_without_key(client):
    r = await client.post(
        "/api/v1/auth/register-admin",
        json={"name": "Root", "email": unique_email("root"), "password": PASSWORD},
    )
    assert r.status_code == 403
    assert r.json()["message"] == "Invalid admin bootstrap key"


@pytest.mark.asyncio
async def test_register_admin_wrong_key(client):
    r = await client.post(
        "/api/v1/auth/register-admin",
        json={"name": "Root", "email": unique_email("root"), "password": PASSWORD},
        headers={"x-admin-bootstrap-key": "guess"},
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_register_admin_disabled_without_configured_key(client, monkeypatch):
    """An empty configured key disables the endpoint, even for an empty header."""
    from tasktrack.config import settings

    monkeypatch.setattr(settings, "admin_bootstrap_key", "")
    r = await client.post(
        "/api/v1/auth/register-admin",
        json={"name": "Root", "email": unique_email("root"), "password": PASSWORD},
        headers={"x-admin-bootstrap-key": ""},
    )
    assert r.status_code == 403


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_success(client):
    """Login with valid credentials returns a working token."""
    email = unique_email("login")
    await register_user(client, "Login User", email=email)

    r = await client.post(
        "/api/v1/auth/login", json={"email": email.upper(), "password": PASSWORD}
    )
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Login successful"
    assert body["data"]["user"]["email"] == email

    me = await client.get("/api/v1/auth/me", headers=bearer(body["data"]["token"]))
    assert me.status_code == 200


@pytest.mark.asyncio
async def test_login_failures_are_indistinguishable(client):
    """Wrong password and unknown email get the same 401 body."""
    email = unique_email("login")
    await register_user(client, email=email)

    wrong_pw = await client.post(
        "/api/v1/auth/login", json={"email": email, "password": "wrong_password"}
    )
    no_user = await client.post(
        "/api/v1/auth/login",
        json={"email": unique_email("ghost"), "password": PASSWORD},
    )

    assert wrong_pw.status_code == no_user.status_code == 401
    assert wrong_pw.json() == no_user.json() == {
        "success": False,
        "message": "Invalid email or password",
    }


@pytest.mark.asyncio
async def test_login_missing_fields(client):
    r = await client.post("/api/v1/auth/login", json={"email": unique_email()})
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# /me and token rejection
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me(client, alice):
    r = await client.get("/api/v1/auth/me", headers=alice["headers"])
    assert r.status_code == 200
    assert r.json() == {"success": True, "data": alice["user"]}


@pytest.mark.asyncio
async def test_me_without_token(client):
    r = await client.get("/api/v1/auth/me")
    assert r.status_code == 401
    assert r.json()["message"] == "Authentication required"
    assert r.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
@pytest.mark.parametrize("header", ["Token abc", "Bearer", "bearer abc", "Bearer "])
async def test_me_malformed_header(client, header):
    r = await client.get("/api/v1/auth/me", headers={"Authorization": header})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_garbage_token(client):
    r = await client.get("/api/v1/auth/me", headers=bearer("not.a.jwt"))
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid authentication token"


@pytest.mark.asyncio
async def test_me_expired_token(client, alice):
    token = create_access_token(alice["user"]["id"], "user", expires_minutes=-1)
    r = await client.get("/api/v1/auth/me", headers=bearer(token))
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid authentication token"


@pytest.mark.asyncio
async def test_me_token_for_unknown_user(client):
    """A well-signed token whose subject no longer exists is rejected."""
    token = create_access_token(str(uuid.uuid4()), "user")
    r = await client.get("/api/v1/auth/me", headers=bearer(token))
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid authentication token"


@pytest.mark.asyncio
async def test_role_comes_from_the_account_not_the_token(client, alice):
    """A user token minted with role=admin still can't reach admin routes."""
    token = create_access_token(alice["user"]["id"], "admin")
    me = await client.get("/api/v1/auth/me", headers=bearer(token))
    assert me.json()["data"]["role"] == "user"

    r = await client.get("/api/v1/admin/stats", headers=bearer(token))
    assert r.status_code == 403
