"""Shared helpers for API tests: register users/admins and build auth headers."""

import os
import uuid

ADMIN_BOOTSTRAP_KEY = os.environ.get("TASKTRACK_ADMIN_BOOTSTRAP_KEY", "test-bootstrap-key")
PASSWORD = "password_123"


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def register_user(client, name: str = "Test User", email: str | None = None) -> dict:
    """Register a regular user; returns {"token", "user", "headers"}."""
    r = await client.post(
        "/api/v1/auth/register",
        json={"name": name, "email": email or unique_email(), "password": PASSWORD},
    )
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    return {**data, "headers": bearer(data["token"])}


async def register_admin(client, name: str = "Admin", email: str | None = None) -> dict:
    """Bootstrap an admin with the test bootstrap key."""
    r = await client.post(
        "/api/v1/auth/register-admin",
        json={"name": name, "email": email or unique_email("admin"), "password": PASSWORD},
        headers={"x-admin-bootstrap-key": ADMIN_BOOTSTRAP_KEY},
    )
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    return {**data, "headers": bearer(data["token"])}


async def create_task(client, who: dict, title: str, **fields) -> dict:
    r = await client.post(
        "/api/v1/tasks", json={"title": title, **fields}, headers=who["headers"]
    )
    assert r.status_code == 201, r.text
    return r.json()["data"]
