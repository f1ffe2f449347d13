"""Auth API — registration, admin bootstrap, login, current user.

Learn: Routes for the identity lifecycle:
- POST /auth/register → create a "user" account, returns a token
- POST /auth/register-admin → create an "admin" account; requires the
  x-admin-bootstrap-key header to match TASKTRACK_ADMIN_BOOTSTRAP_KEY
- POST /auth/login → email/password → token
- GET /auth/me → current user info (bearer token)

Login answers "Invalid email or password" for both unknown emails and
wrong passwords.
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.auth.dependencies import CurrentIdentity, get_current_user
from tasktrack.auth.jwt import create_access_token
from tasktrack.config import settings
from tasktrack.db.engine import get_db
from tasktrack.db.models import ROLE_ADMIN, ROLE_USER, User
from tasktrack.errors import AuthorizationError
from tasktrack.services.user_service import UserService

router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class RegisterRequest(BaseModel):
    name: str = Field(..., max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


def _auth_payload(user: User, message: str) -> dict:
    return {
        "success": True,
        "message": message,
        "data": {
            "token": create_access_token(str(user.id), user.role),
            "user": {
                "id": str(user.id),
                "name": user.name,
                "email": user.email,
                "role": user.role,
            },
        },
    }


# ─── Register ────────────────────────────────────────────


@router.post("/register", status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a regular user account."""
    user = await UserService(db).create_user(
        name=body.name,
        email=body.email,
        password=body.password,
        role=ROLE_USER,
    )
    return _auth_payload(user, "User registered successfully")


@router.post("/register-admin", status_code=201)
async def register_admin(
    body: RegisterRequest,
    x_admin_bootstrap_key: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
):
    """Create an admin account. Disabled unless a bootstrap key is configured."""
    expected = settings.admin_bootstrap_key
    if (
        not expected
        or not x_admin_bootstrap_key
        or not hmac.compare_digest(x_admin_bootstrap_key.encode(), expected.encode())
    ):
        raise AuthorizationError("Invalid admin bootstrap key")

    user = await UserService(db).create_user(
        name=body.name,
        email=body.email,
        password=body.password,
        role=ROLE_ADMIN,
    )
    return _auth_payload(user, "Admin registered successfully")


# ─── Login ───────────────────────────────────────────────


@router.post("/login")
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login with email and password → JWT token."""
    user = await UserService(db).authenticate(body.email, body.password)
    return _auth_payload(user, "Login successful")


# ─── Current user ───────────────────────────────────────


@router.get("/me")
async def get_me(identity: CurrentIdentity = Depends(get_current_user)):
    """Get the current authenticated user's info."""
    return {"success": True, "data": identity.to_public()}
