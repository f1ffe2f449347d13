"""FastAPI auth dependencies — the authentication and authorization gates.

Learn: These are used as Depends() in routers and route handlers.

get_current_user (authentication gate):
  Authorization: Bearer <jwt> → verify signature/expiry → load the user.
  Every failure is the same 401 to the caller; the precise reason
  (expired, bad signature, malformed, unknown user) only goes to the log.

require_role(*roles) (authorization gate):
  Depends on get_current_user, so FastAPI always resolves identity first.
  Pure role check, no I/O. FastAPI caches get_current_user per request,
  so stacking both gates costs one token verification and one user lookup.
"""

import uuid
from typing import Optional

import structlog
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.auth.jwt import TokenError, verify_token
from tasktrack.db.engine import get_db
from tasktrack.db.models import ROLE_ADMIN
from tasktrack.errors import AuthenticationError, AuthorizationError
from tasktrack.services.user_service import UserService

logger = structlog.get_logger()

INVALID_TOKEN_MESSAGE = "Invalid authentication token"


class CurrentIdentity:
    """The authenticated caller, as seen by everything downstream.

    Learn: Carries the profile fields a handler may echo back (/auth/me)
    but never the password hash. Services take this object, not a raw
    user id, so ownership checks can consult the role.
    """

    def __init__(
        self,
        user_id: uuid.UUID,
        role: str,
        name: str = "",
        email: str = "",
    ):
        self.user_id = user_id
        self.role = role
        self.name = name
        self.email = email

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_public(self) -> dict:
        return {
            "id": str(self.user_id),
            "name": self.name,
            "email": self.email,
            "role": self.role,
        }

    def __repr__(self) -> str:
        return f"CurrentIdentity(user_id={self.user_id!s}, role={self.role!r})"


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an "Authorization: Bearer <token>" header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme != "Bearer" or not token:
        return None
    return token


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> CurrentIdentity:
    """Resolve the caller from the bearer token (required, 401 if absent)."""
    token = bearer_token(authorization)
    if not token:
        raise AuthenticationError("Authentication required")

    try:
        claims = verify_token(token)
    except TokenError as e:
        logger.info("auth.token_rejected", reason=type(e).__name__, detail=str(e))
        raise AuthenticationError(INVALID_TOKEN_MESSAGE)

    user = await UserService(db).get_user(claims.subject_id)
    if not user:
        logger.info("auth.unknown_subject", subject_id=claims.subject_id)
        raise AuthenticationError(INVALID_TOKEN_MESSAGE)

    identity = CurrentIdentity(
        user_id=user.id,
        role=user.role,
        name=user.name,
        email=user.email,
    )
    request.state.identity = identity
    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return identity


def require_role(*roles: str):
    """Build a dependency that lets through only identities with one of `roles`."""
    allowed = frozenset(roles)

    async def check_role(
        identity: CurrentIdentity = Depends(get_current_user),
    ) -> CurrentIdentity:
        if identity.role not in allowed:
            logger.info(
                "auth.forbidden",
                user_id=str(identity.user_id),
                role=identity.role,
                allowed=sorted(allowed),
            )
            raise AuthorizationError()
        return identity

    return check_role
