"""JWT token creation and verification — the token service.

Learn: JWT (JSON Web Token) provides stateless authentication. The token
carries the user id (sub) and role; validity is purely signature + time.
There is no server-side session table and no revocation list, so
verify_token() never touches the database or the cache.

Each token also carries a random jti, so two tokens issued for the same
user in the same second still differ.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from tasktrack.config import settings
from tasktrack.db.models import ROLES


class TokenError(Exception):
    """Raised when token verification fails."""


class InvalidTokenError(TokenError):
    """Signature does not match, or the token was signed with another algorithm."""


class ExpiredTokenError(TokenError):
    """Token is past its exp claim."""


class MalformedTokenError(TokenError):
    """Token is not a decodable JWT or lacks required claims."""


@dataclass(frozen=True)
class TokenClaims:
    subject_id: str
    role: str


def create_access_token(
    subject_id: str,
    role: str,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a signed JWT access token."""
    if expires_minutes is None:
        expires_minutes = settings.access_token_expire_minutes
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(subject_id),
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> TokenClaims:
    """Verify and decode a JWT token.

    Returns the subject id and role on success.
    Raises ExpiredTokenError, InvalidTokenError or MalformedTokenError.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise ExpiredTokenError("Token has expired")
    except jwt.InvalidSignatureError:
        raise InvalidTokenError("Token signature is invalid")
    except (jwt.DecodeError, jwt.MissingRequiredClaimError) as e:
        raise MalformedTokenError(f"Malformed token: {e}")
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError(f"Invalid token: {e}")

    role = payload.get("role")
    if role not in ROLES:
        raise MalformedTokenError("Malformed token: missing or unknown role")
    if payload.get("type", "access") != "access":
        raise MalformedTokenError("Malformed token: not an access token")

    return TokenClaims(subject_id=payload["sub"], role=role)
