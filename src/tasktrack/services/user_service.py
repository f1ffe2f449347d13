"""User service — the credential store.

Learn: Registration, login and identity lookup all go through here.
Emails are normalised (trimmed, lower-cased) on the way in, so the
unique index on users.email also rejects case variants.

Login failures use one message for "no such email" and "wrong password"
so the endpoint can't be used to discover registered accounts.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.auth.password import burn_password_check, hash_password, verify_password
from tasktrack.db.models import ROLE_ADMIN, ROLE_USER, Task, User
from tasktrack.errors import AuthenticationError, ConflictError

logger = structlog.get_logger()

INVALID_CREDENTIALS = "Invalid email or password"


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    """Business logic for user accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: uuid.UUID | str) -> Optional[User]:
        if not isinstance(user_id, uuid.UUID):
            try:
                user_id = uuid.UUID(str(user_id))
            except ValueError:
                return None
        return await self.db.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalars().first()

    async def create_user(
        self,
        name: str,
        email: str,
        password: str,
        role: str = ROLE_USER,
    ) -> User:
        """Create an account. Raises ConflictError if the email is taken."""
        email = normalize_email(email)
        if await self.get_by_email(email):
            raise ConflictError("Email already registered")

        user = User(
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
            role=role,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email.
            await self.db.rollback()
            raise ConflictError("Email already registered")
        await self.db.refresh(user)

        logger.info("users.registered", user_id=str(user.id), role=role)
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Return the user for valid credentials, else AuthenticationError."""
        user = await self.get_by_email(email)
        if not user:
            burn_password_check(password)
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not verify_password(password, user.password_hash):
            raise AuthenticationError(INVALID_CREDENTIALS)
        return user

    async def platform_stats(self) -> dict[str, int]:
        """Counts of users, admins and tasks across the whole platform."""
        users = await self.db.scalar(select(func.count()).select_from(User))
        admins = await self.db.scalar(
            select(func.count()).select_from(User).where(User.role == ROLE_ADMIN)
        )
        tasks = await self.db.scalar(select(func.count()).select_from(Task))
        return {"users": users or 0, "admins": admins or 0, "tasks": tasks or 0}
