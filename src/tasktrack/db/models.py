"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Alembic migrations are generated by comparing these
models to the actual DB.

Key concepts:
- UUID primary keys (opaque ids; no sequential enumeration of tasks)
- Generic Uuid type so the same models run on PostgreSQL and SQLite
- Timestamps set in Python with microsecond precision, so created_at
  ordering is stable even for rows inserted within the same second
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)

TASK_STATUSES = ("todo", "in-progress", "done")
DEFAULT_TASK_STATUS = "todo"


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class User(Base):
    """A registered account — the credential store.

    Learn: email is stored trimmed + lower-cased so the unique index
    also covers case variants. password_hash is bcrypt and never leaves
    the service layer. role is fixed at creation: "user" from
    /auth/register, "admin" from the bootstrap endpoint.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(10), nullable=False, default=ROLE_USER
    )  # user, admin
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    tasks: Mapped[list["Task"]] = relationship(back_populates="owner")


class Task(Base):
    """A unit of work owned by exactly one user.

    Learn: owner_id is written once, at creation, from the authenticated
    caller, never from the request body. updated_at is refreshed by the
    ORM on every UPDATE (onupdate), not by handlers.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index("idx_tasks_owner_status", "owner_id", "status"),
        Index("idx_tasks_created", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DEFAULT_TASK_STATUS
    )  # todo, in-progress, done
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    owner: Mapped["User"] = relationship(back_populates="tasks")
