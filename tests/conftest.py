"""Test fixtures — a fresh schema per test, real auth pipeline, fake Redis.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own engine and a freshly created schema. By default
   that's an in-memory SQLite database (aiosqlite); point
   TASKTRACK_TEST_DATABASE_URL at Postgres to run the same suite there.
2. The app's get_db is overridden to hand out sessions from that engine.
3. The task list cache is a RedisCache wrapping FakeRedis (tests/fakes.py),
   so cache hits, misses and invalidation are observable without a server.

Auth is NOT mocked: tests register, log in, and send real bearer tokens.
"""

import os

# Must be set before tasktrack is imported; settings are read at import.
os.environ.setdefault("TASKTRACK_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["TASKTRACK_ENVIRONMENT"] = "test"
os.environ["TASKTRACK_REDIS_URL"] = ""
os.environ["TASKTRACK_JWT_SECRET"] = "test-secret-not-for-production"
os.environ["TASKTRACK_ADMIN_BOOTSTRAP_KEY"] = "test-bootstrap-key"
os.environ["TASKTRACK_BCRYPT_ROUNDS"] = "4"


import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from tests.fakes import FakeRedis  # noqa: E402
from tests.helpers import register_admin, register_user  # noqa: E402
from tasktrack.cache import RedisCache  # noqa: E402
from tasktrack.db.engine import get_db  # noqa: E402
from tasktrack.db.models import Base  # noqa: E402
from tasktrack.main import app  # noqa: E402

TEST_DB_URL = os.environ.get(
    "TASKTRACK_TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:"
)


@pytest_asyncio.fixture()
async def db_engine():
    """Engine with a freshly created schema, dropped after the test."""
    kwargs = {}
    if TEST_DB_URL.startswith("sqlite"):
        # One shared connection, otherwise every checkout sees an empty DB.
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    engine = create_async_engine(TEST_DB_URL, echo=False, **kwargs)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def fake_redis():
    return FakeRedis()


@pytest_asyncio.fixture()
async def cache(fake_redis):
    return RedisCache(fake_redis)


@pytest_asyncio.fixture()
async def client(session_factory, cache):
    """HTTP client against the real app, with DB + cache swapped for test ones."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.cache = cache
    app.state.redis = None  # rate limiting off unless a test turns it on

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.cache = None
    app.state.redis = None


@pytest_asyncio.fixture()
async def alice(client):
    return await register_user(client, "Alice")


@pytest_asyncio.fixture()
async def bob(client):
    return await register_user(client, "Bob")


@pytest_asyncio.fixture()
async def admin(client):
    return await register_admin(client)
