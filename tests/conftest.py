"""
Test fixtures for TradeVerify.

Provides:
- Async DB engine/session (SQLite in-memory, fresh per test)
- Users and JWTs per marketplace role
- Authenticated FastAPI test clients with the DB dependency overridden
"""

import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tradeverify.auth.jwt import create_access_token
from tradeverify.db.engine import Base
from tradeverify.db import models  # noqa: F401

# In-memory SQLite shared across connections of one engine
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine():
    """Create a test database engine with all tables."""
    eng = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    """Create a session factory bound to the test engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a DB session per test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ── Identities ──────────────────────────────────────────────────────────


@pytest.fixture
def seller_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def buyer_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def admin_id() -> str:
    return str(uuid.uuid4())


def make_token(user_id, role: str) -> str:
    return create_access_token(user_id=str(user_id), role=role, email=f"{role}@test.com")


# ── API clients ─────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def app(session_factory):
    """
    The FastAPI app with get_db overridden to the test session factory,
    so the API sees the same data as the test fixtures.
    """
    from tradeverify.api.deps import get_db
    from tradeverify.main import app as fastapi_app

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


async def _client(app, token: str | None) -> AsyncClient:
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test", headers=headers)


@pytest_asyncio.fixture
async def seller_client(app, seller_id):
    async with await _client(app, make_token(seller_id, "seller")) as c:
        yield c


@pytest_asyncio.fixture
async def buyer_client(app, buyer_id):
    async with await _client(app, make_token(buyer_id, "buyer")) as c:
        yield c


@pytest_asyncio.fixture
async def admin_client(app, admin_id):
    async with await _client(app, make_token(admin_id, "admin")) as c:
        yield c


@pytest_asyncio.fixture
async def anon_client(app):
    async with await _client(app, None) as c:
        yield c
