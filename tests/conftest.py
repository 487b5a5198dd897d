"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database built from the ORM
metadata. API tests talk to the app through httpx's ASGI transport with
get_db pointed at the same database.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CACHE_ENABLED", "true")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from tradedesk import models  # noqa: F401
from tradedesk.database import Base, get_db
from tradedesk.main import app
from tradedesk.services.cache_service import get_cache


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


def reload_after_rollback(session, previous_transaction):
    """Services roll back on failure; reload the rows a test still holds so it can keep reading them."""
    if previous_transaction.nested or not session.is_active:
        return
    for obj in list(session.identity_map.values()):
        session.refresh(obj)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        event.listen(session.sync_session, "after_soft_rollback", reload_after_rollback)
        yield session


@pytest_asyncio.fixture(autouse=True)
async def clear_view_cache():
    await get_cache().backend.clear_pattern("*")
    yield
    await get_cache().backend.clear_pattern("*")


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def user_id():
    import uuid
    return uuid.uuid4()


@pytest.fixture
def auth_headers(user_id):
    return {"X-User-Id": str(user_id)}
