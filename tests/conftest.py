"""Pytest configuration and fixtures for the storesearch test suite.

Provides:
- A fresh SQLite database (aiosqlite) per test
- An in-process search index per test
- Mock authentication (JWT bypass) for visitor, user and admin callers
- Mock Redis (fakeredis)
- Disabled rate limiting
- Factories for Product rows and SearchableDocument payloads
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any

import fakeredis.aioredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from storesearch.core.auth import get_current_user, get_optional_user
from storesearch.core.database import get_async_session
from storesearch.core.deps import get_db, get_redis, get_search_index, get_session_factory
from storesearch.core.rate_limit import limiter
from storesearch.main import app
from storesearch.models.base import Base
from storesearch.models.product import Product
from storesearch.schemas.search import SearchableDocument
from storesearch.services.memory_index import DocumentStore, InMemoryIndexClient

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
TEST_USER_ID = "test-user-id"
TEST_USER_EMAIL = "test@example.com"
TEST_SESSION_ID = "visitor-session-123"
BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

# ---------------------------------------------------------------------------
# Disable rate limiting globally for tests
# ---------------------------------------------------------------------------
limiter.enabled = False

# ---------------------------------------------------------------------------
# Per-test database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite database file private to the test.

    Uses NullPool so every session opens its own connection, which lets
    concurrency tests run statements on separate connections.
    """
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'storesearch_test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for test setup (factory fixtures) and services."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Search index
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_index() -> InMemoryIndexClient:
    """Empty in-process index, private to the test."""
    return InMemoryIndexClient(DocumentStore("products"))


# ---------------------------------------------------------------------------
# Fake Redis
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Provide a fresh fakeredis instance per test."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


# ---------------------------------------------------------------------------
# Auth mock
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_user() -> dict[str, Any]:
    """Return the default signed-in shopper payload (mimics decoded JWT)."""
    return {"sub": TEST_USER_ID, "email": TEST_USER_EMAIL}


@pytest.fixture
def admin_user() -> dict[str, Any]:
    """Return an admin payload carrying the configured admin role."""
    return {"sub": "admin-user-id", "email": "admin@example.com", "role": "admin"}


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


def _override_common(
    session_factory: async_sessionmaker[AsyncSession],
    fake_redis: fakeredis.aioredis.FakeRedis,
    index: InMemoryIndexClient,
) -> None:
    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as s:
            yield s

    async def _override_redis() -> AsyncGenerator[fakeredis.aioredis.FakeRedis, None]:
        yield fake_redis

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_db] = _override_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_redis] = _override_redis
    app.dependency_overrides[get_search_index] = lambda: index


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    fake_redis: fakeredis.aioredis.FakeRedis,
    memory_index: InMemoryIndexClient,
) -> AsyncGenerator[AsyncClient, None]:
    """Anonymous visitor client with DB, Redis and index overridden."""

    async def _override_optional_user() -> dict[str, Any] | None:
        return None

    _override_common(session_factory, fake_redis, memory_index)
    app.dependency_overrides[get_optional_user] = _override_optional_user

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def user_client(
    session_factory: async_sessionmaker[AsyncSession],
    fake_redis: fakeredis.aioredis.FakeRedis,
    memory_index: InMemoryIndexClient,
    auth_user: dict[str, Any],
) -> AsyncGenerator[AsyncClient, None]:
    """Signed-in shopper client."""

    async def _override_user() -> dict[str, Any]:
        return auth_user

    async def _override_optional_user() -> dict[str, Any] | None:
        return auth_user

    _override_common(session_factory, fake_redis, memory_index)
    app.dependency_overrides[get_current_user] = _override_user
    app.dependency_overrides[get_optional_user] = _override_optional_user

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin_client(
    session_factory: async_sessionmaker[AsyncSession],
    fake_redis: fakeredis.aioredis.FakeRedis,
    memory_index: InMemoryIndexClient,
    admin_user: dict[str, Any],
) -> AsyncGenerator[AsyncClient, None]:
    """Client authenticated as an admin."""

    async def _override_user() -> dict[str, Any]:
        return admin_user

    _override_common(session_factory, fake_redis, memory_index)
    app.dependency_overrides[get_current_user] = _override_user

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def plain_client() -> AsyncGenerator[AsyncClient, None]:
    """Minimal async test client with NO dependency overrides."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def product_factory(db_session: AsyncSession) -> Callable[..., Awaitable[Product]]:
    """Factory that creates Product rows in the test database.

    Each product is one minute newer than the previous one unless
    ``created_at`` is given.
    """
    created = 0

    async def _create(
        *,
        name: str = "Test Game",
        slug: str | None = None,
        platform: str = "Steam",
        price: str = "19.99",
        sale_price: str | None = None,
        final_price: str | None = None,
        genres: list[str] | None = None,
        description: str | None = None,
        is_active: bool = True,
        created_at: datetime | None = None,
        **kwargs: Any,
    ) -> Product:
        nonlocal created
        created += 1
        product = Product(
            name=name,
            slug=slug or name.lower().replace(" ", "-"),
            platform=platform,
            price=Decimal(price),
            sale_price=Decimal(sale_price) if sale_price else None,
            final_price=Decimal(final_price) if final_price else None,
            genres=genres if genres is not None else [],
            description=description,
            is_active=is_active,
            created_at=created_at or BASE_TIME + timedelta(minutes=created),
            **kwargs,
        )
        db_session.add(product)
        await db_session.commit()
        await db_session.refresh(product)
        return product

    return _create


@pytest.fixture
def make_document() -> Callable[..., SearchableDocument]:
    """Factory for SearchableDocument values (no database involved)."""

    def _make(id: int | str = 1, name: str = "Test Game", **fields: Any) -> SearchableDocument:
        fields.setdefault("slug", name.lower().replace(" ", "-"))
        fields.setdefault("platform", "Steam")
        fields.setdefault("price", 19.99)
        fields.setdefault("final_price", fields["price"])
        fields.setdefault("created_at", int(BASE_TIME.timestamp()) + int(id) if str(id).isdigit() else 0)
        return SearchableDocument(id=str(id), name=name, **fields)

    return _make
