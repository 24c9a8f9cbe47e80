"""Dependency injection for FastAPI routes."""

from collections.abc import AsyncGenerator
from typing import Annotated

import redis.asyncio as aioredis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Re-export auth dependencies for convenience
from storesearch.core.auth import (
    AdminUser,
    CurrentUser,
    OptionalUser,
    get_current_user,
    get_optional_user,
    require_admin,
)
from storesearch.core.config import settings
from storesearch.core.database import async_session_maker, get_async_session
from storesearch.services.index_client import IndexClient, get_index_client


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Alias for get_async_session."""
    async for session in get_async_session():
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that outlives the request (background tasks)."""
    return async_session_maker


# Shared Redis connection pool
_redis_pool: aioredis.ConnectionPool | None = None


def _get_redis_pool() -> aioredis.ConnectionPool:
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.ConnectionPool.from_url(
            str(settings.redis_url), decode_responses=True
        )
    return _redis_pool


async def get_redis() -> AsyncGenerator[aioredis.Redis, None]:
    """Yield a Redis client from the shared connection pool."""
    pool = _get_redis_pool()
    r = aioredis.Redis(connection_pool=pool)
    try:
        yield r
    finally:
        await r.aclose()


def get_search_index() -> IndexClient:
    return get_index_client()


# Type aliases for route signatures
DBSession = Annotated[AsyncSession, Depends(get_db)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
RedisClient = Annotated[aioredis.Redis, Depends(get_redis)]
IndexDep = Annotated[IndexClient, Depends(get_search_index)]


__all__ = [
    "AdminUser",
    "CurrentUser",
    "DBSession",
    "IndexDep",
    "OptionalUser",
    "RedisClient",
    "SessionFactory",
    "get_current_user",
    "get_db",
    "get_optional_user",
    "get_redis",
    "get_search_index",
    "get_session_factory",
    "require_admin",
]
