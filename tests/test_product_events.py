"""Tests for commit-time index updates from product writes."""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from storesearch.core.database import async_session_maker
from storesearch.models.product import Product
from storesearch.models.search_history import SearchHistory
from storesearch.search.errors import IndexUnavailableError
from storesearch.services.index_sync import IndexSyncHooks
from storesearch.services.memory_index import InMemoryIndexClient
from storesearch.services.product_events import HOOKS_KEY, IndexedSession
from tests.conftest import BASE_TIME, TEST_SESSION_ID


@pytest.fixture
def hooks(memory_index: InMemoryIndexClient) -> IndexSyncHooks:
    return IndexSyncHooks(memory_index)


@pytest_asyncio.fixture
async def session(
    engine: AsyncEngine, hooks: IndexSyncHooks
) -> AsyncGenerator[AsyncSession, None]:
    """Session wired like the application's, with the test's hooks."""
    factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        sync_session_class=IndexedSession,
        info={HOOKS_KEY: hooks},
    )
    async with factory() as s:
        yield s


def _product(name: str, **fields: object) -> Product:
    return Product(
        name=name,
        slug=name.lower().replace(" ", "-"),
        platform="Steam",
        price=19.99,
        created_at=BASE_TIME,
        **fields,
    )


class TestProductWriteSync:
    """Committed product changes reach the index."""

    def test_application_sessions_are_indexed(self) -> None:
        assert async_session_maker.kw["sync_session_class"] is IndexedSession

    @pytest.mark.asyncio
    async def test_insert_is_indexed_after_commit(
        self,
        session: AsyncSession,
        hooks: IndexSyncHooks,
        memory_index: InMemoryIndexClient,
    ) -> None:
        product = _product("Cyberpunk 2077", genres=["RPG"])
        session.add(product)
        await session.flush()
        await hooks.drain()
        assert (await memory_index.stats()).total_documents == 0

        await session.commit()
        await hooks.drain()

        result = await memory_index.search("cyberpunk")
        assert [hit.document.id for hit in result.hits] == [str(product.id)]
        assert result.hits[0].document.genres == ["RPG"]
        assert result.hits[0].document.created_at == int(BASE_TIME.timestamp())

    @pytest.mark.asyncio
    async def test_update_replaces_document(
        self,
        session: AsyncSession,
        hooks: IndexSyncHooks,
        memory_index: InMemoryIndexClient,
    ) -> None:
        product = _product("Halo")
        session.add(product)
        await session.commit()

        product.name = "Portal"
        await session.commit()
        await hooks.drain()

        assert (await memory_index.search("halo")).total == 0
        assert (await memory_index.search("portal")).total == 1
        assert (await memory_index.stats()).total_documents == 1

    @pytest.mark.asyncio
    async def test_deactivation_removes_document(
        self,
        session: AsyncSession,
        hooks: IndexSyncHooks,
        memory_index: InMemoryIndexClient,
    ) -> None:
        product = _product("Halo")
        session.add(product)
        await session.commit()
        await hooks.drain()

        product.is_active = False
        await session.commit()
        await hooks.drain()

        assert (await memory_index.stats()).total_documents == 0

    @pytest.mark.asyncio
    async def test_inactive_insert_is_not_indexed(
        self,
        session: AsyncSession,
        hooks: IndexSyncHooks,
        memory_index: InMemoryIndexClient,
    ) -> None:
        session.add(_product("Retired", is_active=False))
        await session.commit()
        await hooks.drain()

        assert (await memory_index.stats()).total_documents == 0

    @pytest.mark.asyncio
    async def test_delete_removes_document(
        self,
        session: AsyncSession,
        hooks: IndexSyncHooks,
        memory_index: InMemoryIndexClient,
    ) -> None:
        product = _product("Halo")
        session.add(product)
        await session.commit()
        await hooks.drain()

        await session.delete(product)
        await session.commit()
        await hooks.drain()

        assert (await memory_index.search("halo")).total == 0

    @pytest.mark.asyncio
    async def test_rollback_discards_changes(
        self,
        session: AsyncSession,
        hooks: IndexSyncHooks,
        memory_index: InMemoryIndexClient,
    ) -> None:
        session.add(_product("Halo"))
        await session.flush()
        await session.rollback()

        session.add(_product("Portal"))
        await session.commit()
        await hooks.drain()

        assert [doc["name"] for doc in memory_index.store.snapshot()] == ["Portal"]

    @pytest.mark.asyncio
    async def test_index_failure_does_not_fail_commit(
        self,
        session: AsyncSession,
        hooks: IndexSyncHooks,
        memory_index: InMemoryIndexClient,
    ) -> None:
        with patch.object(
            memory_index, "upsert", AsyncMock(side_effect=IndexUnavailableError("down"))
        ):
            session.add(_product("Halo"))
            await session.commit()
            await hooks.drain()

        names = (await session.execute(select(Product.name))).scalars().all()
        assert names == ["Halo"]
        assert (await memory_index.stats()).total_documents == 0

    @pytest.mark.asyncio
    async def test_other_models_are_ignored(
        self,
        session: AsyncSession,
        hooks: IndexSyncHooks,
    ) -> None:
        session.add(SearchHistory(session_id=TEST_SESSION_ID, keyword="halo"))
        await session.commit()

        assert hooks.pending == 0
