"""Tests for the search index administration API."""

from collections.abc import Awaitable, Callable
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from storesearch.models.product import Product
from storesearch.schemas.search import SearchableDocument
from storesearch.search.errors import IndexUnavailableError
from storesearch.services.memory_index import InMemoryIndexClient

ProductFactory = Callable[..., Awaitable[Product]]


# ---------------------------------------------------------------------------
# Access control
# ---------------------------------------------------------------------------


class TestAdminAccess:
    """Only admins may inspect or modify the index."""

    @pytest.mark.asyncio
    async def test_anonymous_gets_401(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/admin/search", params={"action": "stats"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_anonymous_post_gets_401(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/admin/search", json={"action": "clear"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_non_admin_gets_403(self, user_client: AsyncClient) -> None:
        response = await user_client.get("/api/v1/admin/search", params={"action": "stats"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_non_admin_cannot_clear(
        self,
        user_client: AsyncClient,
        memory_index: InMemoryIndexClient,
        make_document: Callable[..., SearchableDocument],
    ) -> None:
        await memory_index.upsert(make_document(1, "Halo"))

        response = await user_client.post("/api/v1/admin/search", json={"action": "clear"})
        assert response.status_code == 403
        assert (await memory_index.stats()).total_documents == 1


# ---------------------------------------------------------------------------
# GET /admin/search?action=stats
# ---------------------------------------------------------------------------


class TestIndexStats:
    """Tests for the stats action."""

    @pytest.mark.asyncio
    async def test_stats(
        self,
        admin_client: AsyncClient,
        memory_index: InMemoryIndexClient,
        make_document: Callable[..., SearchableDocument],
    ) -> None:
        await memory_index.bulk_import([make_document(1, "Halo"), make_document(2, "Portal")])

        response = await admin_client.get("/api/v1/admin/search", params={"action": "stats"})
        assert response.status_code == 200
        data = response.json()
        assert data["totalDocuments"] == 2
        assert data["name"] == "products"
        assert isinstance(data["created"], int)

    @pytest.mark.asyncio
    async def test_missing_action_is_400(self, admin_client: AsyncClient) -> None:
        response = await admin_client.get("/api/v1/admin/search")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_action_is_400(self, admin_client: AsyncClient) -> None:
        response = await admin_client.get("/api/v1/admin/search", params={"action": "reindex"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_index_failure_is_503(
        self, admin_client: AsyncClient, memory_index: InMemoryIndexClient
    ) -> None:
        with patch.object(
            memory_index, "stats", AsyncMock(side_effect=IndexUnavailableError("down"))
        ):
            response = await admin_client.get(
                "/api/v1/admin/search", params={"action": "stats"}
            )

        assert response.status_code == 503
        data = response.json()
        assert data["success"] is False
        assert "down" in data["message"]


# ---------------------------------------------------------------------------
# POST /admin/search
# ---------------------------------------------------------------------------


class TestIndexActions:
    """Tests for the reindex and clear actions."""

    @pytest.mark.asyncio
    async def test_missing_body_is_400(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post("/api/v1/admin/search")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_action_is_400(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post("/api/v1/admin/search", json={"action": "drop"})
        assert response.status_code == 400
        assert "reindex" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_reindex(
        self,
        admin_client: AsyncClient,
        memory_index: InMemoryIndexClient,
        product_factory: ProductFactory,
        make_document: Callable[..., SearchableDocument],
    ) -> None:
        await memory_index.upsert(make_document(999, "Stale Entry"))
        await product_factory(name="Halo")
        await product_factory(name="Portal")
        await product_factory(name="Retired", is_active=False)

        response = await admin_client.post("/api/v1/admin/search", json={"action": "reindex"})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["totalIndexed"] == 2
        assert data["failed"] == 0
        assert data["message"] == "Successfully indexed 2 products"

        names = {doc["name"] for doc in memory_index.store.snapshot()}
        assert names == {"Halo", "Portal"}

    @pytest.mark.asyncio
    async def test_reindex_failure_is_503(
        self, admin_client: AsyncClient, memory_index: InMemoryIndexClient
    ) -> None:
        with patch.object(
            memory_index, "clear", AsyncMock(side_effect=IndexUnavailableError("down"))
        ):
            response = await admin_client.post(
                "/api/v1/admin/search", json={"action": "reindex"}
            )

        assert response.status_code == 503
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_clear(
        self,
        admin_client: AsyncClient,
        memory_index: InMemoryIndexClient,
        make_document: Callable[..., SearchableDocument],
    ) -> None:
        await memory_index.bulk_import([make_document(1, "Halo"), make_document(2, "Portal")])

        response = await admin_client.post("/api/v1/admin/search", json={"action": "clear"})
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Search index cleared successfully",
        }
        assert (await memory_index.stats()).total_documents == 0
