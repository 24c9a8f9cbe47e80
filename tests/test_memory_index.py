"""Tests for the in-process index client."""

from collections.abc import Callable

import pytest

from storesearch.schemas.search import SearchableDocument, SearchFilters
from storesearch.search.filters import SortOrder
from storesearch.services.memory_index import DocumentStore, InMemoryIndexClient


@pytest.fixture
def catalog(make_document: Callable[..., SearchableDocument]) -> list[SearchableDocument]:
    return [
        make_document(
            1,
            "Cyberpunk 2077",
            price=59.99,
            final_price=49.99,
            genres=["RPG", "Action"],
            description="Open-world action-adventure RPG",
        ),
        make_document(
            2,
            "Grand Theft Auto V",
            price=29.99,
            final_price=24.99,
            genres=["Action", "Adventure"],
            description="Action-adventure game set in Los Santos",
        ),
        make_document(
            3,
            "Call of Duty: Modern Warfare",
            platform="Battle.net",
            price=39.99,
            final_price=34.99,
            genres=["FPS", "Action"],
            description="First-person shooter game",
        ),
    ]


@pytest.fixture
async def loaded_index(
    memory_index: InMemoryIndexClient, catalog: list[SearchableDocument]
) -> InMemoryIndexClient:
    await memory_index.bulk_import(catalog)
    return memory_index


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


class TestWrites:
    """Tests for upsert, bulk import, delete and clear."""

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(
        self,
        memory_index: InMemoryIndexClient,
        make_document: Callable[..., SearchableDocument],
    ) -> None:
        document = make_document(1, "Cyberpunk 2077")
        await memory_index.upsert(document)
        first = await memory_index.search("cyberpunk")
        await memory_index.upsert(document)
        second = await memory_index.search("cyberpunk")

        assert (await memory_index.stats()).total_documents == 1
        assert first.total == second.total == 1
        assert first.hits[0].score == second.hits[0].score

    @pytest.mark.asyncio
    async def test_upsert_replaces_whole_document(
        self,
        memory_index: InMemoryIndexClient,
        make_document: Callable[..., SearchableDocument],
    ) -> None:
        await memory_index.upsert(make_document(1, "Old Name", description="retro"))
        await memory_index.upsert(make_document(1, "New Name"))

        assert (await memory_index.search("retro")).total == 0
        assert (await memory_index.search("new name")).hits[0].document.name == "New Name"

    @pytest.mark.asyncio
    async def test_bulk_import_reports_each_document(
        self,
        memory_index: InMemoryIndexClient,
        make_document: Callable[..., SearchableDocument],
    ) -> None:
        results = await memory_index.bulk_import(
            [make_document(1, "A game"), SearchableDocument(id="", name="broken")]
        )
        assert [r.success for r in results] == [True, False]
        assert (await memory_index.stats()).total_documents == 1

    @pytest.mark.asyncio
    async def test_delete_removes_from_results(self, loaded_index: InMemoryIndexClient) -> None:
        await loaded_index.delete("1")
        result = await loaded_index.search("cyberpunk")
        assert all(hit.document.id != "1" for hit in result.hits)

    @pytest.mark.asyncio
    async def test_delete_unknown_id_is_not_an_error(
        self, memory_index: InMemoryIndexClient
    ) -> None:
        await memory_index.delete("does-not-exist")

    @pytest.mark.asyncio
    async def test_clear_then_import_three(
        self,
        loaded_index: InMemoryIndexClient,
        catalog: list[SearchableDocument],
    ) -> None:
        await loaded_index.clear()
        assert (await loaded_index.stats()).total_documents == 0

        await loaded_index.bulk_import(catalog)
        stats = await loaded_index.stats()
        assert stats.total_documents == 3
        assert stats.name == "products"

    @pytest.mark.asyncio
    async def test_stores_are_independent(
        self, make_document: Callable[..., SearchableDocument]
    ) -> None:
        first = InMemoryIndexClient(DocumentStore())
        second = InMemoryIndexClient(DocumentStore())
        await first.upsert(make_document(1, "Halo"))
        assert (await second.stats()).total_documents == 0


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class TestSearch:
    """Tests for InMemoryIndexClient.search()."""

    @pytest.mark.asyncio
    async def test_name_match_ranks_first(
        self,
        memory_index: InMemoryIndexClient,
        make_document: Callable[..., SearchableDocument],
    ) -> None:
        await memory_index.bulk_import(
            [
                make_document(1, "Cyberpunk 2077"),
                make_document(2, "GTA V", description="cyberpunk-themed mod support"),
            ]
        )
        result = await memory_index.search("cyberpunk")
        assert [hit.document.id for hit in result.hits] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_scores_non_increasing_with_id_tie_break(
        self,
        memory_index: InMemoryIndexClient,
        make_document: Callable[..., SearchableDocument],
    ) -> None:
        await memory_index.bulk_import(
            [
                make_document(2, "Halo Infinite"),
                make_document(10, "Halo Wars"),
                make_document(3, "Halo"),
            ]
        )
        result = await memory_index.search("halo")
        scores = [hit.score for hit in result.hits]

        assert scores == sorted(scores, reverse=True)
        # Equal scores: larger (newer) id first
        assert [hit.document.id for hit in result.hits] == ["3", "10", "2"]

    @pytest.mark.asyncio
    async def test_typo_still_matches(self, loaded_index: InMemoryIndexClient) -> None:
        result = await loaded_index.search("cyberpnk")
        assert [hit.document.id for hit in result.hits] == ["1"]

    @pytest.mark.asyncio
    async def test_match_all_lists_newest_first(self, loaded_index: InMemoryIndexClient) -> None:
        result = await loaded_index.search("*")
        assert result.total == 3
        assert [hit.document.id for hit in result.hits] == ["3", "2", "1"]
        assert all(hit.highlights["name"] == hit.document.name for hit in result.hits)

    @pytest.mark.asyncio
    async def test_filters(self, loaded_index: InMemoryIndexClient) -> None:
        filters = SearchFilters(platforms=["Steam"], price_max=30).to_clauses()
        result = await loaded_index.search("action", filters=filters)
        assert [hit.document.id for hit in result.hits] == ["2"]

    @pytest.mark.asyncio
    async def test_facets_are_disjunctive(self, loaded_index: InMemoryIndexClient) -> None:
        filters = SearchFilters(platforms=["Battle.net"]).to_clauses()
        result = await loaded_index.search("action", filters=filters)

        platform = next(f for f in result.facets if f.field_name == "platform")
        assert {c.value: c.count for c in platform.counts} == {"Steam": 2, "Battle.net": 1}
        genres = next(f for f in result.facets if f.field_name == "genres")
        assert {c.value: c.count for c in genres.counts} == {"FPS": 1, "Action": 1}

    @pytest.mark.asyncio
    async def test_pagination(self, loaded_index: InMemoryIndexClient) -> None:
        first = await loaded_index.search("action", page=1, per_page=2)
        second = await loaded_index.search("action", page=2, per_page=2)

        assert first.total == second.total == 3
        assert first.total_pages == 2
        assert len(first.hits) == 2
        assert len(second.hits) == 1
        ids = [h.document.id for h in first.hits + second.hits]
        assert sorted(ids) == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_sort_by_price(self, loaded_index: InMemoryIndexClient) -> None:
        ascending = await loaded_index.search("action", sort=SortOrder.PRICE_ASC)
        descending = await loaded_index.search("action", sort=SortOrder.PRICE_DESC)

        assert [h.document.id for h in ascending.hits] == ["2", "3", "1"]
        assert [h.document.id for h in descending.hits] == ["1", "3", "2"]

    @pytest.mark.asyncio
    async def test_highlights(self, loaded_index: InMemoryIndexClient) -> None:
        result = await loaded_index.search("Cyberpunk")
        assert result.hits[0].highlights["name"] == "<mark>Cyberpunk</mark> 2077"

    @pytest.mark.asyncio
    async def test_no_match(self, loaded_index: InMemoryIndexClient) -> None:
        result = await loaded_index.search("zelda")
        assert result.total == 0
        assert result.hits == []
