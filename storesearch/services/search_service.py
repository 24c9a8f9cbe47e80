"""Search orchestration: input bounds, index delegation and graceful degradation."""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storesearch.core.config import settings
from storesearch.schemas.search import SearchFilters, SearchResult
from storesearch.search.errors import SearchIndexError
from storesearch.search.filters import SortOrder
from storesearch.search.params import normalize_paging
from storesearch.search.tokenizer import normalize_query
from storesearch.services.index_client import IndexClient
from storesearch.services.relational_search import RelationalSearch

logger = logging.getLogger(__name__)

SEARCH_UNAVAILABLE = "Search service temporarily unavailable"


@dataclass
class SearchOptions:
    """Paging, filter and sort options for one search request."""

    page: int = 1
    per_page: int = 10
    filters: SearchFilters | None = None
    sort: SortOrder = SortOrder.RELEVANCE


class SearchService:
    """Entry point for storefront searches.

    ``search`` answers from the search index and returns nothing for an
    empty query. ``browse`` answers from the relational store and lists the
    newest products for an empty query. Neither raises on backend failure:
    the result comes back empty with ``degraded`` set.
    """

    def __init__(
        self,
        index: IndexClient,
        db: AsyncSession | None = None,
        *,
        timeout: float | None = None,
        max_per_page: int | None = None,
    ) -> None:
        self.index = index
        self.db = db
        self.timeout = timeout if timeout is not None else settings.search_timeout_seconds
        self.max_per_page = max_per_page or settings.search_max_per_page

    def _paging(self, options: SearchOptions) -> tuple[int, int]:
        return normalize_paging(options.page, options.per_page, self.max_per_page)

    async def search(
        self, raw_query: str | None, options: SearchOptions | None = None
    ) -> SearchResult:
        """Rank indexed products for ``raw_query``.

        Args:
            raw_query: Text typed by the visitor
            options: Paging, filters and sort; out-of-range paging is clamped

        Returns:
            A SearchResult. Empty when the query is blank or the index failed.
        """
        options = options or SearchOptions()
        page, per_page = self._paging(options)
        query = normalize_query(raw_query)

        if query.match_all:
            return SearchResult.empty(page, per_page)

        clauses = options.filters.to_clauses() if options.filters else []
        try:
            return await asyncio.wait_for(
                self.index.search(
                    query.text,
                    filters=clauses,
                    page=page,
                    per_page=per_page,
                    sort=options.sort,
                ),
                timeout=self.timeout,
            )
        except TimeoutError:
            logger.warning(
                "Index search timed out after %.1fs",
                self.timeout,
                extra={"query": query.text},
            )
        except SearchIndexError as e:
            logger.warning("Index search failed: %s", e, extra={"query": query.text})

        return SearchResult.empty(page, per_page, degraded=True, advisory=SEARCH_UNAVAILABLE)

    async def browse(
        self, raw_query: str | None, options: SearchOptions | None = None
    ) -> SearchResult:
        """Relational search; a blank or ``*`` query lists the newest products."""
        if self.db is None:
            raise RuntimeError("browse() needs a database session")

        options = options or SearchOptions()
        page, per_page = self._paging(options)
        query = normalize_query(raw_query)
        relational = RelationalSearch(self.db)

        try:
            if query.match_all:
                return await relational.recent(
                    filters=options.filters, page=page, per_page=per_page
                )
            return await relational.search(
                query, filters=options.filters, page=page, per_page=per_page
            )
        except SQLAlchemyError:
            logger.exception("Relational search failed", extra={"query": query.text})
            await self.db.rollback()

        return SearchResult.empty(page, per_page, degraded=True, advisory=SEARCH_UNAVAILABLE)
