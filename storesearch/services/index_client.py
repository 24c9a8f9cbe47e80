"""Search index client interface and the per-process factory."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from functools import lru_cache

from storesearch.core.config import settings
from storesearch.schemas.search import ImportResult, IndexStats, SearchableDocument, SearchResult
from storesearch.search.filters import FilterClause, SortOrder

logger = logging.getLogger(__name__)


class IndexClient(ABC):
    """Document-oriented search index.

    Implementations must behave identically from the caller's point of view:
    upserts replace whole documents by id, deletes of unknown ids succeed,
    and search ranks with ``storesearch.search.scoring`` semantics. Network
    problems surface as ``IndexUnavailableError``.
    """

    name: str

    @abstractmethod
    async def initialize(self) -> None:
        """Create the collection if it does not exist yet."""

    @abstractmethod
    async def upsert(self, document: SearchableDocument) -> None:
        """Insert or fully replace ``document``."""

    @abstractmethod
    async def bulk_import(self, documents: Sequence[SearchableDocument]) -> list[ImportResult]:
        """Upsert many documents; each reports success independently."""

    @abstractmethod
    async def search(
        self,
        query: str,
        *,
        filters: Sequence[FilterClause] = (),
        page: int = 1,
        per_page: int = 20,
        sort: SortOrder = SortOrder.RELEVANCE,
    ) -> SearchResult:
        """Rank documents for ``query`` (``""`` or ``"*"`` matches everything)."""

    @abstractmethod
    async def delete(self, document_id: str) -> None:
        """Remove a document. Unknown ids are ignored."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every document."""

    @abstractmethod
    async def stats(self) -> IndexStats:
        """Collection name, document count and creation time."""

    async def aclose(self) -> None:  # noqa: B027
        """Release network resources."""


def build_index_client() -> IndexClient:
    """Build a new client for the configured backend.

    Celery workers call this per task so that the HTTP connection pool
    belongs to the task's event loop.
    """
    if settings.search_backend == "typesense":
        from storesearch.integrations.typesense.client import TypesenseIndexClient

        logger.info("Using Typesense index at %s", settings.typesense_url)
        return TypesenseIndexClient(
            settings.typesense_url,
            settings.typesense_api_key,
            collection=settings.typesense_collection,
            timeout=settings.search_timeout_seconds,
        )

    from storesearch.services.memory_index import DocumentStore, InMemoryIndexClient

    logger.info("Using in-process search index")
    return InMemoryIndexClient(DocumentStore(settings.typesense_collection))


@lru_cache
def get_index_client() -> IndexClient:
    """The process-wide index client (and, for the memory backend, its corpus)."""
    return build_index_client()
