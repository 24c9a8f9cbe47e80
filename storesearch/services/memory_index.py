"""In-process search index for development and tests.

Holds the corpus in an explicit ``DocumentStore`` and ranks with the shared
relevance scorer, fuzzy matching included.
"""

import logging
import time
from collections.abc import Sequence
from typing import Any

from storesearch.schemas.search import (
    ImportResult,
    IndexStats,
    SearchableDocument,
    SearchHit,
    SearchResult,
)
from storesearch.search.facets import compute_facets
from storesearch.search.filters import FilterClause, SortOrder, matches_all
from storesearch.search.scoring import highlight, id_sort_key, score_document
from storesearch.search.tokenizer import normalize_query
from storesearch.services.index_client import IndexClient

logger = logging.getLogger(__name__)

_Scored = tuple[int, dict[str, Any]]


class DocumentStore:
    """Keyed document collection. Writes to one id are last-writer-wins."""

    def __init__(self, name: str = "products") -> None:
        self.name = name
        self.created_at = int(time.time())
        self._documents: dict[str, dict[str, Any]] = {}

    def put(self, payload: dict[str, Any]) -> None:
        self._documents[payload["id"]] = payload

    def get(self, document_id: str) -> dict[str, Any] | None:
        return self._documents.get(document_id)

    def remove(self, document_id: str) -> bool:
        return self._documents.pop(document_id, None) is not None

    def clear(self) -> None:
        self._documents.clear()

    def snapshot(self) -> list[dict[str, Any]]:
        """Documents in insertion order."""
        return list(self._documents.values())

    def __len__(self) -> int:
        return len(self._documents)


def _recency_key(item: _Scored) -> tuple[int, tuple[int, int | str]]:
    return item[1].get("created_at", 0), id_sort_key(item[1]["id"])


def _relevance_key(item: _Scored) -> tuple[int, tuple[int, int | str]]:
    return item[0], id_sort_key(item[1]["id"])


def _price_key(item: _Scored) -> float:
    return float(item[1].get("final_price", 0.0))


def _order(items: list[_Scored], sort: SortOrder, *, match_all: bool) -> list[_Scored]:
    if sort is SortOrder.NEWEST or (sort is SortOrder.RELEVANCE and match_all):
        return sorted(items, key=_recency_key, reverse=True)

    ranked = sorted(items, key=_relevance_key, reverse=True)
    if sort is SortOrder.PRICE_ASC:
        return sorted(ranked, key=_price_key)
    if sort is SortOrder.PRICE_DESC:
        return sorted(ranked, key=_price_key, reverse=True)
    return ranked


class InMemoryIndexClient(IndexClient):
    """``IndexClient`` backed by a ``DocumentStore`` in this process."""

    name = "memory"

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def initialize(self) -> None:
        logger.debug("In-process collection %s ready", self.store.name)

    async def upsert(self, document: SearchableDocument) -> None:
        self.store.put(document.to_payload())

    async def bulk_import(self, documents: Sequence[SearchableDocument]) -> list[ImportResult]:
        results: list[ImportResult] = []
        for document in documents:
            if not document.id:
                results.append(ImportResult(id="", success=False, error="Document has no id"))
                continue
            self.store.put(document.to_payload())
            results.append(ImportResult(id=document.id, success=True))
        return results

    async def search(
        self,
        query: str,
        *,
        filters: Sequence[FilterClause] = (),
        page: int = 1,
        per_page: int = 20,
        sort: SortOrder = SortOrder.RELEVANCE,
    ) -> SearchResult:
        started = time.perf_counter()
        normalized = normalize_query(query)

        if normalized.match_all:
            candidates: list[_Scored] = [(0, doc) for doc in self.store.snapshot()]
        else:
            candidates = []
            for doc in self.store.snapshot():
                score = score_document(doc, normalized.text, normalized.terms)
                if score > 0:
                    candidates.append((score, doc))

        facets = compute_facets([doc for _, doc in candidates], filters)
        matched = [item for item in candidates if matches_all(item[1], filters)]
        ordered = _order(matched, sort, match_all=normalized.match_all)

        marked = "" if normalized.match_all else normalized.raw
        start = (page - 1) * per_page
        hits = [
            SearchHit(
                document=SearchableDocument.model_validate(doc),
                score=score,
                highlights={
                    "name": highlight(doc.get("name"), marked),
                    "description": highlight(doc.get("description"), marked),
                },
            )
            for score, doc in ordered[start : start + per_page]
        ]

        total = len(ordered)
        return SearchResult(
            hits=hits,
            total=total,
            page=page,
            per_page=per_page,
            total_pages=SearchResult.page_count(total, per_page),
            facets=facets,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
        )

    async def delete(self, document_id: str) -> None:
        self.store.remove(str(document_id))

    async def clear(self) -> None:
        self.store.clear()

    async def stats(self) -> IndexStats:
        return IndexStats(
            total_documents=len(self.store),
            name=self.store.name,
            created_at=self.store.created_at,
        )
