"""Typesense search index client using httpx."""

import json
import logging
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError

from storesearch.schemas.search import (
    FacetCount,
    FacetResult,
    ImportResult,
    IndexStats,
    SearchableDocument,
    SearchHit,
    SearchResult,
)
from storesearch.search.errors import (
    DocumentRejectedError,
    IndexUnavailableError,
    SearchIndexError,
)
from storesearch.search.facets import FACET_FIELDS
from storesearch.search.filters import FilterClause, SortOrder, render_filter_by
from storesearch.search.tokenizer import WILDCARD, normalize_query
from storesearch.services.index_client import IndexClient

logger = logging.getLogger(__name__)

# Searched fields and their weights (name > description > platform > genres)
QUERY_BY = "name,description,platform,genres"
QUERY_BY_WEIGHTS = "4,3,2,1"


def collection_schema(name: str) -> dict[str, Any]:
    """Typesense collection definition for ``SearchableDocument``."""
    return {
        "name": name,
        "fields": [
            {"name": "id", "type": "string"},
            {"name": "name", "type": "string"},
            {"name": "slug", "type": "string"},
            {"name": "platform", "type": "string", "facet": True},
            {"name": "price", "type": "float", "facet": True},
            {"name": "sale_price", "type": "float", "facet": True, "optional": True},
            {"name": "final_price", "type": "float", "facet": True},
            {"name": "genres", "type": "string[]", "facet": True},
            {"name": "images_cover_url", "type": "string", "optional": True, "index": False},
            {"name": "images_cover_thumbnail", "type": "string", "optional": True, "index": False},
            {"name": "description", "type": "string", "optional": True},
            {"name": "type", "type": "string", "facet": True, "optional": True},
            {"name": "age_rating", "type": "string", "facet": True, "optional": True},
            {"name": "release_date", "type": "string", "optional": True},
            {"name": "created_at", "type": "int64"},
        ],
        "default_sorting_field": "created_at",
    }


def _sort_by(sort: SortOrder, *, match_all: bool) -> str:
    if sort is SortOrder.NEWEST or (sort is SortOrder.RELEVANCE and match_all):
        return "created_at:desc"
    if sort is SortOrder.PRICE_ASC:
        return "final_price:asc,_text_match:desc"
    if sort is SortOrder.PRICE_DESC:
        return "final_price:desc,_text_match:desc"
    return "_text_match:desc,created_at:desc"


class TypesenseIndexClient(IndexClient):
    """Async client for a Typesense collection over its REST API."""

    name = "typesense"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        collection: str = "products",
        timeout: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.collection = collection
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"X-TYPESENSE-API-KEY": api_key},
            timeout=timeout,
            transport=transport,
        )

    @property
    def _collection_path(self) -> str:
        return f"/collections/{self.collection}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping transport failures and 5xx to IndexUnavailableError."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise IndexUnavailableError(f"Typesense timed out on {method} {path}") from e
        except httpx.HTTPError as e:
            raise IndexUnavailableError(f"Typesense unreachable on {method} {path}: {e}") from e

        if response.status_code >= 500:
            raise IndexUnavailableError(
                f"Typesense returned {response.status_code} on {method} {path}"
            )
        return response

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return str(response.json().get("message", response.text))
        except ValueError:
            return response.text

    async def _create_collection(self) -> None:
        response = await self._request(
            "POST", "/collections", json=collection_schema(self.collection)
        )
        # 409: created concurrently by another process
        if response.status_code not in (201, 409):
            raise SearchIndexError(
                f"Could not create collection {self.collection}: {self._error_message(response)}"
            )
        logger.info("Created Typesense collection %s", self.collection)

    async def initialize(self) -> None:
        response = await self._request("GET", self._collection_path)
        if response.status_code == 404:
            await self._create_collection()
        elif not response.is_success:
            raise SearchIndexError(
                f"Could not retrieve collection {self.collection}: "
                f"{self._error_message(response)}"
            )

    async def upsert(self, document: SearchableDocument) -> None:
        response = await self._request(
            "POST",
            f"{self._collection_path}/documents",
            params={"action": "upsert"},
            json=document.to_payload(),
        )
        if not response.is_success:
            raise DocumentRejectedError(document.id, self._error_message(response))

    async def bulk_import(self, documents: Sequence[SearchableDocument]) -> list[ImportResult]:
        if not documents:
            return []

        body = "\n".join(json.dumps(doc.to_payload()) for doc in documents)
        response = await self._request(
            "POST",
            f"{self._collection_path}/documents/import",
            params={"action": "upsert"},
            content=body.encode(),
            headers={"Content-Type": "text/plain"},
        )
        if not response.is_success:
            raise SearchIndexError(f"Import failed: {self._error_message(response)}")

        # One JSON object per input line, in input order
        lines = [line for line in response.text.splitlines() if line.strip()]
        results: list[ImportResult] = []
        for document, line in zip(documents, lines, strict=False):
            outcome = json.loads(line)
            results.append(
                ImportResult(
                    id=document.id,
                    success=bool(outcome.get("success")),
                    error=outcome.get("error"),
                )
            )
        for document in documents[len(results) :]:
            results.append(ImportResult(id=document.id, success=False, error="No import result"))
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
        normalized = normalize_query(query)
        params: dict[str, Any] = {
            "q": normalized.text or WILDCARD,
            "query_by": QUERY_BY,
            "query_by_weights": QUERY_BY_WEIGHTS,
            "facet_by": ",".join(FACET_FIELDS),
            "sort_by": _sort_by(sort, match_all=normalized.match_all),
            "page": page,
            "per_page": per_page,
            "highlight_fields": "name,description",
            "highlight_full_fields": "name,description",
            "highlight_start_tag": "<mark>",
            "highlight_end_tag": "</mark>",
        }
        filter_by = render_filter_by(filters)
        if filter_by:
            params["filter_by"] = filter_by

        response = await self._request(
            "GET", f"{self._collection_path}/documents/search", params=params
        )
        if not response.is_success:
            raise SearchIndexError(f"Search failed: {self._error_message(response)}")

        try:
            return self._parse_search(response.json(), per_page)
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            raise SearchIndexError(f"Malformed search response: {e}") from e

    @staticmethod
    def _parse_search(data: dict[str, Any], per_page: int) -> SearchResult:
        hits: list[SearchHit] = []
        for hit in data.get("hits", []):
            highlights = {
                h["field"]: h.get("value") or h.get("snippet", "")
                for h in hit.get("highlights", [])
                if "field" in h
            }
            hits.append(
                SearchHit(
                    document=SearchableDocument.model_validate(hit["document"]),
                    score=int(hit.get("text_match", 0)),
                    highlights=highlights,
                )
            )

        facets = [
            FacetResult(
                field_name=facet["field_name"],
                counts=[
                    FacetCount(value=str(c["value"]), count=int(c["count"]))
                    for c in facet.get("counts", [])
                ],
            )
            for facet in data.get("facet_counts", [])
        ]

        total = int(data.get("found", 0))
        return SearchResult(
            hits=hits,
            total=total,
            page=int(data.get("page", 1)),
            per_page=per_page,
            total_pages=SearchResult.page_count(total, per_page),
            facets=facets,
            processing_time_ms=int(data.get("search_time_ms", 0)),
        )

    async def delete(self, document_id: str) -> None:
        response = await self._request(
            "DELETE", f"{self._collection_path}/documents/{document_id}"
        )
        if response.status_code != 404 and not response.is_success:
            raise SearchIndexError(
                f"Delete of {document_id} failed: {self._error_message(response)}"
            )

    async def clear(self) -> None:
        """Drop and recreate the collection so no stale documents survive."""
        response = await self._request("DELETE", self._collection_path)
        if response.status_code != 404 and not response.is_success:
            raise SearchIndexError(f"Clear failed: {self._error_message(response)}")
        await self._create_collection()

    async def stats(self) -> IndexStats:
        response = await self._request("GET", self._collection_path)
        if not response.is_success:
            raise SearchIndexError(f"Stats failed: {self._error_message(response)}")
        data = response.json()
        return IndexStats(
            total_documents=int(data.get("num_documents", 0)),
            name=data.get("name", self.collection),
            created_at=int(data.get("created_at", 0)),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
