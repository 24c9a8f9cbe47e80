"""Pydantic schemas for search documents, results and the search API."""

from datetime import datetime
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field

from storesearch.schemas.common import BaseSchema, CamelSchema
from storesearch.search.filters import FilterClause, FilterOp

PLACEHOLDER_COVER = "/placeholder-game.svg"

# ---------------------------------------------------------------------------
# Index documents and results
# ---------------------------------------------------------------------------


class SearchableDocument(BaseModel):
    """Flattened projection of one product row, as stored in the index."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    name: str
    slug: str = ""
    platform: str = ""
    price: float = 0.0
    sale_price: float | None = None
    final_price: float = 0.0
    genres: list[str] = []
    images_cover_url: str = ""
    images_cover_thumbnail: str = ""
    description: str = ""
    type: str = ""
    age_rating: str = ""
    release_date: str = ""
    created_at: int = 0

    def to_payload(self) -> dict[str, Any]:
        """Index payload; optional fields that are unset are omitted."""
        return self.model_dump(exclude_none=True)


class SearchHit(BaseModel):
    """A matched document with its internal score and highlighted fields."""

    document: SearchableDocument
    score: int = 0
    highlights: dict[str, str] = {}


class FacetCount(BaseSchema):
    value: str
    count: int


class FacetResult(BaseSchema):
    field_name: str
    counts: list[FacetCount] = []


class SearchResult(BaseModel):
    """Ranked page of hits plus paging and facet information."""

    hits: list[SearchHit] = []
    total: int = 0
    page: int = 1
    per_page: int = 10
    total_pages: int = 0
    facets: list[FacetResult] = []
    processing_time_ms: int = 0
    degraded: bool = False
    advisory: str | None = None

    @classmethod
    def empty(
        cls,
        page: int = 1,
        per_page: int = 10,
        *,
        degraded: bool = False,
        advisory: str | None = None,
    ) -> Self:
        """An empty result, optionally flagged as a degraded answer."""
        return cls(page=page, per_page=per_page, degraded=degraded, advisory=advisory)

    @staticmethod
    def page_count(total: int, per_page: int) -> int:
        return (total + per_page - 1) // per_page if per_page > 0 else 0


class ImportResult(BaseModel):
    """Outcome of one document in a batch import."""

    id: str
    success: bool
    error: str | None = None


class IndexStats(BaseModel):
    total_documents: int
    name: str
    created_at: int


# ---------------------------------------------------------------------------
# Query inputs
# ---------------------------------------------------------------------------


class SearchFilters(BaseModel):
    """Filters that can be applied to a product search."""

    platforms: list[str] | None = Field(None, description="Match any of these platforms")
    genres: list[str] | None = Field(None, description="Match any of these genres")
    price_min: float | None = Field(None, description="Minimum final price")
    price_max: float | None = Field(None, description="Maximum final price")

    def to_clauses(self) -> list[FilterClause]:
        """Translate into index filter clauses."""
        clauses: list[FilterClause] = []
        if self.platforms:
            clauses.append(FilterClause("platform", FilterOp.IN, tuple(self.platforms)))
        if self.genres:
            clauses.append(FilterClause("genres", FilterOp.IN, tuple(self.genres)))
        if self.price_min is not None:
            clauses.append(FilterClause("final_price", FilterOp.GTE, self.price_min))
        if self.price_max is not None:
            clauses.append(FilterClause("final_price", FilterOp.LTE, self.price_max))
        return clauses


# ---------------------------------------------------------------------------
# API responses
# ---------------------------------------------------------------------------


class ProductSearchItem(CamelSchema):
    """Display fields of a search hit. The relevance score is never exposed."""

    id: int | str
    slug: str
    name: str
    description: str = ""
    platform: str = ""
    price: float = 0.0
    final_price: float = 0.0
    cover_url: str = PLACEHOLDER_COVER
    cover_thumbnail: str = PLACEHOLDER_COVER
    genres: list[str] = []
    release_date: str = ""
    age_rating: str = ""

    @classmethod
    def from_document(cls, document: SearchableDocument) -> Self:
        cover = document.images_cover_url or PLACEHOLDER_COVER
        return cls(
            id=int(document.id) if document.id.isdigit() else document.id,
            slug=document.slug,
            name=document.name,
            description=document.description,
            platform=document.platform,
            price=document.price,
            final_price=document.final_price,
            cover_url=cover,
            cover_thumbnail=document.images_cover_thumbnail or cover,
            genres=document.genres,
            release_date=document.release_date,
            age_rating=document.age_rating,
        )


class BrowseItem(ProductSearchItem):
    """Browse hit with highlighted name/description."""

    formatted: dict[str, str] = {}


class SearchResponse(CamelSchema):
    """Response of the primary storefront search endpoint."""

    success: bool = True
    query: str
    results: list[ProductSearchItem]
    total: int
    limit: int
    offset: int
    has_more: bool
    processing_time_ms: int = 0
    facets: list[FacetResult] = []
    error: str | None = None


class BrowseResponse(CamelSchema):
    """Response of the relational browse endpoint."""

    hits: list[BrowseItem]
    total_hits: int
    page: int
    total_pages: int
    processing_time_ms: int = 0
    facets: list[FacetResult] = []
    error: str | None = None


class SearchHistoryItem(CamelSchema):
    term: str
    count: int
    last_searched: datetime


class SearchHistoryResponse(CamelSchema):
    history: list[SearchHistoryItem]
    total: int
