"""Ranked product search directly against the relational store.

Used by the browse API and whenever the search index is not the right
source (e.g. recency listings). Relevance is computed in SQL with the same
``ScoringWeights`` as the in-process scorer, so identical rows rank the same
on both paths apart from the fuzzy bonuses, which SQL does not compute.
"""

import logging
import operator
import time
from collections.abc import Callable
from functools import reduce
from typing import Any

from sqlalchemy import ColumnElement, case, exists, func, literal, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from storesearch.models.product import Product
from storesearch.schemas.search import FacetResult, SearchFilters, SearchHit, SearchResult
from storesearch.search.documents import product_to_document
from storesearch.search.facets import FACET_FIELDS, compute_facets
from storesearch.search.scoring import DEFAULT_WEIGHTS, ScoringWeights, highlight
from storesearch.search.tokenizer import NormalizedQuery

logger = logging.getLogger(__name__)

LIKE_ESCAPE = "\\"

GenrePredicate = Callable[[ColumnElement[Any]], ColumnElement[bool]]


def _escape_like(value: str) -> str:
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )


def _lower(column: Any) -> ColumnElement[str]:
    return func.lower(func.coalesce(column, ""))


def _contains(column: Any, needle: str) -> ColumnElement[bool]:
    return _lower(column).like(f"%{_escape_like(needle)}%", escape=LIKE_ESCAPE)


def _final_price() -> ColumnElement[Any]:
    return func.coalesce(Product.final_price, Product.sale_price, Product.price)


class RelationalSearch:
    """Relevance-ranked and recency-ordered product queries."""

    def __init__(self, db: AsyncSession, weights: ScoringWeights = DEFAULT_WEIGHTS) -> None:
        self.db = db
        self.weights = weights
        self._dialect = db.get_bind().dialect.name

    def _genre_exists(self, predicate: GenrePredicate) -> ColumnElement[bool]:
        """EXISTS over the elements of the product's JSON genre array."""
        if self._dialect == "postgresql":
            elements = func.jsonb_array_elements_text(Product.genres).table_valued("value")
        else:
            elements = func.json_each(Product.genres).table_valued("value")
        return exists(
            select(literal(1)).select_from(elements).where(predicate(elements.c.value))
        )

    def _genre_contains(self, needle: str) -> ColumnElement[bool]:
        return self._genre_exists(lambda value: _contains(value, needle))

    def _matches_any_field(self, needle: str) -> ColumnElement[bool]:
        return or_(
            _contains(Product.name, needle),
            _contains(Product.description, needle),
            _contains(Product.platform, needle),
            self._genre_contains(needle),
        )

    def _match_condition(self, query: NormalizedQuery) -> ColumnElement[bool]:
        needles = dict.fromkeys((query.text, *query.terms))
        return or_(*(self._matches_any_field(needle) for needle in needles))

    def _score_expression(self, query: NormalizedQuery) -> ColumnElement[int]:
        w = self.weights
        full = query.text
        name = _lower(Product.name)
        platform = _lower(Product.platform)

        parts: list[ColumnElement[int]] = [
            case((name == full, w.name_exact), else_=0),
            case(
                (name.like(f"{_escape_like(full)}%", escape=LIKE_ESCAPE), w.name_prefix),
                else_=0,
            ),
            case((_contains(Product.name, full), w.name_contains), else_=0),
            case((platform == full, w.platform_exact), else_=0),
            case((_contains(Product.description, full), w.description_contains), else_=0),
            case((self._genre_contains(full), w.genre_contains), else_=0),
        ]
        for term in query.terms:
            parts.extend(
                [
                    case((_contains(Product.name, term), w.term_name), else_=0),
                    case((_contains(Product.description, term), w.term_description), else_=0),
                    case((_contains(Product.platform, term), w.term_platform), else_=0),
                    case((self._genre_contains(term), w.term_genre), else_=0),
                ]
            )
        return reduce(operator.add, parts)

    def _filter_conditions(
        self,
        filters: SearchFilters | None,
        *,
        include_facets: bool = True,
    ) -> list[ColumnElement[bool]]:
        """Filter predicates; facet-field predicates can be left out for facet counting."""
        if filters is None:
            return []

        conditions: list[ColumnElement[bool]] = []
        if include_facets and filters.platforms:
            conditions.append(Product.platform.in_(filters.platforms))
        if include_facets and filters.genres:
            genres = filters.genres
            conditions.append(self._genre_exists(lambda value: value.in_(genres)))
        if filters.price_min is not None:
            conditions.append(_final_price() >= filters.price_min)
        if filters.price_max is not None:
            conditions.append(_final_price() <= filters.price_max)
        return conditions

    async def _facets(
        self,
        conditions: list[ColumnElement[bool]],
        filters: SearchFilters | None,
    ) -> list[FacetResult]:
        stmt = select(Product.platform, Product.genres, Product.type, Product.age_rating).where(
            *conditions
        )
        rows = (await self.db.execute(stmt)).mappings().all()
        clauses = [c for c in (filters.to_clauses() if filters else []) if c.field in FACET_FIELDS]
        return compute_facets([dict(row) for row in rows], clauses)

    async def _count(self, conditions: list[ColumnElement[bool]]) -> int:
        stmt = select(func.count()).select_from(Product).where(*conditions)
        return (await self.db.execute(stmt)).scalar() or 0

    async def search(
        self,
        query: NormalizedQuery,
        *,
        filters: SearchFilters | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> SearchResult:
        """Rank active products for ``query``; ties go to the newest id.

        A match-all query is answered with the recency listing.
        """
        if query.match_all:
            return await self.recent(filters=filters, page=page, per_page=per_page)

        started = time.perf_counter()
        base: list[ColumnElement[bool]] = [
            Product.is_active == True,  # noqa: E712
            self._match_condition(query),
        ]
        conditions = base + self._filter_conditions(filters)

        total = await self._count(conditions)

        score = self._score_expression(query).label("score")
        stmt = (
            select(Product, score)
            .where(*conditions)
            .order_by(score.desc(), Product.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        rows = (await self.db.execute(stmt)).all()

        hits = [
            SearchHit(
                document=product_to_document(row.Product),
                score=int(row.score),
                highlights={
                    "name": highlight(row.Product.name, query.raw),
                    "description": highlight(row.Product.description, query.raw),
                },
            )
            for row in rows
        ]
        facets = await self._facets(
            base + self._filter_conditions(filters, include_facets=False), filters
        )

        return SearchResult(
            hits=hits,
            total=total,
            page=page,
            per_page=per_page,
            total_pages=SearchResult.page_count(total, per_page),
            facets=facets,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
        )

    async def recent(
        self,
        *,
        filters: SearchFilters | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> SearchResult:
        """Active products, newest first."""
        started = time.perf_counter()
        base: list[ColumnElement[bool]] = [Product.is_active == True]  # noqa: E712
        conditions = base + self._filter_conditions(filters)

        total = await self._count(conditions)
        stmt = (
            select(Product)
            .where(*conditions)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        products = (await self.db.execute(stmt)).scalars().all()

        facets = await self._facets(
            base + self._filter_conditions(filters, include_facets=False), filters
        )
        return SearchResult(
            hits=[SearchHit(document=product_to_document(p)) for p in products],
            total=total,
            page=page,
            per_page=per_page,
            total_pages=SearchResult.page_count(total, per_page),
            facets=facets,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
        )
