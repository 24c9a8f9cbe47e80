"""Storefront product search endpoints (public, auth optional)."""

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Header, Query, Request
from sqlalchemy.exc import SQLAlchemyError

from storesearch.core.config import settings
from storesearch.core.deps import DBSession, IndexDep, OptionalUser, SessionFactory
from storesearch.core.rate_limit import SEARCH_RATE_LIMIT, limiter
from storesearch.schemas.search import (
    BrowseItem,
    BrowseResponse,
    ProductSearchItem,
    SearchFilters,
    SearchHistoryItem,
    SearchHistoryResponse,
    SearchResponse,
)
from storesearch.search.filters import SortOrder
from storesearch.search.params import clamp, parse_csv, parse_int, parse_price
from storesearch.services.history_service import SearchHistoryService, record_search_history
from storesearch.services.search_service import SearchOptions, SearchService

logger = logging.getLogger(__name__)

router = APIRouter()

BROWSE_DEFAULT_PER_PAGE = 20
# Longer queries are cut rather than rejected
MAX_QUERY_LENGTH = 200


def _visitor(
    user: dict[str, Any] | None,
    session_id: str | None,
    session_header: str | None,
) -> tuple[str | None, str | None]:
    """(user_id, session_id) of the caller; a signed-in user takes precedence."""
    user_id = str(user["sub"]) if user and user.get("sub") else None
    return user_id, (session_id or session_header or None)


def _filters(
    platforms: str | None,
    genres: str | None,
    price_min: str | None,
    price_max: str | None,
) -> SearchFilters:
    return SearchFilters(
        platforms=parse_csv(platforms),
        genres=parse_csv(genres),
        price_min=parse_price(price_min),
        price_max=parse_price(price_max),
    )


@router.get("", response_model=SearchResponse)
@limiter.limit(SEARCH_RATE_LIMIT)
async def search_products(
    request: Request,  # noqa: ARG001  required by slowapi
    background_tasks: BackgroundTasks,
    index: IndexDep,
    session_factory: SessionFactory,
    user: OptionalUser,
    q: str = Query("", description="Search text"),
    limit: str | None = Query(None, description="Page size (1-50, default 10)"),
    offset: str | None = Query(None, description="Number of results to skip"),
    platforms: str | None = Query(None, description="Comma-separated platforms"),
    genres: str | None = Query(None, description="Comma-separated genres"),
    price_min: str | None = Query(None),
    price_max: str | None = Query(None),
    sort: str | None = Query(None, description="relevance, newest, price_asc or price_desc"),
    session_id: str | None = Query(None),
    x_session_id: str | None = Header(None),
) -> SearchResponse:
    """Ranked product search for the storefront.

    Malformed paging and filter values fall back to defaults. When the
    search index is unavailable the response is still 200, with no results
    and an ``error`` advisory.
    """
    q = q[:MAX_QUERY_LENGTH]
    default_per_page = settings.search_default_per_page
    per_page = parse_int(limit, default_per_page) or default_per_page
    per_page = clamp(per_page, 1, settings.search_max_per_page)
    skip = max(parse_int(offset, 0), 0)

    service = SearchService(index)
    result = await service.search(
        q,
        SearchOptions(
            page=skip // per_page + 1,
            per_page=per_page,
            filters=_filters(platforms, genres, price_min, price_max),
            sort=SortOrder.parse(sort),
        ),
    )

    query = q.strip()
    user_id, visitor_session = _visitor(user, session_id, x_session_id)
    if query and (user_id or visitor_session):
        background_tasks.add_task(
            record_search_history,
            session_factory,
            query,
            user_id=user_id,
            session_id=visitor_session,
        )

    results = [ProductSearchItem.from_document(hit.document) for hit in result.hits]
    return SearchResponse(
        success=True,
        query=query,
        results=results,
        total=result.total,
        limit=per_page,
        offset=skip,
        has_more=skip + len(results) < result.total,
        processing_time_ms=result.processing_time_ms,
        facets=result.facets,
        error=result.advisory,
    )


@router.get("/browse", response_model=BrowseResponse)
@limiter.limit(SEARCH_RATE_LIMIT)
async def browse_products(
    request: Request,  # noqa: ARG001  required by slowapi
    db: DBSession,
    index: IndexDep,
    q: str = Query(""),
    page: str | None = Query(None),
    limit: str | None = Query(None),
    platforms: str | None = Query(None),
    genres: str | None = Query(None),
    price_min: str | None = Query(None),
    price_max: str | None = Query(None),
) -> BrowseResponse:
    """Catalog listing straight from the database.

    An empty or ``*`` query lists the newest products; anything else is
    ranked by relevance with highlighted ``formatted`` fields.
    """
    q = q[:MAX_QUERY_LENGTH]
    service = SearchService(index, db)
    result = await service.browse(
        q,
        SearchOptions(
            page=parse_int(page, 1),
            per_page=parse_int(limit, BROWSE_DEFAULT_PER_PAGE) or BROWSE_DEFAULT_PER_PAGE,
            filters=_filters(platforms, genres, price_min, price_max),
        ),
    )

    hits = [
        BrowseItem.from_document(hit.document).model_copy(update={"formatted": hit.highlights})
        for hit in result.hits
    ]
    return BrowseResponse(
        hits=hits,
        total_hits=result.total,
        page=result.page,
        total_pages=result.total_pages,
        processing_time_ms=result.processing_time_ms,
        facets=result.facets,
        error=result.advisory,
    )


@router.get("/history", response_model=SearchHistoryResponse)
async def search_history(
    db: DBSession,
    user: OptionalUser,
    limit: str | None = Query(None, description="Number of terms (1-10, default 3)"),
    session_id: str | None = Query(None),
    x_session_id: str | None = Header(None),
) -> SearchHistoryResponse:
    """Recent search terms of the signed-in user or anonymous session."""
    user_id, visitor_session = _visitor(user, session_id, x_session_id)
    if not user_id and not visitor_session:
        return SearchHistoryResponse(history=[], total=0)

    count = clamp(parse_int(limit, 3) or 3, 1, settings.search_history_max_limit)
    try:
        rows = await SearchHistoryService(db).get_recent(
            user_id=user_id, session_id=visitor_session, limit=count
        )
    except SQLAlchemyError:
        logger.exception("Failed to load search history")
        rows = []

    history = [
        SearchHistoryItem(term=row.keyword, count=row.search_count, last_searched=row.last_searched)
        for row in rows
    ]
    return SearchHistoryResponse(history=history, total=len(history))
