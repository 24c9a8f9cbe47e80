"""Search index administration (admin role required)."""

import logging

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from storesearch.core.deps import AdminUser, DBSession, IndexDep
from storesearch.schemas.admin import (
    AdminFailureResponse,
    AdminSearchRequest,
    ClearResponse,
    IndexStatsResponse,
    ReindexResponse,
)
from storesearch.search.errors import SearchIndexError
from storesearch.services.index_sync import IndexingService

logger = logging.getLogger(__name__)

router = APIRouter()

WRITE_ACTIONS = ("reindex", "clear")


def _failure(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=AdminFailureResponse(message=message).model_dump(by_alias=True),
    )


@router.get(
    "",
    response_model=IndexStatsResponse,
    responses={503: {"model": AdminFailureResponse}},
)
async def index_stats(
    index: IndexDep,
    _admin: AdminUser,
    action: str | None = Query(None, description="Must be 'stats'"),
) -> IndexStatsResponse | JSONResponse:
    """Document count, collection name and creation time of the index."""
    if action != "stats":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid action. Use action=stats",
        )

    try:
        stats = await index.stats()
    except SearchIndexError as e:
        logger.exception("Failed to read index stats")
        return _failure(f"Failed to get index stats: {e}")

    return IndexStatsResponse(
        total_documents=stats.total_documents,
        name=stats.name,
        created=stats.created_at,
    )


@router.post(
    "",
    response_model=None,
    responses={
        200: {"model": ReindexResponse, "description": "Reindex report or clear confirmation"},
        503: {"model": AdminFailureResponse},
    },
)
async def index_action(
    db: DBSession,
    index: IndexDep,
    admin: AdminUser,
    body: AdminSearchRequest | None = None,
) -> ReindexResponse | ClearResponse | JSONResponse:
    """Run ``reindex`` (rebuild from the products table) or ``clear``."""
    action = body.action if body else None
    if action not in WRITE_ACTIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid action. Use 'reindex' or 'clear'",
        )

    service = IndexingService(db, index)
    logger.info("Admin %s requested index %s", admin.get("sub"), action)

    if action == "clear":
        try:
            await service.clear()
        except SearchIndexError as e:
            logger.exception("Index clear failed")
            return _failure(f"Failed to clear index: {e}")
        return ClearResponse(success=True, message="Search index cleared successfully")

    try:
        report = await service.reindex_all()
    except (SearchIndexError, SQLAlchemyError) as e:
        logger.exception("Reindex failed")
        return _failure(f"Reindex failed: {e}")

    message = f"Successfully indexed {report.total_indexed} products"
    if report.failed:
        message += f" ({report.failed} failed)"
    return ReindexResponse(
        success=report.failed == 0,
        total_indexed=report.total_indexed,
        failed=report.failed,
        message=message,
    )
