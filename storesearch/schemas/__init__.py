"""Pydantic schemas for request/response validation."""

from storesearch.schemas.admin import (
    AdminSearchRequest,
    ClearResponse,
    IndexStatsResponse,
    ReindexResponse,
)
from storesearch.schemas.common import BaseSchema, CamelSchema, HealthResponse
from storesearch.schemas.search import (
    BrowseResponse,
    SearchHistoryResponse,
    SearchResponse,
)

__all__ = [
    "AdminSearchRequest",
    "BaseSchema",
    "BrowseResponse",
    "CamelSchema",
    "ClearResponse",
    "HealthResponse",
    "IndexStatsResponse",
    "ReindexResponse",
    "SearchHistoryResponse",
    "SearchResponse",
]
