"""Schemas for the search index admin endpoints."""

from storesearch.schemas.common import CamelSchema


class AdminSearchRequest(CamelSchema):
    """Body of ``POST /admin/search``.

    ``action`` is validated by the route so that an unknown value gets an
    explicit 400 message instead of a 422 validation error.
    """

    action: str | None = None


class IndexStatsResponse(CamelSchema):
    total_documents: int
    name: str
    created: int


class ReindexResponse(CamelSchema):
    success: bool
    total_indexed: int = 0
    failed: int = 0
    message: str


class ClearResponse(CamelSchema):
    success: bool
    message: str


class AdminFailureResponse(CamelSchema):
    success: bool = False
    message: str
