"""API v1 router combining all route modules."""

from fastapi import APIRouter

from storesearch.api.v1 import admin_search, health, search

api_router = APIRouter()

# Include health check routes (no prefix)
api_router.include_router(health.router)

# Storefront search (public, auth optional)
api_router.include_router(
    search.router,
    prefix="/search",
    tags=["search"],
)

# Search index administration (admin role)
api_router.include_router(
    admin_search.router,
    prefix="/admin/search",
    tags=["admin"],
)
