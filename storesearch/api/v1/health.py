"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter
from sqlalchemy import text

from storesearch.core.config import settings
from storesearch.core.deps import DBSession, IndexDep, RedisClient
from storesearch.schemas.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: DBSession,
    redis_client: RedisClient,
    index: IndexDep,
) -> dict[str, Any]:
    """
    Health check endpoint.

    Checks database, Redis and search index connectivity.
    """
    health_status: dict[str, Any] = {
        "status": "healthy",
        "version": settings.version,
        "environment": settings.environment,
        "checks": {},
    }

    # Check database connection
    try:
        await db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "healthy"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"unhealthy: {str(e)}"

    # Check Redis connection
    try:
        await redis_client.ping()
        health_status["checks"]["redis"] = "healthy"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["redis"] = f"unhealthy: {str(e)}"

    # Search falls back to empty results without the index, so this only degrades
    try:
        stats = await index.stats()
        health_status["checks"]["search_index"] = f"healthy ({stats.total_documents} documents)"
    except Exception as e:
        if health_status["status"] == "healthy":
            health_status["status"] = "degraded"
        health_status["checks"]["search_index"] = f"unhealthy: {str(e)}"

    return health_status


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness probe for Kubernetes/container orchestration.

    Simple check that the service is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(db: DBSession) -> dict[str, str]:
    """
    Readiness probe for Kubernetes/container orchestration.

    Checks if the service is ready to receive traffic.
    """
    # Check database
    await db.execute(text("SELECT 1"))

    return {"status": "ready"}
