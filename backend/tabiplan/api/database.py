"""
Database health and connection statistics endpoints
"""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from tabiplan.db.session import database_health_check, get_database_stats

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health",
    responses={
        200: {"description": "Database is healthy"},
        503: {"description": "Database is unhealthy"}
    },
    summary="Database health check",
    description="Check database connectivity"
)
async def get_database_health():
    health_info = await database_health_check()
    if health_info["status"] == "healthy":
        return JSONResponse(status_code=status.HTTP_200_OK, content=health_info)

    logger.warning(f"Database reported unhealthy: {health_info.get('error')}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=health_info
    )


@router.get("/stats", summary="Database statistics")
async def get_database_statistics():
    """Connection counters collected by the engine event listeners"""
    stats = get_database_stats()
    stats["error_rate"] = (
        stats["failed_connections"] / stats["total_connections"] * 100
        if stats["total_connections"] > 0 else 0
    )
    return stats
