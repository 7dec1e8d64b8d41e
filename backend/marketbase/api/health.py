"""
Health check API endpoints
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..database import health_check
from ..errors import SearchIndexError
from ..log import get_logger

logger = get_logger(__name__)
router = APIRouter()

_STARTED = time.monotonic()


@router.get("")
async def health_check_endpoint(request: Request):
    """
    Health check endpoint

    The index being down is reported but does not make the service unhealthy:
    reads fall back to the database and writes still succeed.
    """
    state = request.app.state
    settings = state.settings

    db_healthy = await health_check(state.engine)
    es_healthy = await state.search_index.ping()

    services = {
        "database": "healthy" if db_healthy else "unhealthy",
        "elasticsearch": "healthy" if es_healthy else "unhealthy",
    }
    payload = {
        "status": "healthy" if db_healthy else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _STARTED, 3),
        "services": services,
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
    }
    if es_healthy:
        try:
            payload["elasticsearch_cluster"] = (await state.search_index.health()).get("status")
        except SearchIndexError as e:
            logger.warning(f"Cluster health unavailable: {e}")

    if not db_healthy:
        logger.error("Health check failed: database unreachable")
        return JSONResponse(
            status_code=503,
            content={
                "success": False,
                "error": "Service Unavailable",
                "message": "Health check failed",
                "data": payload,
            },
        )
    return {"success": True, "data": payload}
