from fastapi import APIRouter, HTTPException
from typing import Dict, Any
import logging

from app.core.config import settings
from app.db.async_session import check_async_database_health

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("", response_model=Dict[str, Any])
async def health_check():
    """
    Liveness probe including a database round trip.

    Returns:
        dict: Health status, 503 when the database is unreachable
    """
    health_status = await check_async_database_health()
    if health_status["status"] != "healthy":
        logger.error(f"Health check failed: {health_status.get('error')}")
        raise HTTPException(status_code=503, detail="Service unavailable")

    return {
        "status": "healthy",
        "database": "connected",
        "service": settings.PROJECT_NAME,
        "response_time_ms": health_status["response_time_ms"],
    }
