"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
import logging

from app.config import settings
from app.database import get_db
from app.dependencies.gateways import get_app_settings
from app.models.schemas import AppSettings, HealthCheckResponse
from app.utils.helpers import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    app_settings: AppSettings = Depends(get_app_settings),
):
    """
    Health check endpoint to verify system status.

    Returns:
        HealthCheckResponse with database status and whether a Gemini key is configured
    """
    # Check database connection
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "error"

    # A key saved by the user takes precedence over the environment
    gemini_status = "configured" if (app_settings.gemini_api_key or settings.GEMINI_API_KEY) else "missing"

    overall_status = "healthy" if db_status == "ok" else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        gemini=gemini_status,
        timestamp=utc_now(),
    )
