"""
Health check endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config import OAuthClientConfig, settings
from services.connectors.types import Platform

router = APIRouter()


def _connector_status() -> dict:
    oauth_config = OAuthClientConfig.from_settings(settings)
    return {
        platform.value: "missing" if oauth_config.missing_credentials(platform.value) else "configured"
        for platform in Platform
    }


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Reports database reachability and which connectors have credentials.
    """
    health_status = {
        "status": "healthy",
        "api": "up",
        "database": "unknown",
        "connectors": _connector_status(),
    }

    try:
        from database import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        health_status["database"] = "up"
    except Exception as e:
        health_status["database"] = f"down: {str(e)}"
        health_status["status"] = "degraded"

    return health_status


@router.get("/health/ready")
async def readiness_check():
    """Not ready while an enabled connector lacks credentials."""
    oauth_config = OAuthClientConfig.from_settings(settings)
    missing = [
        platform
        for platform in settings.ENABLED_CONNECTORS
        if oauth_config.missing_credentials(platform)
    ]
    if missing:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "missing": missing},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    return {"alive": True}
