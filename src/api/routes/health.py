"""
Health check endpoints.
"""

import asyncio
from typing import Any, Dict

from fastapi import APIRouter

from config.database import get_supabase_client_optional
from config.settings import get_settings
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])

SERVICE_NAME = "thriftshopper-search"


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Basic health check."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
    }


@router.get("/health/detailed")
async def detailed_health_check() -> Dict[str, Any]:
    """
    Detailed health check with dependency status.

    Checks:
    - Configuration loaded
    - Supabase connection (one-row read from the listings table)
    - Which vision analyzers / LLM features have keys
    """
    settings = get_settings()

    supabase_status = "unknown"
    supabase_error = None
    client = get_supabase_client_optional()
    if client is None:
        supabase_status = "not_configured"
    else:
        try:
            result = await asyncio.to_thread(
                lambda: client.table(settings.listings_table).select("id").limit(1).execute()
            )
            supabase_status = "connected" if result.data else "empty"
        except Exception as e:
            logger.warning("Supabase health check failed", error=str(e))
            supabase_status = "error"
            supabase_error = str(e)

    return {
        "status": "healthy" if supabase_status in ("connected", "empty") else "degraded",
        "service": SERVICE_NAME,
        "environment": settings.environment,
        "checks": {
            "config": "ok",
            "supabase": {
                "status": supabase_status,
                "error": supabase_error,
            },
            "analyzers": {
                "openai": bool(settings.openai_api_key),
                "claude": bool(settings.anthropic_api_key),
                "google": bool(settings.google_vision_api_key),
            },
            "term_extractor": settings.term_extractor_enabled and bool(settings.openai_api_key),
        },
    }


@router.get("/ready")
async def readiness_check() -> Dict[str, str]:
    """Readiness check: 200 once the database client can be built."""
    if get_supabase_client_optional() is None:
        return {"status": "not_ready", "reason": "database_not_configured"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness check."""
    return {"status": "alive"}
