"""Liveness and readiness probes."""

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from billing_sync.core.config import get_settings
from billing_sync.db.base import get_session_factory

logger = structlog.get_logger(__name__)

router = APIRouter()

SERVICE_NAME = "billing-sync"


@router.get("/health")
async def health_check(request: Request):
    """Liveness. Flips to 503 once SIGTERM arrives so the load balancer drains us."""
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(status_code=503, content={"status": "shutting_down", "service": SERVICE_NAME})
    return {"status": "healthy", "service": SERVICE_NAME}


async def _database_reachable() -> bool:
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("readiness_database_unreachable", error=str(e), error_type=type(e).__name__)
        return False
    return True


@router.get("/ready")
async def readiness_check():
    """Readiness: database reachable and a webhook secret configured.

    Without the secret every delivery would be answered 503, so the instance
    should not take traffic.
    """
    settings = get_settings()
    checks = {
        "database": await _database_reachable(),
        "webhook_secret": bool(settings.stripe_webhook_secret),
    }
    ready = all(checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "degraded",
            "checks": checks,
            "plans": sorted(settings.plan_price_map),
        },
    )
