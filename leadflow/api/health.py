"""
Health endpoints for the load balancer and container healthcheck.

- GET /health       - liveness
- GET /health/ready - readiness: database reachable, telephony configured
"""
import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.config import get_settings
from leadflow.database import get_db, ping

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])

VERSION = "1.0.0"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": _now_iso(), "version": VERSION}


@router.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """
    Ready when the database answers. A missing MCUBE token is reported but does
    not make the service unready: only click-to-call depends on it.
    """
    database_ok = await ping(db)
    return {
        "status": "ready" if database_ok else "degraded",
        "checks": {"database": database_ok},
        "dialer_configured": bool(get_settings().mcube_token),
        "timestamp": _now_iso(),
    }
