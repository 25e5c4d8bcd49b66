"""
Liveness and readiness probes.
"""

from typing import Optional

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from redis import Redis
from sqlalchemy import text

from compliance_engine.config import settings
from compliance_engine.models.database import async_session_factory

router = APIRouter(tags=["health"])


async def _database_error() -> Optional[str]:
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        return str(e)[:200]
    return None


def _queue_reachable() -> bool:
    try:
        return bool(Redis.from_url(settings.REDIS_URL, socket_connect_timeout=1).ping())
    except Exception:
        return False


@router.get("/health")
async def health_check():
    """Always 200; the body says what is degraded."""
    db_error = await _database_error()
    queue_ok = _queue_reachable()

    body = {
        "status": "healthy" if db_error is None else "degraded",
        "version": settings.APP_VERSION,
        "engine_version": settings.ENGINE_VERSION,
        "database": "connected" if db_error is None else "unreachable",
        # Reprocess falls back to inline runs without the queue
        "queue": "connected" if queue_ok else "unreachable",
    }
    if db_error:
        body["database_error"] = db_error
    return body


@router.get("/health/ready")
async def readiness_check():
    if await _database_error() is not None:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"ready": False})
    return {"ready": True}
