"""
FastAPI dependency injection.
Provides DB sessions, the pipeline, API key validation and the acting identity.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_engine.config import settings
from compliance_engine.models.database import get_session
from compliance_engine.observability.logging import bind_actor
from compliance_engine.pipeline.orchestrator import DocumentPipeline
from compliance_engine.schemas.audit import ActorContext


async def get_db() -> AsyncSession:
    """Yield an async DB session."""
    async for session in get_session():
        yield session


def get_pipeline() -> DocumentPipeline:
    return DocumentPipeline()


async def verify_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> Optional[str]:
    """
    Verify API key if configured.
    If API_KEY is not set, all requests are allowed (dev mode).
    """
    if settings.API_KEY is None:
        return None

    if x_api_key is None or x_api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return x_api_key


async def get_actor(
    request: Request,
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
    x_session_id: Optional[str] = Header(None, alias="X-Session-Id"),
    user_agent: Optional[str] = Header(None, alias="User-Agent"),
) -> ActorContext:
    """Build the acting identity from request headers."""
    bind_actor(x_user_id, x_session_id)
    return ActorContext(
        user_id=x_user_id,
        role=x_user_role,
        ip_address=request.client.host if request.client else None,
        user_agent=user_agent,
        session_id=x_session_id,
    )


async def require_user(actor: ActorContext = Depends(get_actor)) -> ActorContext:
    """Like get_actor, but rejects anonymous mutations."""
    if not actor.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Id header is required",
        )
    return actor
