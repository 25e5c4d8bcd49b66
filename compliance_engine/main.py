"""
FastAPI application factory.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from compliance_engine.api.router import api_router
from compliance_engine.config import settings
from compliance_engine.errors import (
    DuplicateRecordError,
    EngineError,
    InvalidTransitionError,
    RecordNotFoundError,
    WorkflowAuthorizationError,
)
from compliance_engine.models.database import close_db, init_db
from compliance_engine.observability.logging import setup_logging

logger = structlog.get_logger(__name__)

# Domain error -> HTTP status; anything else derived from EngineError is a 500
ERROR_STATUS = {
    RecordNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    DuplicateRecordError: status.HTTP_409_CONFLICT,
    WorkflowAuthorizationError: status.HTTP_403_FORBIDDEN,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    setup_logging()
    logger.info("app_starting", version=settings.APP_VERSION, engine_version=settings.ENGINE_VERSION)

    # Sentry init if configured
    if settings.SENTRY_DSN:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[FastApiIntegration()],
            traces_sample_rate=0.1,
        )

    if settings.DB_AUTO_CREATE:
        await init_db()

    yield

    await close_db()


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error("request_failed", path=request.url.path, error_code=exc.error_code, error=exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"error_code": exc.error_code, "detail": exc.message},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Document Risk & Compliance Scoring Engine",
        description="Entity extraction, risk scoring, compliance evaluation and audit trail for financial documents.",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Prometheus metrics endpoint
    if settings.PROMETHEUS_ENABLED:
        from prometheus_client import make_asgi_app
        metrics_app = make_asgi_app()
        app.mount("/metrics", metrics_app)

    app.add_exception_handler(EngineError, engine_error_handler)
    app.include_router(api_router)

    return app


# Application instance
app = create_app()
