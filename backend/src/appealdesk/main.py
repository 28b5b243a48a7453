"""FastAPI application entry point for appealdesk.

Serves the report export endpoints of the appeal tracking backend.

Run with:
    uvicorn appealdesk.main:app --port 5000
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api import register_exception_handlers
from .api.middleware import (
    RequestIdMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from .api.reports import router as reports_router
from .config import Settings, get_settings
from .logging import get_logger, setup_logging
from .reports import ArchiveSlots, ReportStore

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    settings: Settings = app.state.settings
    store: ReportStore = app.state.report_store

    logger.info(
        "Starting appealdesk API",
        extra={
            "environment": settings.environment,
            "reports_dir": str(store.reports_dir),
            "max_concurrent_archives": settings.max_concurrent_archives,
        },
    )
    if not store.reports_dir.is_dir():
        logger.warning(
            f"Reports directory {store.reports_dir} does not exist yet; "
            "listing will be empty until the report job creates it"
        )

    yield

    logger.info("Shutting down appealdesk API")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to use instead of the cached environment settings

    Returns:
        Configured application with the report store attached to ``app.state``
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="appealdesk API",
        description="Report export service for the appeal tracking backend",
        version=__version__,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.report_store = ReportStore.from_settings(settings)
    app.state.archive_slots = ArchiveSlots(settings.max_concurrent_archives)

    # Last added runs first
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials="*" not in settings.cors_origins_list,
        allow_methods=["GET"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )

    register_exception_handlers(app)

    # =========================
    # Health Check Endpoints
    # =========================

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Basic health check endpoint."""
        return {"status": "healthy", "service": "appealdesk-api"}

    @app.get("/health/live", tags=["Health"])
    async def liveness_check():
        """Liveness check - just confirms the service is running."""
        return {"status": "alive"}

    @app.get("/health/ready", tags=["Health"])
    def readiness_check():
        """Readiness check that verifies the reports directory can be read."""
        reports_dir = app.state.report_store.reports_dir
        checks = {"reports_dir": "unknown"}

        if not reports_dir.is_dir():
            checks["reports_dir"] = "missing"
        elif not os.access(reports_dir, os.R_OK | os.X_OK):
            checks["reports_dir"] = "unreadable"
        else:
            checks["reports_dir"] = "healthy"

        slots: ArchiveSlots = app.state.archive_slots
        all_healthy = all(v == "healthy" for v in checks.values())
        return JSONResponse(
            status_code=200 if all_healthy else 503,
            content={
                "status": "ready" if all_healthy else "not_ready",
                "checks": checks,
                "archives_in_flight": slots.in_use,
            },
        )

    # =========================
    # API Routers
    # =========================

    app.include_router(reports_router, prefix=settings.api_prefix, tags=["Reports"])

    @app.get("/", tags=["Root"])
    async def root():
        """API root endpoint."""
        return {
            "name": "appealdesk API",
            "version": __version__,
            "reports": f"{settings.api_prefix}/reports",
            "docs": "/docs" if settings.is_development else None,
        }

    return app


def _build_default_app() -> FastAPI:
    setup_logging()
    return create_app()


# Module-level app for uvicorn
app = _build_default_app()
