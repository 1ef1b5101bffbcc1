"""
FastAPI application factory for the tracker API.

The lifespan starts the refresh scheduler and stale-data check; routes
are thin adapters over the repositories, the orchestrator and the
notification dispatcher.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adoption_tracker import __version__
from adoption_tracker.api.dependencies import cleanup_dependencies, start_services
from adoption_tracker.api.routes import health, notifications, projects, refresh
from adoption_tracker.config.settings import get_settings
from adoption_tracker.observability.logging import bind_context, clear_context

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Adoption tracker API starting up")

    try:
        await start_services()
    except Exception as e:
        # Routes still build their dependencies lazily on first use
        logger.warning("Failed to start background services: %s", e)

    yield

    logger.info("Adoption tracker API shutting down")
    await cleanup_dependencies()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    openapi_tags = [
        {"name": "health", "description": "Service health checks"},
        {"name": "projects", "description": "Tracked projects, stats, history and snapshots"},
        {"name": "refresh", "description": "Start a refresh and read its status"},
        {"name": "notifications", "description": "Notification subscribers and delivery logs"},
    ]

    app = FastAPI(
        title="DHI Adoption Tracker API",
        description="""
Tracks public GitHub repositories that pull images from the hardened image registry.

## Authentication

Requires `X-API-KEY` header for all requests except `/health`.
        """,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=openapi_tags,
    )

    cors_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # Request logging and correlation ID
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
            or str(uuid.uuid4())
        )
        bind_context(request_id=request_id)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time
            response.headers["X-Request-ID"] = request_id

            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )
            return response
        finally:
            clear_context()

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "internal"},
        )

    app.include_router(health.router, tags=["health"])
    app.include_router(projects.router, tags=["projects"])
    app.include_router(refresh.router, tags=["refresh"])
    app.include_router(notifications.router, tags=["notifications"])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "DHI Adoption Tracker API",
            "version": __version__,
            "docs": "/docs",
        }

    return app
