"""
Main FastAPI application for the AppForge generation service.

1. Streaming generation endpoint (/api/v1/generate, server-sent events)
2. Structured logging with correlation tracking
3. Degraded-mode startup: Redis and PostgreSQL are optional
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from appforge.api.v1 import chat, generate, health
from appforge.config import Settings, settings as default_settings
from appforge.core.logger import setup_logging
from appforge.services.container import ServiceContainer, build_services
from appforge.utils.logging import get_logger, log_context

setup_logging()
logger = get_logger(__name__)


# ============================================================================
# APPLICATION LIFESPAN
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build (unless injected) and connect services; disconnect on shutdown."""
    settings: Settings = app.state.settings

    with log_context(correlation_id=str(uuid.uuid4()), operation="startup"):
        logger.info(
            "app.startup.started",
            extra={
                "service": settings.app_name,
                "version": settings.app_version,
                "debug": settings.debug,
            },
        )

        services: Optional[ServiceContainer] = getattr(app.state, "services", None)
        if services is None:
            services = build_services(settings)
            app.state.services = services

        connected = await services.connect()
        logger.info("app.startup.completed", extra={"status": "ready", "dependencies": connected})

    yield

    with log_context(correlation_id=str(uuid.uuid4()), operation="shutdown"):
        logger.info("app.shutdown.started")
        await services.disconnect()
        logger.info("app.shutdown.completed")


# ============================================================================
# FASTAPI APP
# ============================================================================

def create_app(
    settings: Optional[Settings] = None,
    services: Optional[ServiceContainer] = None,
) -> FastAPI:
    """
    Application factory.

    ``services`` lets callers (tests, embedding hosts) supply a prebuilt
    container; otherwise one is built from ``settings`` at startup.
    """
    settings = settings or default_settings

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Turns natural-language prompts into app schemas and runnable source files",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.middleware("http")(logging_middleware)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(health.router, prefix="/api/v1", tags=["Health"])
    app.include_router(generate.router, prefix="/api/v1", tags=["Generation"])
    app.include_router(chat.router, prefix="/api/v1", tags=["Chat"])

    app.add_api_route("/", root, methods=["GET"])
    return app


# ============================================================================
# REQUEST/RESPONSE LOGGING MIDDLEWARE
# ============================================================================

async def logging_middleware(request: Request, call_next):
    """Log all HTTP requests with correlation tracking"""

    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    start_time = time.time()

    with log_context(
        correlation_id=correlation_id,
        endpoint=request.url.path,
        method=request.method,
    ):
        logger.info(
            "http.request.received",
            extra={
                "path": request.url.path,
                "method": request.method,
                "client_ip": request.client.host if request.client else None,
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "http.request.failed",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": (time.time() - start_time) * 1000,
                },
                exc_info=e,
            )
            raise

        logger.performance(
            "http.request.completed",
            duration_ms=(time.time() - start_time) * 1000,
            extra={"status_code": response.status_code, "path": request.url.path},
        )

        response.headers["X-Correlation-ID"] = correlation_id
        return response


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler with structured logging"""

    logger.error(
        "app.exception.unhandled",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
        },
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later.",
            "correlation_id": request.headers.get("X-Correlation-ID", "unknown"),
        },
    )


# ============================================================================
# ROOT ENDPOINT
# ============================================================================

async def root(request: Request):
    """Root endpoint with service info"""
    settings: Settings = request.app.state.settings
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "docs": "/docs",
        "health": "/api/v1/health",
        "api": {
            "generate": "POST /api/v1/generate",
            "generate_sync": "POST /api/v1/generate/sync",
            "classify": "POST /api/v1/chat/classify",
        },
    }


app = create_app()


# ============================================================================
# DEVELOPMENT SERVER
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    logger.info(
        "app.dev_server.starting",
        extra={"host": "0.0.0.0", "port": 8000, "reload": default_settings.debug},
    )

    uvicorn.run(
        "appforge.main:app",
        host="0.0.0.0",
        port=8000,
        reload=default_settings.debug,
        log_level=default_settings.log_level.lower(),
    )
