"""
Estate Messaging API Server

Entry point for the FastAPI application.
"""

import logging

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from estate_api.core.config import get_settings
from estate_api.core.database import engine
from estate_api.core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from estate_api.core.redis import close_redis, ping_redis
from estate_api.api.v1 import router as api_v1_router
from estate_api.api.v1.auth import router as auth_router

settings = get_settings()
log = structlog.get_logger()


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog with the specified level and format."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed ids and bodies are client errors (400), not 422."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Estate Messaging",
        description="Messaging and notification core of the Estate marketplace.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (last added is outermost)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["Content-Type", "Authorization", settings.access_token_header],
    )
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(auth_router, prefix="/auth", tags=["Authentication"])
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check: database reachable, Redis reachable when configured."""
        database_ok = True
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            log.warning("ready.database_unavailable", error=str(exc))
            database_ok = False
        redis_ok = await ping_redis()

        ready = database_ok and redis_ok
        return JSONResponse(
            status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "ready" if ready else "unavailable",
                "database": database_ok,
                "redis": redis_ok,
            },
        )

    @app.on_event("startup")
    async def on_startup():
        log.info("Estate messaging starting", debug=settings.debug)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Estate messaging shutting down")
        await close_redis()

    return app


app = create_app()
