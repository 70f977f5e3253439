"""Tutera - Crestron Home control core.

FastAPI application entry point.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tutera import __version__
from tutera.config import get_settings
from tutera.exceptions import InvalidIntentError, UnknownCommandError
from tutera.models.schemas import ErrorDetail, ErrorResponse

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

# =============================================================================
# Logging Setup
# =============================================================================


def setup_logging() -> None:
    """Configure structured logging."""
    settings = get_settings()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer()
            if settings.env == "development"
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Services log through the standard library
    logging.basicConfig(
        level=logging.getLevelName(settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# =============================================================================
# Lifespan Management
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the control session unless one was installed beforehand, runs an
    initial poll and starts background polling.
    """
    logger = structlog.get_logger()
    settings = get_settings()

    # --- Startup ---
    logger.info("Starting Tutera", version=__version__, env=settings.env)

    from tutera.services.metrics import init_metrics

    init_metrics(version=__version__, env=settings.env)

    session = getattr(app.state, "session", None)
    if session is None:
        from tutera.services.session import ControlSession

        session = ControlSession.from_settings(settings)
        if session.client:
            await session.client.connect()
        app.state.session = session

    try:
        merged = await session.poll_once()
        logger.info("Initial poll complete", merged=merged, error=session.cache.error)
    except Exception as e:
        logger.error("Initial poll failed", error=str(e))

    await session.start()
    logger.info("Tutera started", host=settings.host, port=settings.port)

    yield

    # --- Shutdown ---
    logger.info("Shutting down Tutera")
    await session.stop()
    logger.info("Tutera stopped")


# =============================================================================
# FastAPI Application
# =============================================================================


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(
            mode="json"
        ),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    setup_logging()
    settings = get_settings()

    app = FastAPI(
        title="Tutera",
        description="Command resolution and state reconciliation for Crestron Home",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.env == "development" else None,
        redoc_url="/redoc" if settings.env == "development" else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.env == "development" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request timing middleware
    @app.middleware("http")
    async def add_timing_header(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.2f}"
        return response

    @app.exception_handler(UnknownCommandError)
    async def unknown_command_handler(request: Request, exc: UnknownCommandError):
        return _error(404, "UNKNOWN_COMMAND", str(exc))

    @app.exception_handler(InvalidIntentError)
    async def invalid_intent_handler(request: Request, exc: InvalidIntentError):
        return _error(422, "INVALID_INTENT", str(exc))

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger = structlog.get_logger()
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error=ErrorDetail(
                    code="INTERNAL_ERROR",
                    message="An unexpected error occurred",
                    details={"error": str(exc)} if settings.debug else None,
                )
            ).model_dump(mode="json"),
        )

    _register_routes(app)

    return app


def _register_routes(app: FastAPI) -> None:
    """Register API routes."""
    from tutera.api.routes import commands, devices, health, metrics

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": "Tutera",
            "version": __version__,
            "endpoints": {
                "health": "/health",
                "docs": "/docs",
                "commands": "/api/commands",
                "devices": "/api/devices",
                "topology": "/api/topology",
                "metrics": "/metrics",
            },
        }

    app.include_router(health.router, tags=["Health"])
    app.include_router(commands.router, prefix="/api")
    app.include_router(devices.router, prefix="/api")
    app.include_router(metrics.router, tags=["Metrics"])


# Create app instance
app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================


def main() -> None:
    """Run the application via CLI."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "tutera.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.env == "development",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
