"""FastAPI application setup"""
import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ecoscan import __version__
from ecoscan.api.routes import router
from ecoscan.api.middleware import setup_cors, setup_rate_limiting
from ecoscan.exceptions import (
    ConflictError,
    DatabaseError,
    EcoScanError,
    NotFoundError,
    ValidationError,
)
from ecoscan.services.container import ServiceContainer, build_container_from_config

logger = logging.getLogger(__name__)


def status_for_error(exc: EcoScanError) -> int:
    """HTTP status code for an ecoscan exception"""
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, DatabaseError):
        return 503
    return 500


def create_api_application(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Create and configure FastAPI application

    Args:
        container: Pre-built service container (tests); built from
            config at startup when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifecycle manager for FastAPI application"""
        logger.info("Starting API server...")
        active = container or build_container_from_config()
        if active.database is not None:
            await active.database.init_pool()
            logger.info("Database pool initialized")

        yield

        logger.info("Shutting down API server...")
        if active.database is not None:
            await active.database.close_pool()
            logger.info("Database pool closed")

    app = FastAPI(
        title="EcoScan Gamification API",
        description="Points, streaks, levels and achievements for waste scans",
        version=__version__,
        lifespan=lifespan
    )

    setup_cors(app)
    setup_rate_limiting(app)

    app.include_router(router)

    @app.exception_handler(EcoScanError)
    async def ecoscan_exception_handler(request: Request, exc: EcoScanError):
        return JSONResponse(status_code=status_for_error(exc), content=exc.to_dict())

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc)}
        )

    logger.info("FastAPI application created")

    return app
