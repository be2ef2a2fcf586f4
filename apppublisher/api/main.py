"""
FastAPI Application Factory

Creates and configures the publish API server with:
- Lifespan events (startup/shutdown)
- Exception handlers producing ``{"success": false, "error": ...}`` bodies
- Request logging middleware
- API router mounting
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apppublisher.api.v1.router import api_router
from apppublisher.core.config import Settings, settings as default_settings
from apppublisher.core.database import dispose_engines
from apppublisher.core.exceptions import PublishError
from apppublisher.core.logging_config import setup_logging
from apppublisher.core.middleware import RequestLoggingMiddleware
from apppublisher.services.environment_router import EnvironmentRouter

setup_logging()
logger = logging.getLogger(__name__)


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Startup: log configuration
    Shutdown: dispose datastore engines
    """
    app_settings: Settings = app.state.settings
    logger.info(
        f"Starting {app_settings.app_name} v{app_settings.app_version} "
        f"(environment={app_settings.environment}, "
        f"creation_policy={app_settings.creation_policy.value})"
    )
    logger.info(f"Publish server running on port {app_settings.port}")

    yield

    logger.info("Shutting down...")
    await dispose_engines()
    logger.info("Shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory pattern.

    Creates a configured FastAPI instance with middleware, exception handlers
    and routers. The environment router is built here, once per process.
    """
    settings = settings or default_settings

    app = FastAPI(
        title=settings.app_name,
        description="Publish deployable app metadata to per-environment datastores.",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.environment_router = EnvironmentRouter.from_settings(settings)

    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(PublishError)
    async def publish_error_handler(request: Request, exc: PublishError):
        """Handle publish failures with the caller-facing error format."""
        if exc.status_code >= 500:
            logger.error(f"Publish error ({exc.code}): {exc.message}")
        else:
            logger.info(f"Publish rejected ({exc.code}): {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _failure(404, "Not found")
        return _failure(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _failure(400, "Invalid request")

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.exception(f"Unhandled exception: {exc}")
        return _failure(500, str(exc) if settings.debug else "Internal server error")

    app.include_router(api_router)

    return app


# Default app instance
app = create_app()
