"""
FastAPI main application for the Catalog API.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.config import APIConfig, config as api_config
from api.models import HealthResponse
from api.ratelimit import RateLimiter, rate_limit_middleware
from api.responses import (
    FailedValidationError,
    bad_request_response, body_error_message, error_response,
    failed_validation_response, method_not_allowed_response,
    not_found_response, server_error_response, envelope,
)
from api.routes import router as resource_router
from storage.database import Database
from storage.repositories import RecordNotFoundError, Repositories
from utilities.config import AppConfig, config as app_config
from utilities.logger import setup_logging

# Setup logging
logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[AppConfig] = None,
    api_settings: Optional[APIConfig] = None,
    limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Database and logging settings (defaults to the global config)
        api_settings: Server and rate limiter settings (defaults to the global config)
        limiter: Rate limiter to use instead of one built from api_settings
    """
    settings = settings or app_config
    api_settings = api_settings or api_config
    debug = settings.debug or api_settings.debug

    if limiter is None:
        limiter = RateLimiter(
            rate=api_settings.limiter_rps,
            burst=api_settings.limiter_burst,
            enabled=api_settings.limiter_enabled,
            sweep_interval=api_settings.limiter_sweep_interval,
            stale_after=api_settings.limiter_stale_after,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        logger.info("Starting Catalog API", environment=settings.environment,
                    version=api_settings.api_version)

        database = Database(settings.database_url, echo=settings.database_echo)
        await database.connect(create_tables=settings.create_tables)
        app.state.database = database
        app.state.repositories = Repositories(database.sessionmaker, timeout=settings.database_timeout)
        app.state.limiter.start()

        yield

        # Shutdown
        logger.info("Shutting down Catalog API")
        await app.state.limiter.stop()
        await database.disconnect()

    app = FastAPI(
        title=api_settings.api_title,
        description=api_settings.api_description,
        version=api_settings.api_version,
        lifespan=lifespan,
    )
    app.state.limiter = limiter
    app.state.settings = settings

    # Middleware added last runs first: CORS, then rate limiting
    app.middleware("http")(rate_limit_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=api_settings.cors_origins,
        allow_credentials=api_settings.cors_allow_credentials,
        allow_methods=api_settings.cors_allow_methods,
        allow_headers=api_settings.cors_allow_headers,
    )

    # Exception handlers
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle routing errors raised by Starlette."""
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return not_found_response()
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            response = method_not_allowed_response(request.method)
            if exc.headers:
                response.headers.update(exc.headers)
            return response
        return error_response(exc.status_code, str(exc.detail), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Handle request bodies that cannot be decoded."""
        return bad_request_response(body_error_message(exc.errors()))

    @app.exception_handler(FailedValidationError)
    async def failed_validation_handler(request: Request, exc: FailedValidationError):
        return failed_validation_response(exc.errors)

    @app.exception_handler(RecordNotFoundError)
    async def record_not_found_handler(request: Request, exc: RecordNotFoundError):
        return not_found_response()

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected failures."""
        return server_error_response(request, exc, debug=debug)

    @app.get("/v1/healthcheck", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        health_info = await request.app.state.database.health_check()
        health = HealthResponse(
            status="available",
            system_info={
                "environment": settings.environment,
                "version": api_settings.api_version,
            },
            database_status=health_info.get("status", "unknown"),
        )
        return envelope(status.HTTP_200_OK, health.model_dump())

    app.include_router(resource_router)
    return app


def build_app() -> FastAPI:
    """Configure logging from the global settings and build the application."""
    setup_logging(
        log_level=app_config.log_level,
        log_format=app_config.log_format,
        log_file=app_config.log_file,
        debug=app_config.debug,
    )
    return create_app()
