"""
FastAPI application for the Teamhub backend.

This is the HTTP API the frontend talks to. Expected failures surface as
``{"error": {"code", "message"}}`` with the error's status; anything else
is reported to Sentry and returned as a generic 500.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from teamhub.api import projects, workspaces
from teamhub.auth.capabilities import seed_roles
from teamhub.auth.routes import router as auth_router
from teamhub.config import configure_logging, get_settings
from teamhub.core.errors import TeamhubError
from teamhub.integrations.sentry import capture_exception, init_sentry
from teamhub.storage import StorageProvider, create_local_storage

logger = logging.getLogger(__name__)


# =============================================================================
# Error Handlers
# =============================================================================


async def teamhub_error_handler(request: Request, exc: TeamhubError) -> JSONResponse:
    logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request data",
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in e["loc"]),
                        "message": e["msg"],
                    }
                    for e in exc.errors()
                ],
            },
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all. Never leaks internal details."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    capture_exception(exc, path=request.url.path, method=request.method)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}},
    )


# =============================================================================
# App Setup
# =============================================================================


def create_app(storage: StorageProvider | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        storage: Use this StorageProvider instead of fresh in-memory storage
            (tests share one with the code they drive directly)
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings)

        if init_sentry():
            logger.info("Sentry error tracking enabled")

        app.state.storage = storage or create_local_storage()
        seeded = await seed_roles(app.state.storage.metadata)
        logger.info(f"Teamhub API starting in {settings.environment} mode ({seeded} roles seeded)")

        yield

        logger.info("Teamhub API shutting down")

    app = FastAPI(
        title="Teamhub API",
        description="Accounts, workspaces, roles and invites for team collaboration",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(TeamhubError, teamhub_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(auth_router)
    app.include_router(workspaces.router)
    app.include_router(projects.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "teamhub-api"}

    return app
