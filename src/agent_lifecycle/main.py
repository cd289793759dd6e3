"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from agent_lifecycle.config import get_settings
from agent_lifecycle.exceptions import LifecycleAPIError
from agent_lifecycle.middleware.error_handler import (
    generic_exception_handler,
    http_exception_handler,
    lifecycle_exception_handler,
    sqlalchemy_exception_handler,
    validation_exception_handler,
)
from agent_lifecycle.routers import agent_status, batch, licenses
from agent_lifecycle.tasks.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


async def _resume_processes() -> None:
    """Pick up processes that were running or due when the service stopped."""
    from agent_lifecycle.workflows.runtime import get_runtime

    try:
        result = await get_runtime().tick()
        logger.info("Startup process recovery: %s", result)
    except Exception as e:
        logger.warning("Startup process recovery failed: %s", e)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store, max-age=0"
        if not get_settings().debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    from agent_lifecycle.clients.http import CollaboratorHTTPClient, get_clients
    from agent_lifecycle.database import async_session_maker
    from agent_lifecycle.workflows.runtime import ProcessRuntime, set_runtime

    # Startup
    runtime = ProcessRuntime.from_settings(async_session_maker, get_clients(), get_settings())
    set_runtime(runtime)
    await _resume_processes()
    await start_scheduler()
    yield
    # Shutdown
    await stop_scheduler()
    await runtime.drain()
    set_runtime(None)

    # Close the shared collaborator HTTP client to release connections
    await CollaboratorHTTPClient.close_client()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    config = get_settings()

    app = FastAPI(
        title=config.app_name,
        version="0.1.0",
        description="Agent lifecycle and license renewal API",
        lifespan=lifespan,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
    )

    # Domain errors first, then the sanitized fallbacks
    app.add_exception_handler(LifecycleAPIError, lifecycle_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Middleware runs in reverse order of addition: CORS first on requests
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Actor"],
    )

    app.include_router(licenses.router, prefix="/api/v1", tags=["Licenses"])
    app.include_router(batch.router, prefix="/api/v1/batch", tags=["Batch Operations"])
    app.include_router(agent_status.router, prefix="/api/v1", tags=["Agent Status"])

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
