"""FastAPI application with lifespan, error mapping, and router mounting."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from qmsguard.api.routes import admin, auth, health, records
from qmsguard.core.config import AppSettings
from qmsguard.core.exceptions import (
    AuthorizationError,
    ConcurrencyConflict,
    ConfigurationError,
    NotFoundError,
    QMSGuardError,
    ValidationError,
)
from qmsguard.core.logging import configure_logging
from qmsguard.workflow.services import Services, create_services

ERROR_STATUS: dict[type[QMSGuardError], int] = {
    ValidationError: 422,
    AuthorizationError: 403,
    NotFoundError: 404,
    ConcurrencyConflict: 409,
    ConfigurationError: 500,
}


async def handle_qmsguard_error(request: Request, exc: QMSGuardError) -> JSONResponse:
    code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    return JSONResponse(
        status_code=code,
        content={"error": type(exc).__name__, "reason": exc.reason},
    )


def create_app(settings: AppSettings | None = None, services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``services`` lets tests inject pre-wired in-memory backends.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Initialize and tear down application resources."""
        resolved = settings or AppSettings()
        configure_logging(resolved.log_level, json=resolved.log_json)
        app.state.settings = resolved
        app.state.services = services or create_services(resolved)
        yield

    app = FastAPI(
        title="QMS Guard NC Workflow Engine",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(QMSGuardError, handle_qmsguard_error)
    app.include_router(health.router)
    app.include_router(auth.router, prefix="/auth")
    app.include_router(records.router)
    app.include_router(admin.router, prefix="/admin")
    return app
