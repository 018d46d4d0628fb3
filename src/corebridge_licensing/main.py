"""FastAPI entry point for the CoreBridge licensing server."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from corebridge_licensing import __version__
from corebridge_licensing.api.licenses import router as licenses_router
from corebridge_licensing.api.rest import router as rest_router
from corebridge_licensing.config import load_config
from corebridge_licensing.context import LicensingContext, build_context
from corebridge_licensing.errors import (
    InvalidTransitionError,
    LicenseNotFoundError,
    StorageFailure,
    ValidationInputError,
)
from corebridge_licensing.scheduler.tasks import build_scheduler

logger = logging.getLogger("corebridge")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    context: LicensingContext = app.state.context
    await context.start()

    scheduler = build_scheduler(context)
    app.state.scheduler = scheduler
    await scheduler.start()
    logger.info("Licensing service started on port %d", context.settings.server.port)

    yield

    await scheduler.stop()
    await context.close()
    logger.info("Licensing service stopped")


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationInputError)
    async def _bad_request(request: Request, exc: ValidationInputError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=400)

    @app.exception_handler(LicenseNotFoundError)
    async def _not_found(request: Request, exc: LicenseNotFoundError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=404)

    @app.exception_handler(InvalidTransitionError)
    async def _conflict(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=409)

    @app.exception_handler(StorageFailure)
    async def _storage_failure(request: Request, exc: StorageFailure) -> JSONResponse:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse({"error": "Internal server error"}, status_code=500)


def create_app(context: LicensingContext | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if context is None:
        context = build_context(load_config())

    app = FastAPI(
        title="CoreBridge License Manager",
        description="Plugin license issuance, validation and activation tracking",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.context = context

    # CORS for the admin UI
    cors_env = os.environ.get("COREBRIDGE_CORS_ORIGINS", "")
    origins = [o.strip() for o in cors_env.split(",") if o.strip()] if cors_env else []
    origins += ["http://localhost:3000", "http://127.0.0.1:3000"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _install_error_handlers(app)

    app.include_router(rest_router)
    app.include_router(licenses_router, prefix="/api")

    return app


app = create_app()


def main() -> None:
    """Run the licensing server."""
    settings = load_config()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    uvicorn.run(
        "corebridge_licensing.main:app",
        host=settings.server.host,
        port=settings.server.port,
        workers=settings.server.workers,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
