"""FastAPI application factory for the FLAIM auth service."""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from flaim.api.router_health import router as health_router
from flaim.billing.routes_checkout import router as checkout_router
from flaim.billing.routes_webhook import router as webhook_router
from flaim.core.errors import AuthError
from flaim.core.logging import setup_logging
from flaim.core.settings import AuthSettings
from flaim.tokens.routes_jwks import router as jwks_router
from flaim.tokens.routes_keys import router as keys_router
from flaim.tokens.routes_session import router as session_router
from flaim.tokens.routes_validate import router as validate_router
from flaim.tokens.scheduler import rotation_loop

logger = structlog.get_logger(__name__)


async def _auth_error_handler(_request: Request, exc: AuthError) -> JSONResponse:
    """Render any AuthError as {"error": ..., "code": ...}."""
    return JSONResponse(exc.to_body(), status_code=exc.status_code)


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    settings = AuthSettings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        task: asyncio.Task[None] | None = None
        if settings.rotation_check_interval > 0:
            task = asyncio.create_task(rotation_loop(settings))
        yield
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            logger.info("scheduler.stopped")

    app = FastAPI(
        title="FLAIM Auth",
        version="0.1.0",
        lifespan=lifespan,
    )

    origins = settings.get_cors_origin_list()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["Authorization", "Content-Type"],
        )

    app.add_exception_handler(AuthError, _auth_error_handler)

    app.include_router(health_router)
    app.include_router(validate_router)
    app.include_router(jwks_router)
    app.include_router(session_router)
    app.include_router(checkout_router)
    app.include_router(webhook_router)
    app.include_router(keys_router)

    return app
