import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.types import Receive, Scope, Send

from .core import database
from .core.config import Settings, load_settings
from .core.errors import GatewayError, gateway_error_handler
from .core.logging_config import setup_logging
from .core.media import MediaStore
from .core.middleware import (
    BodyLimitMiddleware,
    ErrorNormalizerMiddleware,
    RequestLogMiddleware,
    SecurityHeadersMiddleware,
)
from .features.auth.router import router as auth_router
from .features.reports.router import router as reports_router

logger = logging.getLogger("report_api.main")  # This logger will inherit from 'report_api'


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Creates the media store client, then connects to MongoDB. If the database
    cannot be reached, DatabaseUnavailableError propagates and the server
    stops before it starts listening.
    """
    settings: Settings = app.state.settings
    logger.info("Starting application...")
    app.state.media_store = MediaStore.from_settings(settings)
    app.state.mongo_client, app.state.db = await database.connect(settings)
    await database.ensure_indexes(app.state.db)

    yield

    app.state.mongo_client.close()
    logger.info("MongoDB connection has been closed.")


async def route_not_found(scope: Scope, receive: Receive, send: Send) -> None:
    response = JSONResponse(status_code=404, content={"message": "Route not found"})
    await response(scope, receive, send)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings.log_level, settings.log_namespaces)

    app = FastAPI(
        title="Report Generator API",
        description="API for authentication and image-backed reports.",
        version="0.1.0",
        lifespan=lifespan,
        exception_handlers={GatewayError: gateway_error_handler},
    )
    app.state.settings = settings

    # Added innermost first: the last middleware added sees the request first
    app.add_middleware(ErrorNormalizerMiddleware, include_stack=not settings.is_production)
    app.add_middleware(
        BodyLimitMiddleware,
        max_body_bytes=settings.max_body_bytes,
        max_upload_bytes=settings.upload.max_request_bytes,
    )
    app.add_middleware(SecurityHeadersMiddleware, policy=settings.cors)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors.allow_origins),
        allow_methods=list(settings.cors.allow_methods),
        allow_headers=list(settings.cors.allow_headers),
        expose_headers=list(settings.cors.expose_headers),
        allow_credentials=settings.cors.allow_credentials,
        max_age=settings.cors.max_age,
    )
    app.add_middleware(RequestLogMiddleware)

    app.include_router(auth_router, prefix="/api")
    app.include_router(reports_router, prefix="/api")

    # Anything no route matched
    app.router.default = route_not_found

    return app
