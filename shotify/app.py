"""
FastAPI application entry point for the Shotify backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shotify.config import Settings, get_settings
from shotify.dependencies import get_db_client
from shotify.errors import ShotifyError, UnauthenticatedError
from shotify.logging_config import setup_logging
from shotify.routes import router
from shotify.templates import TemplateService

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, error: str | None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "data": None, "error": error},
        headers=headers,
    )


async def shotify_error_handler(request: Request, exc: ShotifyError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc.__cause__
        )
    headers = None
    if isinstance(exc, UnauthenticatedError):
        headers = {"WWW-Authenticate": "Bearer"}
    return error_response(exc.status_code, exc.message, exc.detail, headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        details.append(f"{location}: {err.get('msg')}" if location else err.get("msg", ""))
    return error_response(400, "Invalid request", "; ".join(details))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), str(exc.detail), getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "Internal server error", None)


def seed_catalog(app: FastAPI) -> None:
    provider = app.dependency_overrides.get(get_db_client, get_db_client)
    try:
        TemplateService(provider()).seed_templates()
    except ShotifyError:
        # A failed seed leaves the API up with whatever catalog exists.
        logger.exception("Failed to seed templates")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if settings.seed_templates_on_startup:
        seed_catalog(app)
    logger.info("Shotify API started (environment: %s)", settings.environment)
    yield
    logger.info("Shotify API stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title="Shotify Backend (FastAPI)",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Accept", "Authorization", "X-Requested-With"],
        expose_headers=["Content-Length", "Content-Type"],
        max_age=12 * 60 * 60,
    )

    app.add_exception_handler(ShotifyError, shotify_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/health")
    def health():
        return {"status": "ok", "service": "shotify-api"}

    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
