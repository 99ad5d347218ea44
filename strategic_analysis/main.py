"""
FastAPI application entrypoint for the strategic analysis service.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from strategic_analysis.api.routes import router as api_router
from strategic_analysis.core.config import AppSettings, get_settings
from strategic_analysis.core.errors import AnalysisServiceError, RateLimitExceeded
from strategic_analysis.core.logging import (
    configure_logging,
    install_fatal_exception_handler,
)
from strategic_analysis.dependencies.security import API_KEY_HEADER
from strategic_analysis.schemas import ErrorResponse

logger = logging.getLogger(__name__)

_DEV_ORIGINS = ("http://localhost:5173", "http://localhost:5174")
_VERCEL_ORIGIN_REGEX = r"https://.*\.vercel\.app"


def _error_body(message: str, kind: str, details: Any = None) -> dict[str, Any]:
    return ErrorResponse(
        error=message,
        kind=kind,
        details=details,
        timestamp=datetime.now(timezone.utc),
    ).model_dump(mode="json", exclude_none=True)


def _register_exception_handlers(app: FastAPI, settings: AppSettings) -> None:
    @app.exception_handler(AnalysisServiceError)
    async def _service_error(request: Request, exc: AnalysisServiceError) -> JSONResponse:
        log = logger.warning if exc.status_code < 500 else logger.error
        log("%s %s failed (%s): %s", request.method, request.url.path, exc.kind, exc.message)
        headers = None
        if isinstance(exc, RateLimitExceeded):
            headers = {"Retry-After": str(int(exc.retry_after))}
        return JSONResponse(
            status_code=int(exc.status_code),
            content=_error_body(exc.message, exc.kind, exc.details),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=HTTPStatus.BAD_REQUEST,
            content=_error_body(
                "Invalid request payload", "validation_error", _validation_details(exc)
            ),
        )

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        details = str(exc) if settings.is_development else None
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            content=_error_body("Internal Server Error", "internal_error", details),
        )


def _validation_details(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


def create_app(settings: AppSettings | None = None) -> FastAPI:
    """Factory for the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        install_fatal_exception_handler(asyncio.get_running_loop())
        queue = settings.queue
        logger.info(
            "Starting strategic analysis API (env=%s, model=%s).",
            settings.environment,
            settings.gemini.model_name,
        )
        logger.info(
            "Queue limits: concurrency=%d, %d calls per %.0fs, timeout=%.0fs, "
            "attempts=%d, initial backoff=%.0fs.",
            queue.max_concurrent,
            queue.max_per_window,
            queue.window_seconds,
            queue.job_timeout_seconds,
            queue.max_attempts,
            queue.initial_backoff_seconds,
        )
        logger.info(
            "Analyze throttle: %d requests per %.0fs per client.",
            settings.throttle.limit,
            settings.throttle.window_seconds,
        )
        logger.info("Allowed origins: %s", ", ".join(_allowed_origins(settings)))
        if not settings.security.frontend_api_key:
            logger.warning(
                "FRONTEND_API_KEY is not set; requests are accepted without an %s header.",
                API_KEY_HEADER,
            )
        yield
        logger.info("Shutting down strategic analysis API.")

    app = FastAPI(
        title="Strategic Analysis API",
        version="0.1.0",
        description="REST API for AI-assisted strategic analysis and report export.",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(settings),
        allow_origin_regex=_VERCEL_ORIGIN_REGEX,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", API_KEY_HEADER],
    )
    _register_exception_handlers(app, settings)
    app.include_router(api_router, prefix="/api")
    return app


def _allowed_origins(settings: AppSettings) -> list[str]:
    origins = list(_DEV_ORIGINS)
    for origin in settings.allowed_origins_list:
        if origin not in origins:
            origins.append(origin)
    return origins


app = create_app()

__all__ = ["app", "create_app"]
