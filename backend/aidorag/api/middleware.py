"""FastAPI middleware and exception handlers."""

import time
from typing import override

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from aidorag.core.exceptions import AppError
from aidorag.core.logging import get_logger

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging requests and responses."""

    # Skip logging for health checks and docs to reduce noise
    SKIP_PATHS = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}

    @override
    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.perf_counter()
        path = request.url.path

        if path in self.SKIP_PATHS:
            return await call_next(request)

        logger.info("request_started", method=request.method, path=path)

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "request_failed",
                method=request.method,
                path=path,
                error=str(e),
                duration_ms=round(duration_ms, 2),
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "request_completed",
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        response.headers["X-Process-Time-Ms"] = f"{duration_ms:.2f}"
        return response


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Catch-all for exceptions no handler converted."""

    @override
    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception("unhandled_exception", path=request.url.path, error=str(e))
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"},
            )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("app_error", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = ["{}: {}".format(".".join(str(p) for p in err["loc"]), err["msg"]) for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "; ".join(messages) or "Invalid request"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as ``{"success": false, "error": ...}``."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
