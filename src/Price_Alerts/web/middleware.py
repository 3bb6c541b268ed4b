"""Exception handlers and request logging middleware.

Maps domain exceptions from ``Price_Alerts.utils.exceptions`` to HTTP
responses. Error bodies use ``{"error": message}``, the shape the dashboard
client already reads.
"""

import logging
import time

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from Price_Alerts.utils.exceptions import (
    AlertNotFoundError,
    AlertStoreError,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Domain exception -> HTTP status handlers
# ---------------------------------------------------------------------------


async def _alert_not_found_handler(request: Request, exc: AlertNotFoundError) -> JSONResponse:
    """Map AlertNotFoundError to HTTP 404."""
    logger.warning("Alert not found: %s", exc.alert_id)
    return JSONResponse(status_code=404, content={"error": "Alert not found"})


async def _alert_store_error_handler(request: Request, exc: AlertStoreError) -> JSONResponse:
    """Map AlertStoreError to HTTP 500."""
    logger.error("Alert store failure: %s", exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


async def _http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render HTTP errors with the same body shape as domain errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Map payload validation failures to HTTP 400."""
    messages = [str(error.get("msg", "")) for error in exc.errors()]
    logger.info("Rejected invalid payload on %s: %s", request.url.path, "; ".join(messages))
    return JSONResponse(status_code=400, content={"error": "Invalid request payload", "details": messages})


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain exception handlers on the FastAPI application."""
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(AlertNotFoundError, _alert_not_found_handler)  # type: ignore[arg-type]
    app.add_exception_handler(AlertStoreError, _alert_store_error_handler)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status code, and duration.

    Health checks log at DEBUG so a polling monitor does not flood INFO.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - start_time) * 1000

        level = logging.DEBUG if request.url.path == "/api/health" else logging.INFO
        logger.log(
            level,
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response
