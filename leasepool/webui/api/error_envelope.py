"""
Response envelope for the LeasePool API

Success bodies:  {"ok": true,  "data": ..., "timestamp": ...}
Error bodies:    {"ok": false, "error_code": "...", "message": "...",
                  "details": {...}, "timestamp": "2024-01-31T12:34:56.789Z"}

Pool errors map to status codes here, so route handlers just let
StoreUnavailable / PartialBatchFailure / ValidationRejected propagate.
"""

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from leasepool.core.pool.errors import PartialBatchFailure, StoreUnavailable, ValidationRejected
from leasepool.core.time import utc_now


logger = logging.getLogger(__name__)

# Fallback codes for plain HTTPExceptions raised by routes or the router
HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    422: "VALIDATION_ERROR",
    429: "NO_ITEMS_AVAILABLE",
    503: "STORE_UNAVAILABLE",
}


def _timestamp() -> str:
    return utc_now().strftime('%Y-%m-%dT%H:%M:%S.%fZ')


class ErrorEnvelope:
    """Builds the ok/error bodies shared by every route"""

    @staticmethod
    def format_error(
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Args:
            error_code: Stable machine-readable code, e.g. "NO_ITEMS_AVAILABLE"
            message: Text for humans
            details: Extra context (batch index, validation errors, hints)
        """
        return {
            "ok": False,
            "error_code": error_code,
            "message": message,
            "details": details or {},
            "timestamp": _timestamp(),
        }

    @staticmethod
    def format_success(data: Any, message: Optional[str] = None) -> Dict[str, Any]:
        body = {"ok": True, "data": data, "timestamp": _timestamp()}
        if message:
            body["message"] = message
        return body


def error_response(status_code: int, error_code: str, message: str, details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorEnvelope.format_error(error_code, message, details),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the pool-error, validation, HTTP and catch-all handlers on app"""

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
        logger.error(f"Store unavailable on {request.method} {request.url.path}: {exc}")
        return error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "STORE_UNAVAILABLE",
            "Store unavailable",
            {"hint": "The backing store failed; the operation was rolled back. Retry later."},
        )

    @app.exception_handler(PartialBatchFailure)
    async def partial_batch_handler(request: Request, exc: PartialBatchFailure):
        logger.error(f"Partial batch failure on {request.method} {request.url.path}: {exc}")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "PARTIAL_BATCH_FAILURE",
            "Ingest stopped at a failing batch",
            {"batch_index": exc.batch_index, "inserted_count": exc.inserted_count},
        )

    @app.exception_handler(ValidationRejected)
    async def validation_rejected_handler(request: Request, exc: ValidationRejected):
        logger.warning(f"Rejected value on {request.method} {request.url.path}: {exc}")
        return error_response(status.HTTP_400_BAD_REQUEST, "INVALID_VALUE", str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        logger.warning(f"Invalid request {request.method} {request.url.path}: {errors}")
        return error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "VALIDATION_ERROR",
            "Request validation failed",
            {"errors": errors},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"HTTP {exc.status_code} on {request.method} {request.url.path}: {exc.detail}")
        return error_response(
            exc.status_code,
            HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
            str(exc.detail) if exc.detail else "An error occurred",
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)

        details: Dict[str, Any] = {"hint": "An unexpected error occurred."}
        message = "Internal server error"
        if request.app.state.config.debug:
            message = f"{type(exc).__name__}: {exc}"
            details = {
                "exception_type": type(exc).__name__,
                "traceback": traceback.format_exception(type(exc), exc, exc.__traceback__)[-10:],
            }

        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", message, details)
