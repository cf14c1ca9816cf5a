"""
FastAPI Middleware

- Correlation ID per request (X-Correlation-ID in and out)
- Request logging with timing; probe endpoints are logged at debug level
- Exception handlers returning {"error": {...}}; retriable errors get Retry-After
"""
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.exceptions import AppException, ErrorCode
from app.core.logging import get_correlation_id, get_logger, set_correlation_id

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
# health probes run every few seconds; they should not flood the info log
_QUIET_PATHS = frozenset({"/health", "/health/ready"})
RETRY_AFTER_SECONDS = 1


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds the caller's correlation id (or a new one) to the request context"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = set_correlation_id(request.headers.get(CORRELATION_HEADER))
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request with method, path, status and duration"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.monotonic()
        method, path = request.method, request.url.path

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {method} {path}",
                extra_data={
                    "method": method,
                    "path": path,
                    "duration_seconds": round(time.monotonic() - started, 4),
                    "error": str(e),
                },
                exc_info=True
            )
            raise

        details = {
            "method": method,
            "path": path,
            "status_code": response.status_code,
            "duration_seconds": round(time.monotonic() - started, 4),
        }
        if path in _QUIET_PATHS and response.status_code < 400:
            logger.debug(f"Request completed: {method} {path}", extra_data=details)
        elif response.status_code < 400:
            logger.info(f"Request completed: {method} {path}", extra_data=details)
        else:
            # 503 מה-push endpoint הוא בקשה מכוונת לשליחה חוזרת, לא שגיאת שרת
            logger.warning(f"Request completed: {method} {path}", extra_data=details)
        return response


def _error_headers(retriable: bool) -> dict[str, str]:
    headers = {CORRELATION_HEADER: get_correlation_id()}
    if retriable:
        headers["Retry-After"] = str(RETRY_AFTER_SECONDS)
    return headers


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """AppException -> its status code and {"error": {...}} body"""
    logger.warning(
        f"Application exception: {exc.error_code.value}",
        extra_data={
            "error_code": exc.error_code.value,
            "message": exc.message,
            "details": exc.details,
            "retriable": exc.retriable,
            "path": request.url.path,
        }
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=_error_headers(exc.retriable),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unexpected -> 500 without internal details"""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra_data={
            "exception_type": type(exc).__name__,
            "message": str(exc),
            "path": request.url.path,
        },
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": ErrorCode.INTERNAL_ERROR.value,
                "message": "An unexpected error occurred",
                "details": {}
            }
        },
        headers=_error_headers(retriable=False),
    )


def setup_middleware(app: FastAPI) -> None:
    """Register middleware; the last one added runs first"""
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
