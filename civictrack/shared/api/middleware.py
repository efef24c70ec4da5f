"""
Shared API Middleware
======================

Common middleware and exception handlers for the FastAPI application.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from civictrack.core import (
    AlreadyUpvotedException,
    ApplicationException,
    ConcurrentUpdateException,
    ForbiddenException,
    InvalidTransitionException,
    NotAwaitingFeedbackException,
    ProofRequiredException,
    ResourceNotFoundException,
    TransientStorageError,
    ValidationException,
)
from civictrack.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# Most specific first; the first isinstance match wins
EXCEPTION_STATUS_CODES = [
    (ResourceNotFoundException, 404),
    (ForbiddenException, 403),
    (ProofRequiredException, 422),
    (ValidationException, 422),
    (InvalidTransitionException, 409),
    (NotAwaitingFeedbackException, 409),
    (AlreadyUpvotedException, 409),
    (ConcurrentUpdateException, 409),
    (TransientStorageError, 503),
]


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Adds correlation ID to requests for tracing.

    Correlation IDs link a request's log lines together.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))

        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs all requests and responses.

    Provides audit trail and debugging information.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            response_time = time.perf_counter() - start_time
            logger.error(
                "Request failed",
                extra={
                    "correlation_id": correlation_id,
                    "method": request.method,
                    "url": str(request.url),
                    "error": str(e),
                    "response_time_ms": int(response_time * 1000)
                }
            )
            raise

        response_time = time.perf_counter() - start_time
        logger.info(
            "Request completed",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "url": str(request.url),
                "status_code": response.status_code,
                "response_time_ms": int(response_time * 1000)
            }
        )
        return response


def status_code_for(exc: ApplicationException) -> int:
    for exc_type, code in EXCEPTION_STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return 400


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """
    Surface typed application failures as JSON error responses.

    The body carries the exception class name as `error` so clients can
    branch on it.
    """
    correlation_id = getattr(request.state, "correlation_id", "unknown")
    status_code = status_code_for(exc)

    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request rejected",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "status_code": status_code,
        }
    )

    headers = {"Retry-After": "1"} if status_code == 503 else None
    return JSONResponse(
        status_code=status_code,
        content={
            "error": type(exc).__name__,
            "detail": exc.message,
            "details": exc.details,
            "correlation_id": correlation_id,
        },
        headers=headers,
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.

    Returns consistent error responses for all exceptions.
    """
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    )

    # Don't expose internal details in production
    is_dev = getattr(getattr(request.app.state, "settings", None), "environment", None) == "development"

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "correlation_id": correlation_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "debug_info": str(exc) if is_dev else None
        }
    )
