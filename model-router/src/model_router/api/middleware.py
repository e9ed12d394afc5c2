"""API middleware for request processing.

Provides middleware for logging, correlation IDs, and error handling.
"""

import time
from typing import Callable
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from shared.logging import (
    LogContext,
    get_logger,
    reset_correlation_id,
    set_correlation_id,
)

logger = get_logger(__name__)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation ID to requests.

    Takes the correlation ID from the request header or generates one,
    and binds it to the logging context for the request's lifetime.
    """

    HEADER_NAME = "X-Correlation-ID"

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        correlation_id = request.headers.get(self.HEADER_NAME) or str(uuid4())
        request.state.correlation_id = correlation_id

        token = set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_correlation_id(token)

        response.headers[self.HEADER_NAME] = correlation_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request/response logging.

    Logs request details and response timing.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        start_time = time.perf_counter()

        with LogContext(method=request.method, path=request.url.path):
            logger.info(
                "Request started",
                extra={"client_host": request.client.host if request.client else None},
            )

            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "Request completed",
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                },
            )

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Logs unhandled exceptions before FastAPI turns them into 500s."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(
                "Unhandled exception",
                extra={"error": str(e), "path": request.url.path},
            )
            raise


def setup_middleware(app: FastAPI) -> None:
    """Set up all middleware on the application.

    Args:
        app: FastAPI application instance.
    """
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
