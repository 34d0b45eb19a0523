"""
Request logging middleware for tracking HTTP requests.
"""
import time
import uuid
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from lessonguard.utils.logger import get_logger

logger = get_logger("middleware")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging HTTP requests and responses.

    Only the path is logged; query strings may carry playback tokens.
    An incoming X-Request-ID is reused, otherwise one is generated.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        # Reuse or generate request ID for tracing
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        # Get client info
        client_ip = request.client.host if request.client else "unknown"

        # Log incoming request, path only
        logger.info(
            "Request started",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            ip=client_ip,
            range=request.headers.get("range"),
        )

        # Process request and measure time
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            # Log error
            logger.error(
                "Request failed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                duration_ms=f"{(time.perf_counter() - start_time) * 1000:.2f}",
                error=str(e),
                exc_info=True
            )
            raise

        # Log response
        logger.info(
            "Request completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=f"{(time.perf_counter() - start_time) * 1000:.2f}"
        )

        # Add request ID to response headers
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
