"""
Request tracking middleware.

Assigns every request an id (honouring an incoming X-Request-ID), exposes it
on ``request.state`` for handlers and error responses, and logs slow requests.
"""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.request_context import new_request_id

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Attach request ids and response timing headers."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with performance monitoring."""
        request_id = new_request_id(request.headers.get("X-Request-ID"))
        request.state.request_id = request_id
        start_time = time.time()

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-MS"] = str(int(duration_ms))

        if duration_ms > SLOW_REQUEST_MS:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} took {duration_ms:.0f}ms",
                extra={"request_id": request_id, "status_code": response.status_code},
            )
        return response
