"""
Request size limiting middleware.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp
from typing import Callable

from adhd_screen.core.error_responses import ErrorMessages


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware to enforce maximum request body size limits.

    Rejects requests whose declared Content-Length exceeds max_body_size
    before the body is read.
    """

    def __init__(self, app: ASGIApp, max_body_size: int = 1024 * 1024):
        """
        Initialize request size limit middleware.

        Args:
            app: ASGI application
            max_body_size: Maximum request body size in bytes (default: 1MB)
        """
        super().__init__(app)
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_body_size:
            return JSONResponse(
                status_code=413,
                content={"detail": ErrorMessages.request_body_limit(self.max_body_size)},
            )

        return await call_next(request)
