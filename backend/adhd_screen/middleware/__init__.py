"""
Middleware package for request/response processing.
"""
from .request_logging import RequestLoggingMiddleware
from .request_size import RequestSizeLimitMiddleware

__all__ = ["RequestLoggingMiddleware", "RequestSizeLimitMiddleware"]
