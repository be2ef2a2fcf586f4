"""
Request/Response Logging Middleware.

Provides:
- Structured request/response logging
- Performance timing
- Request ID tracking
- Automatic health check filtering
"""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from apppublisher.core.logging_config import request_id_var

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for structured request/response logging.

    Request bodies are never logged: they carry packaged app code.
    The request id is published through ``request_id_var`` so records
    logged while handling the request carry it too.
    """

    SKIP_PATHS = {
        "/health",
        "/live",
    }

    def _should_skip_logging(self, path: str) -> bool:
        return any(path.startswith(skip_path) for skip_path in self.SKIP_PATHS)

    def _client_ip(self, request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path

        if self._should_skip_logging(path):
            return await call_next(request)

        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            return await self._dispatch_logged(request, call_next, request_id)
        finally:
            request_id_var.reset(token)

    async def _dispatch_logged(self, request: Request, call_next: Callable, request_id: str) -> Response:
        path = request.url.path
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Request failed",
                extra={
                    "method": request.method,
                    "path": path,
                    "client_ip": self._client_ip(request),
                    "duration_ms": round(duration_ms, 2),
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-ID"] = request_id

        log_data = {
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "client_ip": self._client_ip(request),
        }

        if response.status_code >= 500:
            logger.error("Request completed with server error", extra=log_data)
        elif response.status_code >= 400:
            logger.warning("Request completed with client error", extra=log_data)
        elif duration_ms > 1000:
            logger.warning("Slow request completed", extra=log_data)
        else:
            logger.info("Request completed", extra=log_data)

        return response
