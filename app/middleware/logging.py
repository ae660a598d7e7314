"""
Request logging middleware.

Assigns each request an id (reusing one from an upstream proxy), stamps the
logging context with it, and writes one access line per request carrying
the authenticated account and, for rejected requests, the error code the
exception handlers produced.
"""

import logging
import time
import uuid
from typing import Callable, FrozenSet, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from repurposer.utils.logging import clear_request_context, set_request_context

logger = logging.getLogger(__name__)

# Logged only when they fail
QUIET_PATHS: FrozenSet[str] = frozenset({
    "/",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/favicon.ico",
    "/health",
    "/health/db",
    "/health/redis",
})


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.headers.get("X-Real-IP"):
        return request.headers["X-Real-IP"].strip()
    return request.client.host if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Adds X-Request-ID and X-Response-Time and logs each request."""

    def __init__(self, app, quiet_paths: Optional[FrozenSet[str]] = None):
        super().__init__(app)
        self.quiet_paths = QUIET_PATHS if quiet_paths is None else quiet_paths

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        set_request_context(request_id=request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            self._log_response(request, response, started)
            return response
        except Exception as exc:
            logger.error(
                "%s %s raised %s",
                request.method,
                request.url.path,
                type(exc).__name__,
                extra=self._fields(request, started),
                exc_info=True,
            )
            raise
        finally:
            clear_request_context()

    def _log_response(self, request: Request, response: Response, started: float) -> None:
        fields = self._fields(request, started)
        response.headers["X-Request-ID"] = request.state.request_id
        response.headers["X-Response-Time"] = f"{fields['duration_ms']:.2f}ms"

        status_code = response.status_code
        if status_code < 400 and request.url.path in self.quiet_paths:
            return
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        fields["http_status"] = status_code
        logger.log(
            level,
            "%s %s %d (%.2fms)",
            request.method,
            request.url.path,
            status_code,
            fields["duration_ms"],
            extra=fields,
        )

    @staticmethod
    def _fields(request: Request, started: float) -> dict:
        return {
            "http_method": request.method,
            "http_path": request.url.path,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            "client_ip": _client_ip(request),
            "account": getattr(request.state, "account_id", "-"),
            "error_code": getattr(request.state, "error_code", None),
        }
