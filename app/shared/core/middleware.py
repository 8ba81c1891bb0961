import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

from app.shared.core.config import get_settings

logger = structlog.get_logger()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds transport and browser hardening headers to every response."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        hsts = "max-age=0" if get_settings().DEBUG else "max-age=31536000; includeSubDomains"
        response.headers["Strict-Transport-Security"] = hsts
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Analytics payloads are per-user; shared caches must not keep them
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "private, no-store"

        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Correlates log lines of one request via X-Request-ID.
    A client-supplied id is reused as-is; it is a tracing aid, not an identity.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )

        response.headers["X-Request-ID"] = request_id
        return response
