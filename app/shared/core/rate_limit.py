"""
Rate Limiting for Assetline

Provides API rate limiting using slowapi (built on the limits library).
Analytics queries fan out over every asset a user owns, so they are the
routes worth protecting.
"""

import hashlib
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

from app.shared.core.config import get_settings
from app.shared.core.responses import error_response

logger = structlog.get_logger()

def context_aware_key(request: Request) -> str:
    """
    Identifies the requester for rate limiting.
    1. Uses user_id if auth already ran.
    2. Falls back to a hash of the bearer token (no decoding, forged subs can't share a bucket).
    3. Falls back to remote IP.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        token_hash = hashlib.sha256(token.encode()).hexdigest()[:16]
        return f"token:{token_hash}"

    return get_remote_address(request)

_limiter = None

def get_limiter() -> Limiter:
    """Lazy initialization of the Limiter instance."""
    global _limiter
    if _limiter is None:
        settings = get_settings()
        _limiter = Limiter(
            key_func=context_aware_key,
            storage_uri="memory://",
            strategy="fixed-window",
            enabled=settings.RATELIMIT_ENABLED and not settings.TESTING,
        )
    return _limiter

def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the standard error envelope, keeping slowapi's X-RateLimit headers."""
    logger.warning("rate_limit_exceeded", path=request.url.path, limit=exc.detail)
    response = error_response(429, "Too many requests, please try again later.")
    view_rate_limit = getattr(request.state, "view_rate_limit", None)
    if view_rate_limit is not None:
        response = request.app.state.limiter._inject_headers(response, view_rate_limit)
    return response

def setup_rate_limiting(app: FastAPI) -> None:
    """
    Configure rate limiting for the FastAPI application.
    """
    app.state.limiter = get_limiter()
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    logger.info("rate_limiting_configured")

def rate_limit(limit: str | None = None):
    """Decorator to apply rate limiting to an endpoint. The route must accept `request: Request`."""
    settings = get_settings()
    if settings.TESTING:
        return lambda x: x
    return get_limiter().limit(limit or settings.ANALYTICS_RATE_LIMIT)
