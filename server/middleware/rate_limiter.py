"""
Rate Limiting Middleware
Throttles login, registration and password reset endpoints using slowapi,
keyed by client IP
"""

import os
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "5/minute")
API_RATE_LIMIT = os.getenv("API_RATE_LIMIT", "100/minute")


def create_limiter():
    """Create rate limiter instance backed by Redis when REDIS_URL is set"""
    redis_url = os.getenv("REDIS_URL")

    if redis_url:
        logger.info("Using Redis for rate limiting")
        return Limiter(
            key_func=get_remote_address,
            storage_uri=redis_url,
            default_limits=[API_RATE_LIMIT]
        )

    logger.info("Using in-memory storage for rate limiting")
    return Limiter(
        key_func=get_remote_address,
        default_limits=[API_RATE_LIMIT]
    )


limiter = create_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    Custom rate limit exceeded handler
    Returns structured JSON response with retry information
    """
    retry_after = getattr(exc, "retry_after", None) or 60
    response = JSONResponse(
        status_code=429,
        content={
            "error": True,
            "message": f"Too many requests. Limit: {exc.detail}",
            "status_code": 429,
            "error_code": "RATE_LIMIT_ERROR",
            "retry_after": retry_after,
        },
        headers={"Retry-After": str(retry_after)}
    )

    client_ip = get_remote_address(request)
    logger.warning(
        f"Rate limit exceeded for {client_ip} on {request.url.path} - "
        f"Limit: {exc.detail}"
    )

    return response


def setup_rate_limiting(app, app_limiter: Limiter = None):
    """Attach a limiter (the module one by default), its 429 handler and the SlowAPI middleware"""
    app.state.limiter = app_limiter or limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)


def auth_rate_limit():
    """Rate limit decorator for login and registration endpoints"""
    return limiter.limit(AUTH_RATE_LIMIT)


def check_rate_limiter_health():
    """Check if rate limiter storage is reachable"""
    try:
        if hasattr(limiter.storage, 'ping'):
            return bool(limiter.storage.ping())
        return True
    except Exception as e:
        logger.error(f"Rate limiter health check failed: {e}")
        return False
