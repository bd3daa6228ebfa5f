"""
Common HTTP utilities: client IP resolution, middleware, rate-limit handling
and health checks.
"""

import logging
import time
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

import config
from api.metrics import HTTP_REQUESTS_TOTAL

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
UNMATCHED_ENDPOINT = "unmatched"


def get_real_ip(request: Request) -> str:
    """
    Get the real client IP address, respecting X-Forwarded-For header only from trusted proxies.

    Security: X-Forwarded-For is only trusted when the direct client IP is in TRUSTED_PROXIES.
    This prevents callers from spoofing the header to bypass rate limiting.
    """
    client_ip = get_remote_address(request)

    if config.TRUSTED_PROXIES and client_ip in config.TRUSTED_PROXIES:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            # X-Forwarded-For can contain multiple IPs: client, proxy1, proxy2, ...
            return forwarded.split(",")[0].strip()

    return client_ip


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Attach a request ID to every request and response.

    An incoming X-Request-ID is preserved; otherwise a UUID4 is generated.
    The ID is stored on ``request.state.request_id`` for log correlation.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.monotonic()
        response = await call_next(request)
        elapsed = time.monotonic() - start

        response.headers[REQUEST_ID_HEADER] = request_id
        # Route template, never the raw path: unmatched paths share one series
        endpoint = getattr(request.scope.get("route"), "path", UNMATCHED_ENDPOINT)
        HTTP_REQUESTS_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()
        logger.debug(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"in {elapsed:.2f}s [request_id={request_id}]"
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        # Prevent MIME-type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # JSON API only: never render inside frames
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        return response


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded errors with a proper JSON response."""
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "details": str(exc.detail),
        },
        headers={"Retry-After": "60"},
    )


def check_health() -> dict:
    """
    Check that the service can accept uploads.

    Returns a dict with:
        - checks: dict of individual check results
        - healthy: bool indicating overall health
        - status_code: HTTP status code (200 if healthy, 503 if not)
    """
    checks = {
        "access_token": bool(config.get_access_token()),
    }
    if not checks["access_token"]:
        logger.warning("Health check: FACEBOOK_ACCESS_TOKEN is not set")

    healthy = all(checks.values())
    return {
        "checks": checks,
        "healthy": healthy,
        "status_code": 200 if healthy else 503,
    }
