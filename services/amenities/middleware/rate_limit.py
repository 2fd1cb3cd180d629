"""
Redis-backed sliding window rate limiter.

Tiers (per minute, see settings):
  - anon:  requests without an X-User-Id header, keyed by client IP
  - auth:  requests carrying X-User-Id, keyed by user
  - write: review submissions and community signals (POST/PUT/DELETE
           under /api/reviews), keyed like the two tiers above

Without Redis every request passes through.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from services.amenities.config import settings

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
WRITE_PREFIX = "/api/reviews"
EXEMPT_PATHS = frozenset({"/health"})
WINDOW_S = 60.0


def _get_rate_limit(request: Request, is_authenticated: bool) -> tuple[int, str]:
    """Return (limit_per_min, tier_name) for the request."""
    if request.method in WRITE_METHODS and request.url.path.startswith(WRITE_PREFIX):
        return settings.rate_limit_write_per_min, "write"
    if is_authenticated:
        return settings.rate_limit_auth_per_min, "auth"
    return settings.rate_limit_anon_per_min, "anon"


def _get_client_key(request: Request) -> tuple[str, bool]:
    user_id = request.headers.get("x-user-id", "").strip()
    if user_id:
        return f"user:{user_id}", True
    client_ip = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
    return f"ip:{client_ip}", False


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding window rate limiter backed by Redis sorted sets."""

    def __init__(self, app, redis_client=None):
        super().__init__(app)
        self.redis = redis_client

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXEMPT_PATHS or self.redis is None:
            return await call_next(request)

        client_key, is_authenticated = _get_client_key(request)
        limit, tier = _get_rate_limit(request, is_authenticated)
        window_key = f"ratelimit:{tier}:{client_key}"

        now = time.time()
        pipe = self.redis.pipeline()
        pipe.zremrangebyscore(window_key, 0, now - WINDOW_S)
        pipe.zcard(window_key)
        pipe.zadd(window_key, {f"{now}:{id(request)}": now})
        pipe.expire(window_key, int(WINDOW_S * 2))
        results = await pipe.execute()
        current_count = results[1]

        headers = {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(max(0, limit - current_count - 1)),
            "X-RateLimit-Reset": str(int(now + WINDOW_S)),
        }

        if current_count >= limit:
            headers["Retry-After"] = str(int(WINDOW_S))
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": {
                        "code": "RATE_LIMITED",
                        "message": f"Rate limit exceeded. Max {limit} requests per minute for {tier} tier.",
                    },
                    "requestId": getattr(request.state, "request_id", ""),
                },
                headers=headers,
            )

        response = await call_next(request)
        for key, value in headers.items():
            response.headers[key] = value
        return response
