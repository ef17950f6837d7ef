"""
Redis-backed sliding window rate limiter.

One tier: settings.rate_limit_requests per settings.rate_limit_window_s
(25 per 3 minutes by default) per client IP. /health is exempt.

Without Redis every request passes through.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from services.api.config import settings

EXEMPT_PATHS = ("/health",)


def _get_client_key(request: Request) -> str:
    """Identify the caller: CDN header, then proxy headers, then the socket peer."""
    cf_ip = request.headers.get("cf-connecting-ip")
    if cf_ip:
        return f"ip:{cf_ip.strip()}"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return f"ip:{real_ip.strip()}"
    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding window rate limiter backed by Redis sorted sets."""

    def __init__(self, app, redis_client=None, limit: int | None = None, window_s: int | None = None):
        super().__init__(app)
        self.redis = redis_client
        self.limit = limit if limit is not None else settings.rate_limit_requests
        self.window_s = window_s if window_s is not None else settings.rate_limit_window_s

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        if self.redis is None:
            return await call_next(request)

        window_key = f"ratelimit:{_get_client_key(request)}"
        now = time.time()
        window_start = now - self.window_s

        pipe = self.redis.pipeline()
        # Remove expired entries
        pipe.zremrangebyscore(window_key, 0, window_start)
        # Count current entries
        pipe.zcard(window_key)
        # Add current request
        pipe.zadd(window_key, {f"{now}:{id(request)}": now})
        # Set TTL on the key
        pipe.expire(window_key, self.window_s * 2)
        results = await pipe.execute()

        current_count = results[1]

        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(0, self.limit - current_count - 1)),
            "X-RateLimit-Reset": str(int(now + self.window_s)),
        }

        if current_count >= self.limit:
            headers["Retry-After"] = str(self.window_s)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": {
                        "code": "RATE_LIMITED",
                        "message": (
                            f"Rate limit exceeded. Max {self.limit} requests "
                            f"per {self.window_s} seconds."
                        ),
                    },
                    "requestId": getattr(request.state, "request_id", ""),
                },
                headers=headers,
            )

        response = await call_next(request)
        for key, value in headers.items():
            response.headers[key] = value
        return response
