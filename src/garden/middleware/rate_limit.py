import time
from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

log = structlog.get_logger()


@dataclass(frozen=True)
class RateLimitRule:
    """A sliding-window budget for every request under ``path``.

    ``key`` is ``"ip"`` for unauthenticated callers (partner webhooks) or
    ``"user"`` for member routes, which fall back to the IP before auth runs.
    """

    path: str
    limit: int
    window: int
    key: str = "user"
    method: Optional[str] = None

    def matches(self, path: str, method: str) -> bool:
        if not path.startswith(self.path):
            return False
        return self.method is None or self.method.upper() == method.upper()


# First matching rule wins, so the Stripe rule must precede the generic webhook one.
RATE_LIMIT_RULES: list[RateLimitRule] = [
    RateLimitRule(path="/api/v1/webhooks/stripe", limit=300, window=60, key="ip"),
    RateLimitRule(path="/api/v1/webhooks", limit=60, window=60, key="ip"),
    RateLimitRule(path="/api/v1/checkin", limit=10, window=3600, method="POST"),
    RateLimitRule(path="/api/v1/purchases/checkout", limit=5, window=3600),
    RateLimitRule(path="/api/v1/locks", limit=30, window=60, method="POST"),
    RateLimitRule(path="/api/v1/admin", limit=30, window=60),
]

SKIP_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}


@dataclass
class RateLimitResult:
    """Holds the outcome of a sliding-window rate limit check."""

    current_count: int
    limit: int
    window: int
    reset_at: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.current_count)

    @property
    def exceeded(self) -> bool:
        return self.current_count > self.limit


def _find_matching_rule(path: str, method: str) -> Optional[RateLimitRule]:
    return next((rule for rule in RATE_LIMIT_RULES if rule.matches(path, method)), None)


def get_client_ip(request: Request) -> str:
    """Client IP after ``ProxyHeadersMiddleware`` has applied trusted X-Forwarded-For hops."""
    return request.client.host if request.client else "unknown"


def _resolve_identifier(request: Request, rule: RateLimitRule) -> str:
    if rule.key == "ip":
        return get_client_ip(request)
    return getattr(request.state, "user_id", None) or get_client_ip(request)


async def _check_rate_limit(redis, redis_key: str, rule: RateLimitRule, request: Request) -> RateLimitResult:
    """Record this hit in a sorted set and count hits inside the window."""
    now = int(time.time())

    pipe = redis.pipeline()
    pipe.zremrangebyscore(redis_key, 0, now - rule.window)
    pipe.zadd(redis_key, {f"{now}:{id(request)}": now})
    pipe.zcard(redis_key)
    pipe.expire(redis_key, rule.window)
    results = await pipe.execute()

    return RateLimitResult(
        current_count=results[2],
        limit=rule.limit,
        window=rule.window,
        reset_at=now + rule.window,
    )


def _add_rate_limit_headers(response: Response, result: RateLimitResult) -> None:
    response.headers["X-RateLimit-Limit"] = str(result.limit)
    response.headers["X-RateLimit-Remaining"] = str(result.remaining)
    response.headers["X-RateLimit-Reset"] = str(result.reset_at)


def _build_429_response(result: RateLimitResult) -> JSONResponse:
    response = JSONResponse(
        status_code=429,
        content={"detail": "Too many requests. Please try again later."},
    )
    _add_rate_limit_headers(response, result)
    response.headers["Retry-After"] = str(result.window)
    return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-backed sliding window rate limiter. Fails open without Redis."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in SKIP_PATHS:
            return await call_next(request)

        rule = _find_matching_rule(request.url.path, request.method)
        if rule is None:
            return await call_next(request)

        redis = getattr(request.app.state, "redis", None)
        if redis is None:
            return await call_next(request)

        identifier = _resolve_identifier(request, rule)
        redis_key = f"ratelimit:{rule.path}:{identifier}"

        try:
            result = await _check_rate_limit(redis, redis_key, rule, request)
        except Exception as exc:
            log.warning("rate_limit_redis_error", error=str(exc), path=request.url.path)
            return await call_next(request)

        if result.exceeded:
            log.warning(
                "rate_limit_exceeded",
                path=request.url.path,
                identifier=identifier,
                limit=result.limit,
                count=result.current_count,
            )
            return _build_429_response(result)

        response = await call_next(request)
        _add_rate_limit_headers(response, result)
        return response
