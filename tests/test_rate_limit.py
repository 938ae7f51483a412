"""Tests for rate limiting and security headers middleware."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from garden.main import app
from garden.middleware.rate_limit import RATE_LIMIT_RULES, RateLimitRule, _find_matching_rule


def _set_mock_redis(mock_redis):
    """Assign a mock Redis instance to app.state and return the previous value."""
    previous = getattr(app.state, "redis", None)
    app.state.redis = mock_redis
    return previous


def _restore_redis(previous):
    """Restore app.state.redis to its previous value."""
    if previous is None:
        try:
            del app.state.redis
        except AttributeError:
            pass
    else:
        app.state.redis = previous


def _mock_redis_with_count(count):
    mock_pipe = MagicMock()
    mock_pipe.zremrangebyscore = MagicMock(return_value=mock_pipe)
    mock_pipe.zadd = MagicMock(return_value=mock_pipe)
    mock_pipe.zcard = MagicMock(return_value=mock_pipe)
    mock_pipe.expire = MagicMock(return_value=mock_pipe)
    # Pipeline results: [zremrangebyscore, zadd, zcard, expire]
    mock_pipe.execute = AsyncMock(return_value=[0, True, count, True])

    mock_redis = AsyncMock()
    mock_redis.pipeline = MagicMock(return_value=mock_pipe)
    return mock_redis


@pytest.mark.asyncio
async def test_security_headers():
    """Verify security headers are present on the /health response."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "X-XSS-Protection" not in response.headers
    assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "camera=()" in response.headers["Permissions-Policy"]
    assert "Strict-Transport-Security" not in response.headers


@pytest.mark.asyncio
async def test_api_responses_are_not_cached():
    """JSON API routes get a locked-down CSP and Cache-Control: no-store."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/tiers")

    assert response.status_code == 200
    assert response.headers["Content-Security-Policy"] == "default-src 'none'; frame-ancestors 'none'"
    assert response.headers["Cache-Control"] == "no-store"


@pytest.mark.asyncio
async def test_health_not_rate_limited():
    """/health endpoint should never receive rate limit headers."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert "X-RateLimit-Limit" not in response.headers
    assert "X-RateLimit-Remaining" not in response.headers
    assert "X-RateLimit-Reset" not in response.headers


def test_rule_matching_order_and_methods():
    assert _find_matching_rule("/api/v1/webhooks/stripe", "POST").limit == 300
    assert _find_matching_rule("/api/v1/webhooks/affiliate-purchase", "POST").limit == 60
    assert _find_matching_rule("/api/v1/checkin", "POST").window == 3600
    assert _find_matching_rule("/api/v1/checkin/streak", "GET") is None
    assert _find_matching_rule("/api/v1/locks", "GET") is None
    assert _find_matching_rule("/api/v1/tiers", "GET") is None


@pytest.mark.asyncio
async def test_rate_limit_headers():
    """Verify X-RateLimit-* headers are returned for rate-limited endpoints."""
    mock_redis = _mock_redis_with_count(1)

    @app.get("/api/v1/ratelimit-check")
    async def _ratelimit_stub():
        return {"ok": True}

    original_rules = RATE_LIMIT_RULES.copy()
    RATE_LIMIT_RULES.append(
        RateLimitRule(path="/api/v1/ratelimit-check", limit=100, window=60, key="ip"),
    )

    previous = _set_mock_redis(mock_redis)
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/ratelimit-check")

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "100"
        assert response.headers["X-RateLimit-Remaining"] == "99"
        assert "X-RateLimit-Reset" in response.headers
    finally:
        _restore_redis(previous)
        RATE_LIMIT_RULES.clear()
        RATE_LIMIT_RULES.extend(original_rules)


@pytest.mark.asyncio
async def test_webhook_flood_rejected():
    """Exceeding the webhook limit returns 429 before the handler runs."""
    mock_redis = _mock_redis_with_count(61)

    previous = _set_mock_redis(mock_redis)
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post("/api/v1/webhooks/nctr-live", json={})

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        assert response.headers["X-RateLimit-Remaining"] == "0"
    finally:
        _restore_redis(previous)


@pytest.mark.asyncio
async def test_rate_limit_skipped_on_redis_error():
    """When Redis is unavailable the request should still succeed (fail-open)."""
    mock_redis = AsyncMock()
    mock_redis.pipeline = MagicMock(side_effect=ConnectionError("Redis down"))

    previous = _set_mock_redis(mock_redis)
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/admin/loyalize/sync")

        # Reaches routing (405: the route is POST-only) instead of a 429/500.
        assert response.status_code == 405
        assert "X-RateLimit-Limit" not in response.headers
    finally:
        _restore_redis(previous)


@pytest.mark.asyncio
async def test_health_reports_redis_state():
    mock_redis = AsyncMock()
    mock_redis.ping.return_value = True

    previous = _set_mock_redis(mock_redis)
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health")
    finally:
        _restore_redis(previous)

    assert response.json() == {"status": "healthy", "redis": "ok"}
