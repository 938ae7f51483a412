from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from garden.config import settings
from garden.api.admin import router as admin_router
from garden.api.checkin import router as checkin_router
from garden.api.locks import router as locks_router
from garden.api.portfolio import router as portfolio_router
from garden.api.purchases import router as purchases_router
from garden.api.settings import router as settings_router
from garden.api.webhooks import router as webhooks_router
from garden.middleware.rate_limit import RateLimitMiddleware
from garden.middleware.security import SecurityHeadersMiddleware


def configure_logging(env: str) -> None:
    """Console output in development, one JSON object per line elsewhere."""
    renderer = (
        structlog.dev.ConsoleRenderer() if env == "development" else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(0),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(settings.APP_ENV)
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("starting_up", env=settings.APP_ENV)
    redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        await redis.ping()
        log.info("redis_connected", url=settings.REDIS_URL)
    except Exception as e:
        log.warning("redis_connection_failed", error=str(e))
    app.state.redis = redis

    yield

    # Shutdown
    log.info("shutting_down")
    await redis.aclose()


app = FastAPI(
    title="The Garden",
    lifespan=lifespan,
)

# CORS middleware for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "development" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(RateLimitMiddleware)

# Added last so it wraps everything: rate limits and the free-trial
# allowlist see the real client address.
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.FORWARDED_ALLOW_IPS)


app.include_router(portfolio_router)
app.include_router(locks_router)
app.include_router(checkin_router)
app.include_router(purchases_router)
app.include_router(settings_router)
app.include_router(webhooks_router)
app.include_router(admin_router)


@app.get("/health")
async def health_check(request: Request):
    """Liveness plus Redis reachability; the API still serves without Redis."""
    redis = getattr(request.app.state, "redis", None)
    redis_ok = False
    if redis is not None:
        try:
            redis_ok = bool(await redis.ping())
        except Exception as exc:
            log.warning("health_redis_unreachable", error=str(exc))
    return {"status": "healthy", "redis": "ok" if redis_ok else "unavailable"}
