"""
ASGI application: middleware, error rendering, lifecycle hooks and routers.

Run with: uvicorn supplychain_api.api.main:app
"""

from __future__ import annotations

import asyncio
import logging
from uuid import uuid4

import redis.asyncio as aioredis
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from supplychain_api.core.errors import install_exception_handlers
from supplychain_api.core.logging import configure_logging, correlation_id_var, user_id_var
from supplychain_api.core.settings import AppSettings, get_app_settings
from supplychain_api.db.run_migrations import main as run_alembic
from supplychain_api.schemas.common import MessageResponse
from supplychain_api.services.rate_limit import RateLimiter
from supplychain_api.services.realtime import BroadcastManager

from supplychain_api.api.routes.integrations import router as integrations_router
from supplychain_api.api.routes.notifications import router as notifications_router
from supplychain_api.api.routes.realtime import router as realtime_router
from supplychain_api.api.routes.webhooks import router as webhooks_router

configure_logging()
logger = logging.getLogger(__name__)

settings = get_app_settings()

OPENAPI_TAGS = [
    {"name": "Health", "description": "Liveness probe."},
    {"name": "Notifications", "description": "Per-user notifications: list, count, mark read, delete."},
    {"name": "Integrations", "description": "Per-user configuration of Shopify, SAP, IoT and Power BI."},
    {"name": "Webhooks", "description": "Signed inbound events from integration providers."},
    {"name": "WebSocket", "description": "/ws/notifications?token=<JWT> streams notification.created events."},
]


def _cors_credentials(cfg: AppSettings) -> bool:
    if cfg.CORS_ORIGINS == ["*"] and cfg.CORS_ALLOW_CREDENTIALS:
        logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
        return False
    return cfg.CORS_ALLOW_CREDENTIALS


def _build_rate_limiter(cfg: AppSettings) -> RateLimiter:
    if not cfg.REDIS_URL:
        logger.info("REDIS_URL not set; rate limiting disabled")
        return RateLimiter(None)
    return RateLimiter(aioredis.from_url(cfg.REDIS_URL, decode_responses=True))


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=OPENAPI_TAGS,
)

# Per-process collaborators; routes reach them through core.deps
app.state.broadcasts = BroadcastManager()
app.state.rate_limiter = _build_rate_limiter(settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=_cors_credentials(settings),
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)
install_exception_handlers(app)


@app.middleware("http")
async def correlation_middleware(request: Request, call_next):
    """
    Bind a correlation id to the request for log records and error envelopes.

    Taken from X-Correlation-ID or X-Request-ID when the caller sends one and
    echoed back in X-Correlation-ID.
    """
    cid = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    request.state.correlation_id = cid
    cid_token = correlation_id_var.set(cid)
    user_token = user_id_var.set(None)
    logger.info("%s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(cid_token)
        user_id_var.reset(user_token)
    response.headers["X-Correlation-ID"] = cid
    return response


@app.on_event("startup")
async def on_startup() -> None:
    """Bring the schema to head before serving, when RUN_MIGRATIONS_ON_STARTUP is set."""
    if not settings.RUN_MIGRATIONS_ON_STARTUP:
        return
    logger.info("Running Alembic migrations: upgrade head")
    try:
        # env.py runs its own event loop
        await asyncio.to_thread(run_alembic, ["upgrade", "head"])
    except Exception:
        # Keep serving; the database may come up later.
        logger.exception("Migration step failed")
        return
    logger.info("Migrations completed.")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await app.state.rate_limiter.close()


api_v1 = APIRouter(prefix="/api/v1")


# PUBLIC_INTERFACE
@api_v1.get("/health", response_model=MessageResponse, summary="Health Check", tags=["Health"])
def health_check() -> MessageResponse:
    """Liveness probe; does not touch the database."""
    return MessageResponse(message="Healthy")


api_v1.include_router(notifications_router)
api_v1.include_router(integrations_router)
api_v1.include_router(webhooks_router)

app.include_router(api_v1)
app.include_router(realtime_router)
