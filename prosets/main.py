"""
FastAPI application entry point.
Configures routes, middleware, error handlers and lifecycle events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio.client import Redis

from prosets.config import settings
from prosets.database import close_db
from prosets.exceptions import MarketplaceError
from prosets.logging_config import configure_logging
from prosets.redis import RedisClient, get_redis, redis_status

from prosets.api.downloads import router as downloads_router
from prosets.api.payments import router as payments_router
from prosets.api.storage import router as storage_router
from prosets.api.webhooks.stripe import router as stripe_webhook_router
from prosets.api.admin.refunds import router as admin_refunds_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifecycle manager."""
    # Startup
    configure_logging()
    logger.info(f"Starting up {settings.app_name} ({settings.app_env})...")

    if RedisClient.get_client() is None:
        logger.warning("REDIS_URL not set, webhook de-duplication relies on the database only")

    yield

    # Shutdown
    await RedisClient.close()
    await close_db()
    logger.info("Shutting down...")


app = FastAPI(
    title="ProSets",
    description="Digital asset marketplace API",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)


@app.exception_handler(MarketplaceError)
async def marketplace_exception_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "error", "message": exc.detail},
    )


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Internal Server Error"},
    )


origins = list(settings.cors_origins)
if settings.is_development:
    origins.append("*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check(redis: Optional[Redis] = Depends(get_redis)):
    """Health check endpoint. A Redis outage degrades nothing but the event cache."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "env": settings.app_env,
        "redis": await redis_status(redis),
    }


app.include_router(
    downloads_router,
    prefix="/api/downloads",
    tags=["downloads"],
)
app.include_router(
    payments_router,
    prefix="/api/payments",
    tags=["payments"],
)
app.include_router(
    stripe_webhook_router,
    prefix="/api/payments",
    tags=["webhooks"],
)
app.include_router(
    storage_router,
    prefix="/api/storage",
    tags=["storage"],
)
app.include_router(
    admin_refunds_router,
    prefix="/api/admin",
    tags=["admin"],
)
