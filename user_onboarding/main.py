"""
FastAPI application: user-created webhook plus health endpoints.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from user_onboarding.config import settings
from user_onboarding.db.pool import db_pool
from user_onboarding.features.new_user.api.router import router as user_events_router
from user_onboarding.infrastructure.observability.logging import (
    get_logger,
    log_request,
    setup_logging,
)
from user_onboarding.routes import health
from user_onboarding.services.redis_client import fast_redis

setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    startup_tasks = []

    try:
        await db_pool.initialize()
        startup_tasks.append("database_pool")

        await fast_redis.initialize()
        startup_tasks.append("redis")

        logger.info("All services initialized successfully", services=startup_tasks)

    except Exception as e:
        logger.error("Failed to initialize services", error=str(e), completed_tasks=startup_tasks)
        if "redis" in startup_tasks:
            await fast_redis.close()
        if "database_pool" in startup_tasks:
            await db_pool.close()
        raise

    yield

    logger.info("Application shutting down")
    await fast_redis.close()
    await db_pool.close()
    logger.info("All services closed")


app = FastAPI(
    title="User Onboarding",
    description="Accepts user-created events and queues them for onboarding",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(user_events_router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.time() - start_time) * 1000, 2),
    )
    return response
