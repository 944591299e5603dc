"""
FastAPI application: health, eligibility and admin dispatch endpoints,
with database pool lifecycle management.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from club_dispatch.config import settings
from club_dispatch.db.pool import db_pool
from club_dispatch.infrastructure.observability.logging import (
    get_logger,
    log_request,
    setup_logging,
)
from club_dispatch.jobs.daily_dispatch_job import daily_dispatch_job
from club_dispatch.routes import admin_dispatch, health, subscriptions

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL, json_output=settings.environment != "development")
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database pool on startup and close it on shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    await db_pool.initialize()
    logger.info("All services initialized successfully", services=["database_pool"])

    yield

    logger.info("Application shutting down")
    await daily_dispatch_job.close()
    await db_pool.close()


app = FastAPI(
    title="Club Session Dispatch",
    description="Subscription eligibility and daily session invite dispatch",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(subscriptions.router)
app.include_router(subscriptions.admin_router)
app.include_router(admin_dispatch.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    log_request(
        request.method,
        request.url.path,
        response.status_code,
        round((time.time() - start_time) * 1000, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
