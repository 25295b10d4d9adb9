"""
Paperly API - Main Application Entry Point

This module initializes and configures the FastAPI application including:
- Database and Redis connections
- Background job scheduler
- Profile cache
- CORS middleware
- API routing
- Health check endpoints
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from paperly.api import api_router
from paperly.core import redis as redis_core
from paperly.core.cache import TTLCache
from paperly.core.config import settings
from paperly.core.database import async_session_maker, close_db, init_db
from paperly.core.redis import close_redis, init_redis
from paperly.core.scheduler import (
    list_registered_jobs,
    pause_job,
    resume_job,
    start_scheduler,
    stop_scheduler,
    trigger_job_manually,
)
from paperly.modules.maintenance.jobs import register_maintenance_jobs

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown of:
    - Redis connection
    - Database connection
    - Background job scheduler
    """
    print(f"Starting Paperly API in {settings.python_env} mode...")

    app.state.profile_cache = TTLCache(settings.profile_cache_ttl_seconds)

    # Redis is optional outside production; live delivery degrades to polling
    try:
        await init_redis()
        print("[OK] Redis connected")
    except Exception as e:
        print(f"[FAIL] Redis connection failed: {e}")
        if settings.is_production:
            raise

    try:
        await init_db()
        print("[OK] Database connected")
    except Exception as e:
        print(f"[FAIL] Database connection failed: {e}")
        if settings.is_production:
            raise

    try:
        register_maintenance_jobs()
        await start_scheduler()
        print("[OK] Background scheduler started")
    except Exception as e:
        print(f"[FAIL] Background scheduler failed to start: {e}")
        if settings.is_production:
            raise

    yield

    print("Shutting down Paperly API...")

    await stop_scheduler()
    print("[OK] Background scheduler stopped")

    await close_redis()
    await close_db()
    print("[OK] Cleanup complete")


app = FastAPI(
    title="Paperly API",
    description="Exam question paper submission, review and payment tracking",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint - API welcome message."""
    return {
        "message": "Welcome to Paperly API",
        "status": "running",
        "environment": settings.python_env,
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict[str, str]:
    """Readiness check endpoint."""
    return {"status": "ready"}


# ============================================
# Debug Endpoints (development only)
# ============================================

if settings.is_development:

    @app.get("/debug/db", tags=["Debug"])
    async def debug_db():
        """Test database connection."""
        try:
            async with async_session_maker() as session:
                result = await session.execute(text("SELECT 1"))
                return {"database": "connected", "result": result.scalar()}
        except Exception as e:
            return {"database": "error", "message": str(e)}

    @app.get("/debug/redis", tags=["Debug"])
    async def debug_redis():
        """Test Redis connection."""
        try:
            if redis_core.redis_client:
                await redis_core.redis_client.ping()
                return {"redis": "connected"}
            return {"redis": "not initialized"}
        except Exception as e:
            return {"redis": "error", "message": str(e)}

    @app.get("/debug/jobs", tags=["Debug"])
    async def list_jobs():
        """List registered background jobs with next run time and pause status."""
        return {"jobs": list_registered_jobs()}

    @app.post("/debug/jobs/{job_id}/trigger", tags=["Debug"])
    async def trigger_job(job_id: str):
        """
        Run a background job immediately, bypassing its schedule.

        Available jobs:
            - cleanup_expired_data

        Raises:
            HTTPException 400: If job_id is not registered.
        """
        try:
            return await trigger_job_manually(job_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    @app.post("/debug/jobs/{job_id}/pause", tags=["Debug"])
    async def pause_job_endpoint(job_id: str):
        """Pause a scheduled job; it stays registered."""
        return {"job_id": job_id, "paused": pause_job(job_id)}

    @app.post("/debug/jobs/{job_id}/resume", tags=["Debug"])
    async def resume_job_endpoint(job_id: str):
        """Resume a paused job."""
        return {"job_id": job_id, "resumed": resume_job(job_id)}
