"""
egym-planner FastAPI server main entrypoint.
Handles startup/shutdown, error rendering and API routers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import psutil
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from .. import __version__
from ..config import SETTINGS
from ..db import close_db, get_session, init_db
from ..errors import PlanError
from ..logging_setup import setup_logging
from ..services.plan_generation import drain_pending_jobs
from .routes.plans import router as r_plans
from .routes.profile import router as r_profile


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    try:
        await init_db()
        logging.info("Database initialized")
        logging.info("FastAPI server startup completed")
    except Exception as e:
        logging.exception("FastAPI startup failed: %s", e)
        raise

    yield

    # Shutdown
    try:
        await drain_pending_jobs(timeout=SETTINGS.GENERATION_TIMEOUT_SECONDS)
        await close_db()
        logging.info("FastAPI server shutdown completed")
    except Exception as e:
        logging.exception("FastAPI shutdown failed: %s", e)


app = FastAPI(
    title="egym-planner API",
    description="Weekly workout plan generation",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(PlanError)
async def plan_error_handler(request: Request, exc: PlanError) -> JSONResponse:
    """Render classified errors with their own status and code."""
    if exc.status_code >= 500:
        logging.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc)
    else:
        logging.info("%s %s rejected: %s", request.method, request.url.path, exc.code)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(Exception)
async def global_exc_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler: log and return a generic error response.
    """
    logging.exception("Unhandled error in %s: %s", request.url, exc)
    return JSONResponse(
        {"ok": False, "error": "internal_error", "message": "Internal server error"},
        status_code=500,
    )


async def _database_ok() -> bool:
    try:
        async with get_session()() as s:
            await s.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logging.warning("Database health check failed: %s", e)
        return False


@app.get("/healthz")
async def healthz() -> dict:
    """
    Health check endpoint with system and database status.
    """
    try:
        memory = psutil.virtual_memory()
        cpu_percent = psutil.cpu_percent(interval=0.1)
        db_ok = await _database_ok()

        is_healthy = memory.percent < 90 and cpu_percent < 95 and db_ok

        return {
            "ok": is_healthy,
            "status": "healthy" if is_healthy else "degraded",
            "timestamp": datetime.now(UTC).isoformat(),
            "system": {
                "memory_percent": round(memory.percent, 1),
                "memory_available_mb": round(memory.available / 1024 / 1024, 1),
                "cpu_percent": round(cpu_percent, 1),
            },
            "database": {"ok": db_ok},
        }

    except Exception as e:
        logging.exception("Health check failed: %s", e)
        return {
            "ok": False,
            "status": "error",
            "timestamp": datetime.now(UTC).isoformat(),
            "error": str(e),
        }


@app.get("/")
async def root() -> dict:
    """
    Root endpoint with API information.
    """
    return {
        "ok": True,
        "name": "egym-planner API",
        "version": __version__,
        "description": "LLM-backed weekly workout plan generation",
    }


# Routers for API endpoints
app.include_router(r_plans, prefix="/api/v1", tags=["plans"])
app.include_router(r_profile, prefix="/api/v1", tags=["profile"])
