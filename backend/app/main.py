"""
GoalPulse API
FastAPI backend exposing read-only goal risk, workload and dashboard
analytics over a per-organization snapshot (Postgres or JSON data file).
"""
import time
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import ANALYTICS_VERSION, AppSettings
from app.services.logging_config import setup_logging
from app.services.middleware import RequestTimingMiddleware
from app.services.perf_monitor import tracker as perf_tracker

settings = AppSettings.from_env()
setup_logging(level=settings.log_level, json_output=settings.json_logs)
logger = logging.getLogger("goalpulse-api")

_PROCESS_START = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.settings = getattr(app.state, "settings", None) or settings
    active = app.state.settings

    if active.storage_backend == "json":
        from app.services.entity_store import InMemoryEntityStore
        app.state.entity_store = InMemoryEntityStore.from_json_file(active.data_file)
        logger.info(f"Entity store: JSON file {active.data_file}")
    else:
        from app.db import init_db
        try:
            await init_db()
        except Exception as e:
            logger.warning(f"Table init skipped (DB not available): {e}")
        logger.info("Entity store: SQL")

    if not active.enable_smart_analytics:
        logger.warning("ENABLE_SMART_ANALYTICS=false — analytics endpoints will answer 403")
    yield

    from app.db import engine
    await engine.dispose()


app = FastAPI(
    title="GoalPulse Analytics API",
    version=ANALYTICS_VERSION,
    description="Goal risk scoring, workload analysis and role-scoped dashboards",
    lifespan=lifespan,
)
app.state.settings = settings


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to every response."""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
)
app.add_middleware(SecurityHeadersMiddleware)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

# Routers
from app.api.analytics_routes import router as analytics_router
from app.api.dashboard_routes import router as dashboard_router

app.include_router(analytics_router)
app.include_router(dashboard_router)


@app.get("/health")
async def health_check(request: Request):
    active = request.app.state.settings
    return {
        "status": "active",
        "version": ANALYTICS_VERSION,
        "storage_backend": active.storage_backend,
        "analytics_enabled": active.enable_smart_analytics,
    }


@app.get("/metrics")
async def metrics():
    """
    Report-generation metrics from the in-process PerformanceTracker:
    counts and average durations per report, slowest report, error counts.
    """
    snapshot = perf_tracker.get_metrics()
    return {
        "uptime_seconds": round(time.monotonic() - _PROCESS_START, 1),
        **snapshot,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
