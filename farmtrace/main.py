"""FastAPI application entrypoint — lifespan, routers, middleware."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from farmtrace.config import get_settings
from farmtrace.database import engine
from farmtrace.errors import PipelineError, request_validation_handler
from farmtrace.middleware.logging import RequestLoggingMiddleware, configure_structured_logging
from farmtrace.middleware.rate_limit import RateLimitMiddleware
from farmtrace.routes import admin, auth, customer, farmers, products, retail, transport, warehouse, ws

logger = structlog.get_logger("farmtrace")

SERVICE_VERSION = "0.1.0"


async def _connect_redis(url: str, required: bool) -> Redis | None:
    redis = Redis.from_url(url, decode_responses=True)
    try:
        await redis.ping()
    except (RedisError, OSError) as exc:
        await redis.aclose()
        if required:
            raise
        logger.warning("redis_unavailable", error=str(exc))
        return None
    return redis


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup / shutdown lifecycle.

    Startup:
      1. Initialize structured logging
      2. Verify the database answers
      3. Connect to Redis (optional unless ``redis_required``)

    Shutdown:
      1. Close Redis connection pool
      2. Dispose SQLAlchemy engine
    """
    configure_structured_logging()
    settings = get_settings()
    logger.info("farmtrace_starting", log_level=settings.log_level, live_channel=settings.live_channel)

    try:
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1"))
        app.state.redis = await _connect_redis(settings.redis_url, settings.redis_required)
    except Exception as exc:
        logger.exception("startup_failure", error=str(exc))
        raise

    yield

    logger.info("farmtrace_shutting_down")
    redis = getattr(app.state, "redis", None)
    if redis is not None:
        await redis.aclose()
    await engine.dispose()


async def _run_readiness_checks(app: FastAPI) -> dict[str, dict[str, Any]]:
    checks: dict[str, dict[str, Any]] = {}
    try:
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1"))
        checks["database"] = {"ok": True, "message": "ok"}
    except (SQLAlchemyError, OSError) as exc:
        checks["database"] = {"ok": False, "message": str(exc)}

    redis = getattr(app.state, "redis", None)
    if redis is None:
        required = get_settings().redis_required
        checks["redis"] = {"ok": not required, "message": "not configured"}
    else:
        try:
            await redis.ping()
            checks["redis"] = {"ok": True, "message": "ok"}
        except (RedisError, OSError) as exc:
            checks["redis"] = {"ok": False, "message": str(exc)}
    return checks


async def _pipeline_error_handler(_request: Request, exc: PipelineError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


app = FastAPI(
    title="FarmTrace API",
    description=(
        "Farm-to-customer supply chain tracker that moves harvested products "
        "through transport, warehouse and retail stages and reconstructs "
        "their journey for public tracking."
    ),
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── Middleware ──────────────────────────────────────────────────────────────
app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
app.add_exception_handler(PipelineError, _pipeline_error_handler)  # type: ignore[arg-type]


# ── Health check ────────────────────────────────────────────────────────────
@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Basic health check — verifies the API process is alive."""
    return {
        "status": "ok",
        "service": "farmtrace",
        "version": SERVICE_VERSION,
    }


@app.get("/health/ready", tags=["system"])
async def readiness_check() -> JSONResponse:
    checks = await _run_readiness_checks(app)
    ready = all(check["ok"] for check in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ok" if ready else "degraded", "checks": checks},
    )


# ── Router registration ────────────────────────────────────────────────────
app.include_router(auth.router, prefix="/api/v1")
app.include_router(farmers.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(transport.router, prefix="/api/v1")
app.include_router(warehouse.router, prefix="/api/v1")
app.include_router(retail.router, prefix="/api/v1")
app.include_router(customer.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")
app.include_router(ws.router)
