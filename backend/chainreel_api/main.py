"""
ChainReel Backend API

Main FastAPI application entry point.
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text

from chainreel_api.api import api_router
from chainreel_api.core.config import get_settings
from chainreel_api.core.database import async_engine, create_all_tables
from chainreel_api.core.redis import check_redis_health, close_connections
from chainreel_api.core.storage import get_generated_root
from chainreel_api.models import GeneratedVideo  # noqa: F401  registers the table

# Load settings
settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("chainreel.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_all_tables()
    get_generated_root()
    if not settings.provider_api_key:
        logger.warning("PROVIDER_API_KEY is not set; generation requests will be refused")
    yield
    await close_connections()
    await async_engine.dispose()


app = FastAPI(
    title="ChainReel API",
    description="Long-form video generation by chaining provider segments",
    version=settings.version,
    lifespan=lifespan,
)


# Request body size limit middleware
@app.middleware("http")
async def limit_request_body_size(request: Request, call_next):
    """
    Middleware to enforce maximum request body size.

    Seed images arrive base64-encoded in JSON, so this bounds them too.
    """
    content_length = request.headers.get("content-length")

    if content_length and content_length.isdigit():
        if int(content_length) > settings.max_upload_size:
            return JSONResponse(
                status_code=413,
                content={
                    "error": "request_entity_too_large",
                    "message": f"Request body too large. Maximum size: {settings.max_upload_size} bytes ({settings.max_upload_size // (1024 * 1024)}MB)",
                    "max_size_bytes": settings.max_upload_size,
                },
            )

    return await call_next(request)


# CORS configuration (loaded from environment)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Chain-Session"],
)

# Include API routes
app.include_router(api_router, prefix="/api")

# Generated videos are served straight from storage
app.mount(
    "/generated",
    StaticFiles(directory=str(get_generated_root(create=False)), check_dir=False),
    name="generated",
)


@app.get("/")
async def root():
    """Root endpoint - API info."""
    return {
        "name": settings.app_name,
        "version": settings.version,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker/orchestration.

    Checks the health of:
    - Database connection
    - Redis connection
    """
    checks = {}
    healthy = True

    try:
        async with async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = {"status": "healthy"}
    except Exception as e:
        checks["database"] = {"status": "unhealthy", "error": str(e)}
        healthy = False

    redis_status = check_redis_health()
    if redis_status.healthy:
        checks["redis"] = {
            "status": "healthy",
            "latency_ms": redis_status.latency_ms,
        }
    else:
        checks["redis"] = {
            "status": "unhealthy",
            "error": redis_status.error,
        }
        healthy = False

    checks["provider"] = {
        "configured": bool(settings.provider_api_key),
        "base_url": settings.provider_base_url,
    }

    return {
        "status": "healthy" if healthy else "unhealthy",
        "checks": checks,
        "version": settings.version,
    }
