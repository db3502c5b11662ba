"""
FastAPI application entry point for the CS2 inventory sync service.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from inventory_sync.api.v1.routes import inventory as inventory_router
from inventory_sync.core.config import get_settings
from inventory_sync.core.database import close_db
from inventory_sync.core.exception_handlers import EXCEPTION_HANDLERS
from inventory_sync.core.health import get_health_status
from inventory_sync.core.logging import get_logger, setup_logging
from inventory_sync.core.prometheus_metrics import get_metrics_response
from inventory_sync.core.redis_client import close_redis

setup_logging()

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    logger.info(f"Starting {settings.APP_NAME}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.DEBUG}")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")
    await close_redis()
    await close_db()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.APP_VERSION,
    description="Imports CS2 inventories from Steam and values them against the item catalog",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

allowed_origins = settings.allowed_origins
if "*" in allowed_origins and settings.ENVIRONMENT == "production":
    logger.warning("CORS allow_origins is set to '*' in production! This is a security risk.")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

for exception_type, handler in EXCEPTION_HANDLERS.items():
    app.add_exception_handler(exception_type, handler)


@app.get("/health/live")
async def health_live():
    """Liveness check."""
    return {"status": "alive"}


@app.get("/health/ready")
async def health_ready():
    """
    Readiness check.

    Returns 200 unless a critical dependency (PostgreSQL) is unhealthy.
    """
    health_status = await get_health_status()

    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)
    return health_status


@app.get("/health")
async def health():
    """Detailed health check endpoint."""
    return await get_health_status()


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    metrics_text, content_type = get_metrics_response()
    return Response(content=metrics_text, media_type=content_type)


app.include_router(inventory_router.router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "inventory_sync.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
