"""
Customer Service (async) - Main FastAPI Application
"""
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import setup_logging, get_logger
from app.core.middleware import setup_middleware, setup_exception_handlers
from app.api.routes import router as api_router
from app.db.database import Base, dispose_engine, get_engine

# Setup logging before anything else
setup_logging(
    level="DEBUG" if settings.DEBUG else "INFO",
    json_format=not settings.DEBUG,
    app_name=settings.SERVICE_NAME
)

logger = get_logger(__name__)


_OPENAPI_TAGS = [
    {
        "name": "webhooks",
        "description": "Push deliveries of order events: credit check and order_checked outcome.",
    },
    {"name": "Health", "description": "Liveness and readiness probes."},
]


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description=(
        "Order acceptance worker: consumes order_create events delivered at-least-once, "
        "checks them against the customer's credit limit and records each decision exactly once."
    ),
    openapi_tags=_OPENAPI_TAGS,
)

setup_middleware(app)
setup_exception_handlers(app)

app.include_router(api_router, prefix="/api")


@app.on_event("startup")
async def startup() -> None:
    """Initialize database tables on startup"""
    logger.info("Starting application", extra_data={"app_name": settings.APP_NAME})
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")


@app.on_event("shutdown")
async def shutdown() -> None:
    """Release the shared Redis client and database pool"""
    logger.info("Shutting down application")
    from app.core.redis_client import close_redis
    await close_redis()
    await dispose_engine()


@app.get(
    "/health",
    summary="Liveness probe",
    description="The process is up and answering. Does not touch dependencies.",
    tags=["Health"],
)
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


@app.get(
    "/health/ready",
    summary="Readiness probe",
    description="Checks DB, Redis and the Celery broker; 503 with status=degraded if one is down.",
    tags=["Health"],
)
async def readiness_check() -> JSONResponse:
    from app.domain.services.health_service import check_readiness

    result = await check_readiness()
    status_code = 200 if result["status"] == "healthy" else 503
    return JSONResponse(content=result, status_code=status_code)
