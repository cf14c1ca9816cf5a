"""
שירות בדיקת בריאות: בדיקות תלויות (DB, Redis, Celery broker).

- liveness: האם התהליך חי (ללא בדיקת תלויות)
- readiness: בדיקת כל התלויות שהעיבוד וה-relay צריכים
"""
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.logging import get_logger
from app.core.redis_client import get_redis
from app.db.database import get_session_factory

logger = get_logger(__name__)

_STATUS_HEALTHY = "healthy"
_STATUS_DEGRADED = "degraded"

_CHECK_OK = "ok"

# הודעות שגיאה מסוננות: ללא חשיפת פרטי תשתית
_ERROR_DB = "error: db_unavailable"
_ERROR_REDIS = "error: redis_unavailable"
_ERROR_CELERY = "error: celery_unavailable"


async def _check_db() -> str:
    """בדיקת חיבור למסד הנתונים באמצעות שאילתה קלה."""
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        return _CHECK_OK
    except (SQLAlchemyError, OSError) as e:
        logger.warning("DB readiness check failed", extra_data={"error": str(e)})
        return _ERROR_DB


async def _check_redis() -> str:
    """בדיקת חיבור ל-Redis באמצעות PING."""
    try:
        client = await get_redis()
        await client.ping()
        return _CHECK_OK
    except (RedisError, OSError) as e:
        logger.warning("Redis readiness check failed", extra_data={"error": str(e)})
        return _ERROR_REDIS


async def _check_celery() -> str:
    """ping ל-broker של Celery: בלעדיו ה-relay של outcome events לא רץ."""
    try:
        client = aioredis.from_url(settings.CELERY_BROKER_URL, decode_responses=True)
        try:
            await client.ping()
            return _CHECK_OK
        finally:
            await client.aclose()
    except (RedisError, OSError) as e:
        logger.warning("Celery broker readiness check failed", extra_data={"error": str(e)})
        return _ERROR_CELERY


async def check_readiness() -> dict[str, Any]:
    """
    Readiness of every dependency.

    Returns {"status": "healthy" | "degraded", "db": ..., "redis": ..., "celery": ...}
    where each dependency is "ok" or "error: ...".
    """
    checks = {
        "db": await _check_db(),
        "redis": await _check_redis(),
        "celery": await _check_celery(),
    }

    all_ok = all(v == _CHECK_OK for v in checks.values())
    if not all_ok:
        logger.warning("Readiness check degraded", extra_data=checks)

    return {"status": _STATUS_HEALTHY if all_ok else _STATUS_DEGRADED, **checks}
