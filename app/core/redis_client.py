"""
Redis Client: async singleton shared by the outcome relay and health checks.

נוצר בקריאה הראשונה ונסגר ב-shutdown של האפליקציה או בסיום task של Celery.
"""
import asyncio
from urllib.parse import urlparse

import redis.asyncio as aioredis

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

_redis_client: aioredis.Redis | None = None
_init_lock = asyncio.Lock()


def _mask_redis_url(url: str) -> str:
    """Hide the password part of a Redis URL for logging"""
    parsed = urlparse(url)
    if parsed.password:
        return url.replace(f":{parsed.password}@", ":****@")
    return url


async def get_redis() -> aioredis.Redis:
    """Return the process-wide Redis client, connecting on first use"""
    global _redis_client
    if _redis_client is not None:
        return _redis_client

    async with _init_lock:
        # request מקבילי אולי כבר יצר את ה-client בזמן שחיכינו לנעילה
        if _redis_client is None:
            client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
            await client.ping()
            _redis_client = client
            logger.info("Redis client initialized", extra_data={"url": _mask_redis_url(settings.REDIS_URL)})
    return _redis_client


async def close_redis() -> None:
    """Close the shared client; the next get_redis() reconnects"""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis connection closed")
