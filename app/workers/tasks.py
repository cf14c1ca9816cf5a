"""
Celery Tasks

Worker side of the outcome-event outbox: relays order_checked events that the
commit coordinator stored to Redis pub/sub.
"""
from __future__ import annotations

import asyncio
from contextlib import contextmanager

from app.core.config import settings
from app.core.logging import get_logger, log_async_operation, set_correlation_id
from app.core.redis_client import close_redis, get_redis
from app.db.database import get_task_session
from app.domain.services.outcome_publisher import OutcomePublisher
from app.workers.celery_app import celery_app

logger = get_logger(__name__)


@contextmanager
def get_event_loop():
    """
    Context manager for proper event loop handling in Celery tasks.
    Creates a new event loop and ensures proper cleanup to prevent resource leaks.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        yield loop
    finally:
        try:
            # ה-Redis singleton קשור ל-loop הזה; סוגרים לפני שה-loop נסגר
            loop.run_until_complete(close_redis())
        except Exception as e:
            logger.warning("Failed to close Redis at task end", extra_data={"error": str(e)})
        try:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()


def run_async(coro):
    """Helper to run async code in sync Celery task with proper cleanup"""
    set_correlation_id()

    with get_event_loop() as loop:
        return loop.run_until_complete(coro)


@log_async_operation("publish_outcome_events")
async def _publish_outcome_events(batch_size: int) -> dict[str, int]:
    redis = await get_redis()
    async with get_task_session() as db:
        publisher = OutcomePublisher(db, redis)
        return await publisher.publish_pending(limit=batch_size)


@celery_app.task(name="app.workers.tasks.publish_outcome_events")
def publish_outcome_events(batch_size: int | None = None) -> dict[str, int]:
    """Relay one batch of unpublished outcome events to their topics"""
    return run_async(_publish_outcome_events(batch_size or settings.OUTCOME_PUBLISH_BATCH_SIZE))
