"""
Outcome Publisher - relay side of the transactional outbox.

Outcome events are written by the commit coordinator with published=False.
The relay reads them in creation order, publishes each one to the Redis
channel named by its topic, and marks it published. A failed publish leaves
the event pending for the next run, so downstream consumers may see the same
outcome event more than once and should dedup on its event_id.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import List

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.db.models.outcome_event import OutcomeEvent

logger = get_logger(__name__)


class OutcomePublisher:
    """Publishes committed outcome events that were not relayed yet"""

    def __init__(self, db: AsyncSession, redis: aioredis.Redis):
        self.db = db
        self.redis = redis

    async def get_unpublished(self, limit: int = 100) -> List[OutcomeEvent]:
        """Pending outcome events, oldest first"""
        result = await self.db.execute(
            select(OutcomeEvent)
            .where(OutcomeEvent.published.is_(False))
            .order_by(OutcomeEvent.timestamp, OutcomeEvent.event_id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def publish(self, event: OutcomeEvent) -> bool:
        """Publish one event; returns False (event stays pending) if Redis fails"""
        try:
            await self.redis.publish(event.topic, json.dumps(event.to_message()))
        except RedisError as e:
            logger.error(
                "Failed to publish outcome event",
                extra_data={"outcome_event_id": event.event_id, "topic": event.topic, "error": str(e)},
            )
            return False

        event.published = True
        event.published_at = datetime.now(timezone.utc)
        # commit לכל אירוע: כשל בהמשך הסבב לא יגרום לפרסום חוזר של מה שכבר נשלח
        await self.db.commit()
        return True

    async def publish_pending(self, limit: int = 100) -> dict[str, int]:
        """Publish one batch of pending events"""
        events = await self.get_unpublished(limit)
        published = 0
        failed = 0
        for event in events:
            if await self.publish(event):
                published += 1
            else:
                failed += 1

        if events:
            logger.info(
                "Outcome events relayed",
                extra_data={"published": published, "failed": failed},
            )
        return {"published": published, "failed": failed}
