"""
Deduplication Gate - fast-path check for already processed events.

בדיקה מקדימה בלבד: היא לא בתוך טרנזקציית ה-commit ולכן שני משלוחים מקבילים
של אותו אירוע יכולים שניהם לקבל FRESH. ההגנה האמיתית היא ה-primary key של
processed_events בזמן ה-commit (ראו OrderCommitCoordinator).
"""
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models.processed_event import ProcessedEvent


class DedupStatus(str, Enum):
    FRESH = "fresh"
    DUPLICATE = "duplicate"


async def is_processed(db: AsyncSession, event_id: str) -> bool:
    """True if a dedup marker exists for event_id"""
    result = await db.execute(
        select(ProcessedEvent.event_id).where(ProcessedEvent.event_id == event_id)
    )
    return result.scalar_one_or_none() is not None


class DeduplicationGate:
    """Looks up the processed-event marker before any transactional work"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def check(self, event_id: str) -> DedupStatus:
        async with self.session_factory() as db:
            if await is_processed(db, event_id):
                return DedupStatus.DUPLICATE
        return DedupStatus.FRESH
