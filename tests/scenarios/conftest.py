"""
Fixtures ו-helpers לבדיקות תרחיש מקצה לקצה.

מספק:
- engine על קובץ SQLite (כל session מקבל חיבור משלו, כדי שמשלוחים מקבילים
  באמת יתחרו על אותה שורה)
- פונקציות אימות DB (קרדיט, markers, outcome events)
"""
import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.db.database import Base
from app.db.models.customer_account import CustomerAccount
from app.db.models.outcome_event import OutcomeEvent
from app.db.models.processed_event import ProcessedEvent


@pytest.fixture
async def file_engine(tmp_path):
    """Engine on a file database with a real connection pool"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'scenarios.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def file_session_factory(file_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def seed_customer(file_session_factory):
    """יצירת חשבון לקוח במסד הקובץ"""
    async def _seed(customer_id: int = 1, credit: int = 0, limit: int = 1000) -> None:
        async with file_session_factory() as db:
            db.add(CustomerAccount(customer_id=customer_id, credit=credit, limit=limit))
            await db.commit()

    return _seed


# ============================================================================
# פונקציות אימות
# ============================================================================


async def assert_credit(session_factory, customer_id: int, expected: int) -> None:
    """אימות הקרדיט השמור ושהוא לא חורג מהמסגרת"""
    async with session_factory() as db:
        account = (
            await db.execute(select(CustomerAccount).where(CustomerAccount.customer_id == customer_id))
        ).scalar_one()
    assert account.credit == expected, f"credit {account.credit} != {expected}"
    assert account.credit <= account.limit


async def count_markers(session_factory, event_id: str) -> int:
    async with session_factory() as db:
        return (
            await db.execute(
                select(func.count()).select_from(ProcessedEvent).where(ProcessedEvent.event_id == event_id)
            )
        ).scalar_one()


async def count_outcomes(session_factory, source_event_id: str | None = None) -> int:
    query = select(func.count()).select_from(OutcomeEvent)
    if source_event_id is not None:
        query = query.where(OutcomeEvent.source_event_id == source_event_id)
    async with session_factory() as db:
        return (await db.execute(query)).scalar_one()
