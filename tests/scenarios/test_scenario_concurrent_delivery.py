"""
משלוחים מקבילים: אותו אירוע שנשלח כמה פעמים במקביל, ואירועים שונים
לאותו לקוח שמתחרים על אותה שורת קרדיט.

מכסה:
- אותו event_id במקביל: marker אחד, outcome event אחד, קרדיט עודכן פעם אחת
- אירועים שונים במקביל: הקרדיט הוא סכום ההזמנות שהתקבלו, אף עדכון לא הולך לאיבוד
- מסגרת אשראי שמאפשרת רק חלק מההזמנות: לעולם לא חורגים ממנה
"""
import asyncio

import pytest

from app.domain.services.order_acceptance_service import OrderAcceptanceService, ProcessingStatus
from tests.conftest import build_envelope
from tests.scenarios.conftest import assert_credit, count_markers, count_outcomes

# הרבה ניסיונות: ב-SQLite כל commit מקביל נתקל בנעילה או ב-version ישן
_RETRY_ATTEMPTS = 10


def _service(session_factory) -> OrderAcceptanceService:
    return OrderAcceptanceService(session_factory, retry_attempts=_RETRY_ATTEMPTS)


@pytest.mark.scenario
class TestSameEventConcurrently:
    """אותו אירוע נמסר חמש פעמים במקביל"""

    @pytest.mark.asyncio
    async def test_exactly_one_commit(self, file_session_factory, seed_customer):
        await seed_customer(customer_id=1, credit=0, limit=1000)

        results = await asyncio.gather(
            *(_service(file_session_factory).process_envelope(build_envelope(number=300)) for _ in range(5))
        )

        statuses = [r.status for r in results]
        assert statuses.count(ProcessingStatus.COMMITTED) == 1
        assert all(s == ProcessingStatus.DUPLICATE for s in statuses if s != ProcessingStatus.COMMITTED)

        await assert_credit(file_session_factory, 1, 300)
        assert await count_markers(file_session_factory, "evt-1") == 1
        assert await count_outcomes(file_session_factory, "evt-1") == 1

    @pytest.mark.asyncio
    async def test_exactly_one_commit_for_rejected_order(self, file_session_factory, seed_customer):
        """גם החלטת דחייה נרשמת פעם אחת בלבד"""
        await seed_customer(customer_id=1, credit=900, limit=1000)

        results = await asyncio.gather(
            *(_service(file_session_factory).process_envelope(build_envelope(number=300)) for _ in range(3))
        )

        committed = [r for r in results if r.status == ProcessingStatus.COMMITTED]
        assert len(committed) == 1
        assert committed[0].commit.accepted is False

        await assert_credit(file_session_factory, 1, 900)
        assert await count_outcomes(file_session_factory) == 1


@pytest.mark.scenario
class TestDifferentEventsSameCustomer:
    """אירועים שונים לאותו לקוח במקביל"""

    @pytest.mark.asyncio
    async def test_no_lost_updates(self, file_session_factory, seed_customer):
        await seed_customer(customer_id=1, credit=0, limit=1000)

        results = await asyncio.gather(
            *(
                _service(file_session_factory).process_envelope(
                    build_envelope(event_id=f"evt-{i}", order_id=f"order-{i}", number=100)
                )
                for i in range(5)
            )
        )

        assert all(r.status == ProcessingStatus.COMMITTED for r in results)
        assert all(r.commit.accepted for r in results)
        await assert_credit(file_session_factory, 1, 500)
        assert await count_outcomes(file_session_factory) == 5

    @pytest.mark.asyncio
    async def test_limit_is_never_exceeded(self, file_session_factory, seed_customer):
        """מסגרת של 250: רק שתי הזמנות של 100 יכולות להתקבל"""
        await seed_customer(customer_id=1, credit=0, limit=250)

        results = await asyncio.gather(
            *(
                _service(file_session_factory).process_envelope(
                    build_envelope(event_id=f"evt-{i}", order_id=f"order-{i}", number=100)
                )
                for i in range(5)
            )
        )

        assert all(r.status == ProcessingStatus.COMMITTED for r in results)
        accepted = [r for r in results if r.commit.accepted]
        assert len(accepted) == 2
        await assert_credit(file_session_factory, 1, 200)
        assert await count_outcomes(file_session_factory) == 5
