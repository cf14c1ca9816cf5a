"""
Tests for the dedup gate
"""
from datetime import datetime, timezone

import pytest

from app.db.models.processed_event import ProcessedEvent
from app.domain.services.dedup_service import DeduplicationGate, DedupStatus, is_processed


class TestDeduplicationGate:

    @pytest.mark.unit
    async def test_unknown_event_is_fresh(self, session_factory):
        gate = DeduplicationGate(session_factory)
        assert await gate.check("never-seen") == DedupStatus.FRESH

    @pytest.mark.unit
    async def test_marked_event_is_duplicate(self, session_factory, db_session):
        db_session.add(ProcessedEvent(event_id="seen", processed_at=datetime.now(timezone.utc)))
        await db_session.commit()

        gate = DeduplicationGate(session_factory)

        assert await gate.check("seen") == DedupStatus.DUPLICATE
        assert await gate.check("seen-2") == DedupStatus.FRESH

    @pytest.mark.unit
    async def test_is_processed_uses_exact_match(self, db_session):
        db_session.add(ProcessedEvent(event_id="abc", processed_at=datetime.now(timezone.utc)))
        await db_session.commit()

        assert await is_processed(db_session, "abc") is True
        assert await is_processed(db_session, "ABC") is False
        assert await is_processed(db_session, "ab") is False
