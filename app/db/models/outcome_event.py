"""
Outcome Event Model - Transactional Outbox for order_checked events
"""
import json
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import BigInteger, Boolean, Column, DateTime, String, Text

from app.db.database import Base


def _as_utc(value: datetime) -> datetime:
    # SQLite מחזיר datetime ללא timezone גם לעמודה עם timezone=True
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OutcomeEvent(Base):
    """Accept/reject decision for one order, waiting to be relayed downstream"""

    __tablename__ = "outcome_events"

    event_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # the inbound event this decision was derived from (1:1)
    source_event_id = Column(String(200), unique=True, nullable=False)

    topic = Column(String(100), nullable=False)
    event_type = Column("type", String(50), nullable=False)
    timestamp = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    customer_id = Column(BigInteger, nullable=False, index=True)
    order_id = Column(String(200), nullable=False)
    accepted = Column(Boolean, nullable=False)
    body = Column(Text, nullable=False)

    # Relay bookkeeping
    published = Column(Boolean, nullable=False, default=False, index=True)
    published_at = Column(DateTime(timezone=True), nullable=True)

    @staticmethod
    def build_body(customer_id: int, order_id: str, accepted: bool) -> str:
        """JSON string stored in `body` and sent downstream"""
        return json.dumps(
            {"customer_id": customer_id, "order_id": order_id, "accepted": accepted}
        )

    def to_message(self) -> dict[str, Any]:
        """The outbound document as published to the topic"""
        return {
            "event_id": self.event_id,
            "topic": self.topic,
            "type": self.event_type,
            "timestamp": _as_utc(self.timestamp).isoformat(),
            "body": self.body,
        }
