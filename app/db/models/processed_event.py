"""
Processed Event Model - idempotency marker per inbound event.

קיום רשומה עבור event_id הוא מקור האמת היחיד ל"כבר טופל".
הרשומה נכתבת באותה טרנזקציה כמו עדכון הלקוח, ולעולם לא מתעדכנת או נמחקת.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String

from app.db.database import Base


class ProcessedEvent(Base):
    """Dedup marker - an inbound event id that was fully processed"""

    __tablename__ = "processed_events"

    event_id = Column(String(200), primary_key=True)
    processed_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
