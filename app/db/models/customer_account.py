"""
Customer Account Model - Credit Tracking
"""
from datetime import datetime, timezone

from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, Integer

from app.db.database import Base


class CustomerAccount(Base):
    """Running credit and credit ceiling per customer"""

    __tablename__ = "customers"

    customer_id = Column(BigInteger, primary_key=True, autoincrement=False)

    credit = Column(BigInteger, nullable=False, default=0)
    limit = Column("credit_limit", BigInteger, nullable=False)

    # מונה גרסה: UPDATE שמבוסס על קריאה ישנה נכשל ב-StaleDataError במקום לדרוס עדכון מקבילי
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("credit <= credit_limit", name="ck_customers_credit_within_limit"),
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<CustomerAccount {self.customer_id} credit={self.credit} limit={self.limit}>"
