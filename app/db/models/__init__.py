"""
Database Models
"""
from app.db.models.customer_account import CustomerAccount
from app.db.models.processed_event import ProcessedEvent
from app.db.models.outcome_event import OutcomeEvent

__all__ = [
    "CustomerAccount",
    "ProcessedEvent",
    "OutcomeEvent",
]
