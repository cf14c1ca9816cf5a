"""
Domain Services
"""
from app.domain.services.commit_coordinator import OrderCommitCoordinator
from app.domain.services.dedup_service import DeduplicationGate
from app.domain.services.order_acceptance_service import OrderAcceptanceService
from app.domain.services.outcome_publisher import OutcomePublisher

__all__ = [
    "OrderCommitCoordinator",
    "DeduplicationGate",
    "OrderAcceptanceService",
    "OutcomePublisher",
]
