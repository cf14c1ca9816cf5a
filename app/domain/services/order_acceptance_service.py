"""
Order Acceptance Service - the push pipeline.

    decode envelope -> dedup gate (stop on duplicate) -> commit coordinator -> result

Commit conflicts are retried in-process with capped exponential backoff,
re-running the whole transaction, before the result is handed back for the
channel to redeliver.
"""
import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.exceptions import (
    AppException,
    CommitConflictError,
    DuplicateEventError,
    MalformedEnvelopeError,
    UnknownCustomerError,
    UnsupportedEventTypeError,
)
from app.core.logging import event_context, get_logger
from app.domain.envelope import OrderEvent, decode_envelope
from app.domain.services.commit_coordinator import CommitOutcome, OrderCommitCoordinator
from app.domain.services.dedup_service import DeduplicationGate, DedupStatus

logger = get_logger(__name__)


class ProcessingStatus(str, Enum):
    COMMITTED = "committed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    MALFORMED_ENVELOPE = "malformed_envelope"
    UNKNOWN_CUSTOMER = "unknown_customer"
    COMMIT_CONFLICT = "commit_conflict"


@dataclass(frozen=True)
class ProcessingResult:
    status: ProcessingStatus
    event_id: str | None = None
    commit: CommitOutcome | None = None
    error: AppException | None = None


def _calculate_backoff_ms(attempt: int, *, base_ms: int, max_ms: int) -> int:
    """base_ms * 2**attempt, capped at max_ms"""
    if attempt < 0 or base_ms <= 0:
        return 0
    # 2**attempt גדל מהר; אין צורך לחשב מעבר לתקרה
    if attempt >= max_ms.bit_length():
        return max_ms
    return min(base_ms * (1 << attempt), max_ms)


class OrderAcceptanceService:
    """Runs one delivery through the pipeline"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        coordinator: OrderCommitCoordinator | None = None,
        dedup_gate: DeduplicationGate | None = None,
        retry_attempts: int | None = None,
    ):
        self.coordinator = coordinator or OrderCommitCoordinator(session_factory)
        self.dedup_gate = dedup_gate or DeduplicationGate(session_factory)
        if retry_attempts is None:
            retry_attempts = settings.COMMIT_RETRY_ATTEMPTS
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        self.retry_attempts = retry_attempts

    async def process_envelope(self, raw: bytes | str | Mapping[str, Any]) -> ProcessingResult:
        """Decode and process one push envelope. Never raises for event-level failures."""
        try:
            event = decode_envelope(raw)
        except MalformedEnvelopeError as e:
            return ProcessingResult(ProcessingStatus.MALFORMED_ENVELOPE, event_id=e.event_id, error=e)
        except UnsupportedEventTypeError as e:
            return ProcessingResult(ProcessingStatus.IGNORED, event_id=e.event_id, error=e)

        return await self.process_event(event)

    async def process_event(self, event: OrderEvent) -> ProcessingResult:
        with event_context(event.event_id):
            if await self._is_known_duplicate(event.event_id):
                return ProcessingResult(ProcessingStatus.DUPLICATE, event_id=event.event_id)
            return await self._commit_with_retry(event)

    async def _is_known_duplicate(self, event_id: str) -> bool:
        try:
            return await self.dedup_gate.check(event_id) == DedupStatus.DUPLICATE
        except DBAPIError:
            # הבדיקה המקדימה היא אופטימיזציה בלבד; ה-commit עדיין מוגן ע"י ה-primary key
            logger.warning("Dedup pre-check failed, continuing to commit", exc_info=True)
            return False

    async def _commit_with_retry(self, event: OrderEvent) -> ProcessingResult:
        last_error: CommitConflictError | None = None

        for attempt in range(self.retry_attempts):
            try:
                outcome = await self.coordinator.commit(event)
            except DuplicateEventError as e:
                return ProcessingResult(ProcessingStatus.DUPLICATE, event_id=event.event_id, error=e)
            except UnknownCustomerError as e:
                return ProcessingResult(ProcessingStatus.UNKNOWN_CUSTOMER, event_id=event.event_id, error=e)
            except CommitConflictError as e:
                last_error = e
                if attempt + 1 < self.retry_attempts:
                    delay_ms = _calculate_backoff_ms(
                        attempt,
                        base_ms=settings.COMMIT_RETRY_BASE_MS,
                        max_ms=settings.COMMIT_RETRY_MAX_MS,
                    )
                    logger.warning(
                        "Commit conflict, retrying",
                        extra_data={"attempt": attempt + 1, "delay_ms": delay_ms, "reason": e.reason},
                    )
                    await asyncio.sleep(delay_ms / 1000)
                continue

            return ProcessingResult(ProcessingStatus.COMMITTED, event_id=event.event_id, commit=outcome)

        return ProcessingResult(ProcessingStatus.COMMIT_CONFLICT, event_id=event.event_id, error=last_error)
