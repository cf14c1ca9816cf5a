"""
Commit Coordinator - Atomic Credit Check with Outcome Event and Dedup Marker

Implements the following as one transaction:
1. Re-read the customer account by customer_id (SELECT ... FOR UPDATE)
2. Evaluate the order against the credit limit
3. If accepted, update the account's credit
4. Insert the outcome event (transactional outbox) and the processed-event marker
5. Commit, or roll everything back

The processed_events primary key is what guarantees exactly-once: when two
deliveries of the same event race past the dedup gate, only one commit can
insert the marker and the other fails with an integrity error that is reported
as a duplicate.
"""
import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import (
    CommitConflictError,
    CommitTimeoutError,
    DuplicateEventError,
    UnknownCustomerError,
)
from app.core.logging import get_logger
from app.db.database import with_transaction
from app.db.models.customer_account import CustomerAccount
from app.db.models.outcome_event import OutcomeEvent
from app.db.models.processed_event import ProcessedEvent
from app.domain.envelope import OrderEvent
from app.domain.services.credit_evaluator import evaluate
from app.domain.services.dedup_service import is_processed

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommitOutcome:
    """What one committed transaction wrote"""

    event_id: str
    outcome_event_id: str
    customer_id: int
    accepted: bool
    # stored credit after the commit (unchanged when rejected)
    credit: int
    limit: int


class OrderCommitCoordinator:
    """Runs the credit check and persists its result atomically"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout_seconds: float | None = None,
    ):
        self.session_factory = session_factory
        if timeout_seconds is None:
            timeout_seconds = settings.COMMIT_TIMEOUT_SECONDS
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.timeout_seconds = timeout_seconds

    async def commit(self, event: OrderEvent) -> CommitOutcome:
        """
        Process one order event inside a single transaction.

        Raises:
            UnknownCustomerError: no account for event.customer_id (terminal)
            DuplicateEventError: the marker for event.event_id already exists
            CommitConflictError: contention, timeout or transient storage failure (retriable)
        """
        try:
            return await asyncio.wait_for(self._commit_once(event), self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise CommitTimeoutError(event.event_id, self.timeout_seconds) from e
        except IntegrityError as e:
            # לוודא שההפרה היא אכן על ה-marker ולא על אילוץ אחר
            if await self._marker_exists(event.event_id):
                raise DuplicateEventError(event.event_id) from e
            raise CommitConflictError(event.event_id, f"integrity violation: {e.orig}") from e
        except StaleDataError as e:
            raise CommitConflictError(event.event_id, "customer account changed concurrently") from e
        except DBAPIError as e:
            raise CommitConflictError(event.event_id, f"storage error: {type(e.orig).__name__}") from e

    async def _commit_once(self, event: OrderEvent) -> CommitOutcome:
        now = datetime.now(timezone.utc)

        async with with_transaction(self.session_factory) as db:
            # 1. Lock the account row; the value read before the transaction (if any) is never reused
            result = await db.execute(
                select(CustomerAccount)
                .where(CustomerAccount.customer_id == event.customer_id)
                .with_for_update()
            )
            account = result.scalar_one_or_none()
            if account is None:
                raise UnknownCustomerError(event.customer_id, event_id=event.event_id)

            # 2. Decide
            decision = evaluate(account.credit, account.limit, event.amount)

            # 3. Apply only when accepted
            if decision.accepted:
                account.credit = decision.new_credit

            # 4. Outcome event + dedup marker
            outcome = OutcomeEvent(
                event_id=str(uuid.uuid4()),
                source_event_id=event.event_id,
                topic=settings.OUTCOME_EVENT_TOPIC,
                event_type=settings.OUTCOME_EVENT_TYPE,
                timestamp=now,
                customer_id=event.customer_id,
                order_id=event.order_id,
                accepted=decision.accepted,
                body=OutcomeEvent.build_body(event.customer_id, event.order_id, decision.accepted),
                published=False,
            )
            db.add(outcome)
            db.add(ProcessedEvent(event_id=event.event_id, processed_at=now))

            credit_after = account.credit
            limit = account.limit
            outcome_event_id = outcome.event_id
        # 5. commit happened on leaving with_transaction

        logger.info(
            "Order checked",
            extra_data={
                "customer_id": event.customer_id,
                "order_id": event.order_id,
                "amount": event.amount,
                "accepted": decision.accepted,
                "credit": credit_after,
                "limit": limit,
                "outcome_event_id": outcome_event_id,
            },
        )

        return CommitOutcome(
            event_id=event.event_id,
            outcome_event_id=outcome_event_id,
            customer_id=event.customer_id,
            accepted=decision.accepted,
            credit=credit_after,
            limit=limit,
        )

    async def _marker_exists(self, event_id: str) -> bool:
        try:
            async with self.session_factory() as db:
                return await is_processed(db, event_id)
        except DBAPIError:
            logger.warning(
                "Could not verify dedup marker after integrity error",
                extra_data={"event_id": event_id},
                exc_info=True,
            )
            return False
