"""
Response Mapper - decides acknowledge vs. redeliver for a processing result.

The push channel stops redelivering on any 2xx. Everything that a redelivery
cannot change (committed, duplicate, malformed, unknown customer, ignored) is
acknowledged; only commit conflicts return 503 so the channel retries.
"""
from dataclasses import dataclass
from typing import Any

from app.core.logging import get_logger
from app.domain.services.order_acceptance_service import ProcessingResult, ProcessingStatus

logger = get_logger(__name__)


@dataclass(frozen=True)
class Acknowledgement:
    status_code: int
    body: dict[str, Any]

    @property
    def acknowledged(self) -> bool:
        return 200 <= self.status_code < 300


_STATUS_CODES: dict[ProcessingStatus, int] = {
    ProcessingStatus.COMMITTED: 200,
    ProcessingStatus.DUPLICATE: 200,
    ProcessingStatus.IGNORED: 200,
    ProcessingStatus.MALFORMED_ENVELOPE: 200,
    ProcessingStatus.UNKNOWN_CUSTOMER: 200,
    ProcessingStatus.COMMIT_CONFLICT: 503,
}


def _log_result(result: ProcessingResult) -> None:
    details: dict[str, Any] = {"status": result.status.value, "event_id": result.event_id}
    if result.error is not None:
        details["error_code"] = result.error.error_code.value
        details["error"] = result.error.message

    if result.status in (ProcessingStatus.MALFORMED_ENVELOPE, ProcessingStatus.UNKNOWN_CUSTOMER):
        # אירוע שלא יצליח גם בניסיון חוזר - מאשרים לערוץ ומתעדים כשגיאה
        logger.error("Event rejected and acknowledged", extra_data=details)
    elif result.status == ProcessingStatus.COMMIT_CONFLICT:
        logger.warning("Event not committed, asking for redelivery", extra_data=details)
    elif result.status == ProcessingStatus.IGNORED:
        logger.warning("Unsupported event type acknowledged", extra_data=details)
    elif result.status == ProcessingStatus.DUPLICATE:
        logger.info("Duplicate event acknowledged", extra_data=details)


def to_acknowledgement(result: ProcessingResult) -> Acknowledgement:
    """Map a processing result to the response returned to the push channel"""
    _log_result(result)

    body: dict[str, Any] = {"status": result.status.value}
    if result.event_id:
        body["event_id"] = result.event_id
    if result.commit is not None:
        body["accepted"] = result.commit.accepted
        body["outcome_event_id"] = result.commit.outcome_event_id
    if result.error is not None:
        body["error"] = {"code": result.error.error_code.value, "message": result.error.message}

    return Acknowledgement(status_code=_STATUS_CODES[result.status], body=body)
