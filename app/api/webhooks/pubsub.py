"""
Pub/Sub Push Handler - Order Event Gateway

Receives push deliveries of order events and answers with the status that
tells the channel whether to redeliver: 2xx acknowledges, 503 asks for a
retry. The envelope is read from the raw body so that a body which is not
JSON is still acknowledged as malformed instead of being retried forever.
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.middleware import RETRY_AFTER_SECONDS
from app.db.database import get_session_factory
from app.domain.services.order_acceptance_service import OrderAcceptanceService
from app.domain.services.response_mapper import to_acknowledgement

router = APIRouter()


def get_acceptance_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> OrderAcceptanceService:
    return OrderAcceptanceService(session_factory)


async def pubsub_push(
    request: Request,
    service: OrderAcceptanceService = Depends(get_acceptance_service),
) -> JSONResponse:
    """Process one push delivery of an order event"""
    raw = await request.body()
    result = await service.process_envelope(raw)
    ack = to_acknowledgement(result)
    headers = None if ack.acknowledged else {"Retry-After": str(RETRY_AFTER_SECONDS)}
    return JSONResponse(status_code=ack.status_code, content=ack.body, headers=headers)


router.add_api_route(
    "/push",
    pubsub_push,
    methods=["POST"],
    summary="Push endpoint for order events",
    description=(
        "Body: {message: {data: base64(JSON order), attributes: {event_id, event_type}}}. "
        "200 acknowledges the delivery (committed, duplicate, ignored or rejected as "
        "malformed / unknown customer); 503 means the commit did not go through and the "
        "delivery should be retried."
    ),
    responses={503: {"description": "Commit conflict; redeliver later"}},
)

# נתיב ה-push הישן של שירות הלקוחות
legacy_router = APIRouter()
legacy_router.add_api_route("/pubsub", pubsub_push, methods=["POST"], include_in_schema=False)
