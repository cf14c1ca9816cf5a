"""
Push Envelope Decoder

Validates the pub/sub push envelope and unwraps it into an OrderEvent:

    {"message": {"data": "<base64 JSON>", "attributes": {"event_id": ..., "event_type": ...}}}

The decoded payload is {"customer_id": int, "order_id": str, "number": int},
where `number` is the order amount in the same unit as credit and limit.
"""
import base64
import binascii
import json
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from app.core.config import settings
from app.core.exceptions import MalformedEnvelopeError, UnsupportedEventTypeError


class EventType(str, Enum):
    ORDER_CREATE = "order_create"


@dataclass(frozen=True)
class OrderEvent:
    """אירוע הזמנה מפוענח - לא משתנה אחרי הפענוח"""

    event_id: str
    event_type: EventType
    customer_id: int
    order_id: str
    amount: int


class OrderPayload(BaseModel):
    """Order body carried base64-encoded in message.data"""

    model_config = ConfigDict(extra="ignore")

    customer_id: StrictInt
    order_id: StrictStr = Field(min_length=1)
    number: StrictInt = Field(ge=0)


def _supported_event_types() -> dict[str, EventType]:
    # the configured name maps onto the single event type this worker handles
    return {settings.ORDER_CREATE_EVENT_TYPE: EventType.ORDER_CREATE}


def _load_envelope(raw: bytes | str | Mapping[str, Any]) -> Any:
    if isinstance(raw, Mapping):
        return raw
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedEnvelopeError(f"body is not valid JSON ({e})") from e


def _require_text_attribute(attributes: Mapping[str, Any], name: str) -> str:
    value = attributes.get(name)
    if not isinstance(value, str) or not value:
        raise MalformedEnvelopeError(f"attributes.{name} is missing", field=f"attributes.{name}")
    return value


def _decode_payload(data: Any, event_id: str) -> OrderPayload:
    if not isinstance(data, str) or not data:
        raise MalformedEnvelopeError("message.data must be a base64 string", field="message.data", event_id=event_id)
    try:
        decoded = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedEnvelopeError("message.data is not valid base64", field="message.data", event_id=event_id) from e
    try:
        payload = json.loads(decoded.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedEnvelopeError("message.data is not a JSON document", field="message.data", event_id=event_id) from e
    if not isinstance(payload, dict):
        raise MalformedEnvelopeError("order payload must be a JSON object", field="message.data", event_id=event_id)
    try:
        return OrderPayload.model_validate(payload)
    except ValidationError as e:
        fields = ",".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise MalformedEnvelopeError(
            f"order payload does not match schema ({fields})",
            field="message.data",
            event_id=event_id,
        ) from e


def decode_envelope(raw: bytes | str | Mapping[str, Any]) -> OrderEvent:
    """
    Decode a push envelope into an OrderEvent.

    Raises:
        MalformedEnvelopeError: the envelope or the order payload is invalid
        UnsupportedEventTypeError: well-formed envelope for an event type this worker ignores
    """
    envelope = _load_envelope(raw)
    if not isinstance(envelope, Mapping):
        raise MalformedEnvelopeError("envelope must be a JSON object")

    message = envelope.get("message")
    if not isinstance(message, Mapping):
        raise MalformedEnvelopeError("message is missing", field="message")

    if "data" not in message or "attributes" not in message:
        raise MalformedEnvelopeError("message must contain data and attributes", field="message")

    attributes = message["attributes"]
    if not isinstance(attributes, Mapping):
        raise MalformedEnvelopeError("message.attributes must be an object", field="message.attributes")

    event_id = _require_text_attribute(attributes, "event_id")
    event_type_name = _require_text_attribute(attributes, "event_type")

    # type before data: events of other types are ignored whatever their payload
    event_type = _supported_event_types().get(event_type_name)
    if event_type is None:
        raise UnsupportedEventTypeError(event_id=event_id, event_type=event_type_name)

    payload = _decode_payload(message["data"], event_id)

    return OrderEvent(
        event_id=event_id,
        event_type=event_type,
        customer_id=payload.customer_id,
        order_id=payload.order_id,
        amount=payload.number,
    )
