"""Wire messages exchanged with the dispatch service.

Every frame is one JSON text message:

  {"type": "<message type>", "data": {...}}

Inbound:  new · cancel · close · open · interrupt
Outbound: register · queued · admitted · update · complete · fault ·
          cancelled · rejected · error
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from pile_simulator.config.pile import ChargeType
from pile_simulator.engine.session import SessionSnapshot
from pile_simulator.errors import ProtocolDecodeError


class MessageType(str, Enum):
    # inbound
    NEW = "new"
    CANCEL = "cancel"
    CLOSE = "close"
    OPEN = "open"
    INTERRUPT = "interrupt"
    # outbound
    REGISTER = "register"
    QUEUED = "queued"
    ADMITTED = "admitted"
    UPDATE = "update"
    COMPLETE = "complete"
    FAULT = "fault"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    ERROR = "error"


INBOUND_TYPES = frozenset({
    MessageType.NEW, MessageType.CANCEL, MessageType.CLOSE, MessageType.OPEN, MessageType.INTERRUPT,
})


class Message(BaseModel):
    """Envelope of every frame."""

    type: MessageType
    data: dict[str, Any] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════════════
# Payloads
# ═══════════════════════════════════════════════════════════════════════════

class CancelPayload(BaseModel):
    id: int = Field(ge=0)


class RegistrationPayload(BaseModel):
    pile_id: str
    charge_type: ChargeType
    rated_power_kw: float
    queue_capacity: int
    allow_interruption: bool


class SessionReport(SessionSnapshot):
    """Session snapshot as reported to the peer."""

    pile_id: str
    observed_at: datetime


class RejectionPayload(BaseModel):
    pile_id: str
    id: int
    reason: str
    observed_at: datetime


class ErrorPayload(BaseModel):
    pile_id: str
    error: str
    request: str | None = None


# ═══════════════════════════════════════════════════════════════════════════
# Codec
# ═══════════════════════════════════════════════════════════════════════════

def decode(raw: str | bytes) -> Message:
    """Parse one inbound frame; anything but a known inbound type is a decode error."""
    try:
        message = Message.model_validate_json(raw)
    except ValidationError as exc:
        raise ProtocolDecodeError(f"malformed message: {exc.errors()[0]['msg']}") from exc
    if message.type not in INBOUND_TYPES:
        raise ProtocolDecodeError(f"unexpected inbound message type {message.type.value!r}")
    return message


def encode(message_type: MessageType, payload: BaseModel | None = None) -> str:
    data = payload.model_dump(mode="json") if payload is not None else {}
    return Message(type=message_type, data=data).model_dump_json()


def parse_payload(model: type[BaseModel], message: Message) -> Any:
    """Validate ``message.data`` against ``model``; failures are decode errors."""
    try:
        return model.model_validate(message.data)
    except ValidationError as exc:
        raise ProtocolDecodeError(f"invalid {message.type.value!r} payload: {exc.errors()[0]['msg']}") from exc
