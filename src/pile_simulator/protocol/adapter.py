"""Protocol adapter — inbound frames to pile operations, pile events to outbound frames.

Two commit points:
  message-in  → operation  (``handle_inbound``)
  operation   → message-out (``drain``)

Outbound frames come from the pile's event outbox, so they leave in the
exact order the transitions happened.  A frame that fails to decode, or an
operation the pile refuses, is logged and answered without touching any
other session.
"""

from __future__ import annotations

import logging

from pile_simulator.engine.pile import EventKind, Pile, PileEvent
from pile_simulator.engine.session import ChargeRequest
from pile_simulator.errors import AdmissionRejected, InvalidTransition, ProtocolDecodeError, SessionNotFound
from pile_simulator.protocol.messages import (
    CancelPayload,
    ErrorPayload,
    Message,
    MessageType,
    RegistrationPayload,
    RejectionPayload,
    SessionReport,
    decode,
    encode,
    parse_payload,
)

logger = logging.getLogger(__name__)

_OUTBOUND_TYPES = {
    EventKind.QUEUED: MessageType.QUEUED,
    EventKind.ADMITTED: MessageType.ADMITTED,
    EventKind.PROGRESS: MessageType.UPDATE,
    EventKind.COMPLETED: MessageType.COMPLETE,
    EventKind.INTERRUPTED: MessageType.FAULT,
    EventKind.CANCELLED: MessageType.CANCELLED,
    EventKind.REJECTED: MessageType.REJECTED,
}


class ProtocolAdapter:
    """Translates between wire frames and one pile."""

    def __init__(self, pile: Pile) -> None:
        self._pile = pile

    @property
    def pile(self) -> Pile:
        return self._pile

    def registration(self) -> str:
        config = self._pile.config
        return encode(MessageType.REGISTER, RegistrationPayload(
            pile_id=config.pile_id,
            charge_type=config.charge_type,
            rated_power_kw=config.rated_power_kw,
            queue_capacity=config.queue_capacity,
            allow_interruption=config.allow_interruption,
        ))

    def handle_inbound(self, raw: str | bytes) -> list[str]:
        """Apply one inbound frame and return every frame it produced."""
        request_type: str | None = None
        try:
            message = decode(raw)
            request_type = message.type.value
            logger.debug("inbound %s: %s", request_type, message.data)
            self._dispatch(message)
        except AdmissionRejected:
            pass  # the pile already queued a ``rejected`` event
        except ProtocolDecodeError as exc:
            logger.warning("dropped inbound message: %s", exc)
            return self.drain() + [self._error(str(exc), request_type)]
        except (SessionNotFound, InvalidTransition) as exc:
            logger.warning("inbound %s refused: %s", request_type, exc)
            return self.drain() + [self._error(str(exc), request_type)]
        return self.drain()

    def handle_tick(self) -> list[str]:
        self._pile.tick()
        return self.drain()

    def drain(self) -> list[str]:
        """Encode every pending pile event, oldest first."""
        return [self.to_frame(event) for event in self._pile.drain_events()]

    def to_frame(self, event: PileEvent) -> str:
        message_type = _OUTBOUND_TYPES[event.kind]
        if event.kind is EventKind.REJECTED:
            return encode(message_type, RejectionPayload(
                pile_id=self._pile.pile_id,
                id=event.session_id,
                reason=event.reason,
                observed_at=event.observed_at,
            ))
        return encode(message_type, SessionReport(
            **event.snapshot.model_dump(),
            pile_id=self._pile.pile_id,
            observed_at=event.observed_at,
        ))

    def _dispatch(self, message: Message) -> None:
        if message.type is MessageType.NEW:
            self._pile.submit(parse_payload(ChargeRequest, message))
        elif message.type is MessageType.CANCEL:
            self._pile.cancel(parse_payload(CancelPayload, message).id)
        elif message.type is MessageType.CLOSE:
            self._pile.close()
        elif message.type is MessageType.OPEN:
            self._pile.open()
        elif message.type is MessageType.INTERRUPT:
            self._pile.interrupt()

    def _error(self, error: str, request_type: str | None) -> str:
        return encode(MessageType.ERROR, ErrorPayload(
            pile_id=self._pile.pile_id, error=error, request=request_type,
        ))
