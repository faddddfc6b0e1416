"""Pile — one charging unit: its admission queue, billing and event outbox.

Every mutation of a pile happens on its driver's turn (see
``protocol.transport.PileDriver``), so nothing here locks.  Each operation
reads ``clock.now()`` once and appends the resulting events to the outbox
in the order the transitions happened.

Turn sequence of ``tick``:
  promote (if the slot is free) → bill the active session → complete it if
  its energy target was reached

A slot freed by completion, interruption or an explicit stop is filled on
the following tick; a submission into an idle pile is admitted at once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from pile_simulator.config.pile import PileConfig
from pile_simulator.engine.billing import BillingEngine
from pile_simulator.engine.clock import SimulatedClock
from pile_simulator.engine.queue import AdmissionQueue
from pile_simulator.engine.session import ChargeRequest, ChargeSession, SessionSnapshot
from pile_simulator.engine.tariff import TariffTable
from pile_simulator.errors import AdmissionRejected, InterruptionNotAllowed, InvalidTransition

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    QUEUED = "queued"
    ADMITTED = "admitted"
    PROGRESS = "progress"
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


@dataclass(frozen=True)
class PileEvent:
    """One observed state change, in outbox order."""

    kind: EventKind
    session_id: int
    observed_at: datetime
    """Simulated instant the change was observed."""

    snapshot: SessionSnapshot | None = None
    """Session state right after the change (None for rejections)."""

    reason: str | None = None
    """Rejection reason."""


class PileStatus(BaseModel):
    """Point-in-time view of a pile for the control API."""

    pile_id: str
    closed: bool
    now: datetime
    capacity: int
    active: SessionSnapshot | None
    waiting: list[SessionSnapshot]


class Pile:
    """One simulated charging pile.

    Parameters
    ----------
    config : PileConfig
        Rated power, queue capacity, interruption and charge-type options.
    clock : SimulatedClock
        Source of simulated ``now``; shared read-only between piles.
    tariff : TariffTable
        Shared read-only tariff.
    """

    def __init__(self, config: PileConfig, clock: SimulatedClock, tariff: TariffTable) -> None:
        self._config = config
        self._clock = clock
        self._queue = AdmissionQueue(config.queue_capacity)
        self._billing = BillingEngine(tariff)
        self._events: list[PileEvent] = []
        self._closed = False

    # ── Inspection ──────────────────────────────────────────────────────

    @property
    def config(self) -> PileConfig:
        return self._config

    @property
    def pile_id(self) -> str:
        return self._config.pile_id

    @property
    def clock(self) -> SimulatedClock:
        return self._clock

    @property
    def queue(self) -> AdmissionQueue:
        return self._queue

    @property
    def active(self) -> ChargeSession | None:
        return self._queue.active

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def allows_interruption(self) -> bool:
        return self._config.allow_interruption

    def status(self) -> PileStatus:
        active = self._queue.active
        return PileStatus(
            pile_id=self.pile_id,
            closed=self._closed,
            now=self._clock.now(),
            capacity=self._queue.capacity,
            active=active.to_snapshot() if active is not None else None,
            waiting=[session.to_snapshot() for session in self._queue.waiting],
        )

    def seconds_until_completion(self) -> float | None:
        """Real seconds until the active session reaches its energy target."""
        active = self._queue.active
        end = active.estimated_end_instant() if active is not None else None
        if end is None:
            return None
        return max(0.0, self._clock.to_real_seconds(end - self._clock.now()))

    def drain_events(self) -> list[PileEvent]:
        """Hand over every pending event, oldest first."""
        events, self._events = self._events, []
        return events

    # ── Operations ──────────────────────────────────────────────────────

    def submit(self, request: ChargeRequest) -> ChargeSession:
        """Queue a request; it starts charging at once when the pile is idle.

        Raises ``AdmissionRejected`` (after emitting a ``rejected`` event)
        when the pile is closed, full, already holds the id, or serves another
        charge type while ``enforce_charge_type`` is on.
        """
        now = self._clock.now()
        if self._closed:
            self._reject(request.id, "pile_closed", now)
        if self._config.enforce_charge_type and request.charge_type is not self._config.charge_type:
            self._reject(request.id, "charge_type_mismatch", now)

        if request.arrival_instant is None:
            request = request.model_copy(update={"arrival_instant": now})
        power_kw = self._config.rated_power_kw
        if request.requested_power_kw is not None:
            power_kw = min(power_kw, request.requested_power_kw)

        session = ChargeSession(request=request, power_kw=power_kw)
        try:
            self._queue.enqueue(session)
        except AdmissionRejected as exc:
            self._reject(request.id, exc.reason, now)

        logger.info(
            "[%s] pile %s queued request %d (%d/%d)",
            now.isoformat(), self.pile_id, session.id, self._queue.occupancy, self._queue.capacity,
        )
        self._emit(EventKind.QUEUED, session, now)
        self._promote(now)
        return session

    def tick(self) -> None:
        """One driver turn: promote, bill, complete."""
        now = self._clock.now()
        self._promote(now)
        session = self._queue.active
        if session is None:
            return

        result = self._billing.bill(session, now)
        self._emit(EventKind.PROGRESS, session, now)
        if result.target_reached:
            self._queue.complete(result.billed_until)
            logger.info(
                "[%s] session %d completed: %.3f kWh, total %.2f",
                now.isoformat(), session.id, session.energy_delivered_kwh, session.total_cost,
            )
            self._emit(EventKind.COMPLETED, session, now)

    def cancel(self, request_id: int) -> ChargeSession:
        """Cancel a waiting request, or explicitly stop the charging one.

        A stopped session is billed up to now and ends ``completed``; a
        cancelled waiting one ends ``cancelled`` with no billing effect.
        Raises ``SessionNotFound`` for an unknown id.
        """
        now = self._clock.now()
        active = self._queue.active
        if active is not None and active.id == request_id:
            return self._stop_active(now)

        session = self._queue.cancel(request_id, now)
        logger.info("[%s] request %d cancelled while waiting", now.isoformat(), request_id)
        self._emit(EventKind.CANCELLED, session, now)
        return session

    def interrupt(self) -> ChargeSession:
        """Simulated hardware fault: charging → interrupted, billing frozen at now."""
        if not self._config.allow_interruption:
            raise InterruptionNotAllowed(f"pile {self.pile_id} does not allow interruption")
        now = self._clock.now()
        session = self._queue.active
        if session is None:
            raise InvalidTransition("cannot interrupt: no session is charging")

        self._billing.bill(session, now)
        self._queue.interrupt(now)
        logger.warning(
            "[%s] pile %s fault interrupted session %d at %.3f kWh",
            now.isoformat(), self.pile_id, session.id, session.energy_delivered_kwh,
        )
        self._emit(EventKind.INTERRUPTED, session, now)
        return session

    def close(self) -> list[ChargeSession]:
        """Take the pile out of service: stop the active session, cancel the waiting ones."""
        if self._closed:
            raise InvalidTransition(f"pile {self.pile_id} is already closed")
        now = self._clock.now()
        ended: list[ChargeSession] = []
        if self._queue.active is not None:
            ended.append(self._stop_active(now))
        for session in self._queue.waiting:
            ended.append(self._queue.cancel(session.id, now))
            self._emit(EventKind.CANCELLED, session, now)
        self._closed = True
        logger.info("[%s] pile %s closed, %d session(s) ended", now.isoformat(), self.pile_id, len(ended))
        return ended

    def open(self) -> None:
        if not self._closed:
            raise InvalidTransition(f"pile {self.pile_id} is not closed")
        self._closed = False
        logger.info("[%s] pile %s reopened", self._clock.now().isoformat(), self.pile_id)

    # ── Internals ───────────────────────────────────────────────────────

    def _promote(self, now: datetime) -> None:
        session = self._queue.promote(now)
        if session is not None:
            logger.info("[%s] pile %s admitted session %d", now.isoformat(), self.pile_id, session.id)
            self._emit(EventKind.ADMITTED, session, now)

    def _stop_active(self, now: datetime) -> ChargeSession:
        session = self._queue.active
        result = self._billing.bill(session, now)
        self._queue.complete(result.billed_until)
        logger.info(
            "[%s] session %d stopped: %.3f kWh, total %.2f",
            now.isoformat(), session.id, session.energy_delivered_kwh, session.total_cost,
        )
        self._emit(EventKind.COMPLETED, session, now)
        return session

    def _reject(self, request_id: int, reason: str, now: datetime) -> None:
        logger.warning("[%s] pile %s rejected request %d: %s", now.isoformat(), self.pile_id, request_id, reason)
        self._events.append(PileEvent(EventKind.REJECTED, request_id, now, reason=reason))
        raise AdmissionRejected(request_id, reason)

    def _emit(self, kind: EventKind, session: ChargeSession, now: datetime) -> None:
        self._events.append(PileEvent(kind, session.id, now, snapshot=session.to_snapshot()))
