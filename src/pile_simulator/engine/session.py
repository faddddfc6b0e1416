"""Charge requests and the per-session state machine.

  queued ──start──▶ charging ──complete──▶ completed
     │                  └────interrupt───▶ interrupted
     └──cancel──▶ cancelled

A session is owned by the pile that admitted it.  Only the transition
methods below and the billing engine mutate it; once it leaves ``charging``
its energy and cost are frozen.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from pydantic import AwareDatetime, BaseModel, Field

from pile_simulator.config.pile import ChargeType
from pile_simulator.errors import InvalidTransition


class SessionStatus(str, Enum):
    QUEUED = "queued"
    CHARGING = "charging"
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.INTERRUPTED, SessionStatus.CANCELLED})

MAX_REQUESTED_ENERGY_KWH = 10_000.0
MAX_REQUESTED_POWER_KW = 1_000.0


class ChargeRequest(BaseModel):
    """Inbound request to charge a vehicle."""

    id: int = Field(ge=0, description="Request id assigned by the dispatch service")
    charge_type: ChargeType = Field(default=ChargeType.FAST)
    requested_energy_kwh: float | None = Field(
        default=None, gt=0, le=MAX_REQUESTED_ENERGY_KWH,
        description="Target energy (kWh).  None = charge until explicitly stopped.",
    )
    requested_power_kw: float | None = Field(
        default=None, gt=0, le=MAX_REQUESTED_POWER_KW,
        description="Upper bound on drawn power (kW); the pile's rated power applies when absent or higher",
    )
    arrival_instant: AwareDatetime | None = Field(
        default=None,
        description="Simulated arrival instant; stamped on submission when absent",
    )


class SessionSnapshot(BaseModel):
    """Immutable, rounded view of a session for reporting."""

    id: int
    status: SessionStatus
    charge_type: ChargeType
    power_kw: float
    requested_energy_kwh: float | None
    energy_delivered_kwh: float
    cost_accrued: float
    service_fee: float
    total_cost: float
    arrival_instant: datetime | None
    session_start: datetime | None
    end_instant: datetime | None


@dataclass
class ChargeSession:
    """Mutable lifecycle record of one admitted request."""

    request: ChargeRequest
    power_kw: float
    status: SessionStatus = SessionStatus.QUEUED
    session_start: datetime | None = None
    last_billed_instant: datetime | None = None
    end_instant: datetime | None = None
    energy_delivered_kwh: float = 0.0
    cost_accrued: float = 0.0
    service_fee_total: float = 0.0

    @property
    def id(self) -> int:
        return self.request.id

    @property
    def total_cost(self) -> float:
        return self.cost_accrued + self.service_fee_total

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def remaining_energy_kwh(self) -> float | None:
        """Energy still to deliver, or None for an open-ended session."""
        target = self.request.requested_energy_kwh
        if target is None:
            return None
        return max(0.0, target - self.energy_delivered_kwh)

    def estimated_end_instant(self) -> datetime | None:
        """Simulated instant the energy target will be reached at the session's power."""
        remaining = self.remaining_energy_kwh
        if self.status is not SessionStatus.CHARGING or remaining is None:
            return None
        try:
            return self.last_billed_instant + timedelta(hours=remaining / self.power_kw)
        except OverflowError:
            # beyond the datetime range: never reached within the simulation
            return None

    # ── Transitions ─────────────────────────────────────────────────────

    def start(self, now: datetime) -> None:
        self._require(SessionStatus.QUEUED, "start")
        self.status = SessionStatus.CHARGING
        self.session_start = now
        self.last_billed_instant = now

    def complete(self, now: datetime) -> None:
        self._require(SessionStatus.CHARGING, "complete")
        self.status = SessionStatus.COMPLETED
        self.end_instant = now

    def interrupt(self, now: datetime) -> None:
        self._require(SessionStatus.CHARGING, "interrupt")
        self.status = SessionStatus.INTERRUPTED
        self.end_instant = now

    def cancel(self, now: datetime) -> None:
        self._require(SessionStatus.QUEUED, "cancel")
        self.status = SessionStatus.CANCELLED
        self.end_instant = now

    def _require(self, status: SessionStatus, action: str) -> None:
        if self.status is not status:
            raise InvalidTransition(f"cannot {action} session {self.id} while {self.status.value}")

    def to_snapshot(self) -> SessionSnapshot:
        """Convert to an immutable pydantic model for output."""
        return SessionSnapshot(
            id=self.id,
            status=self.status,
            charge_type=self.request.charge_type,
            power_kw=self.power_kw,
            requested_energy_kwh=self.request.requested_energy_kwh,
            energy_delivered_kwh=round(self.energy_delivered_kwh, 3),
            cost_accrued=round(self.cost_accrued, 2),
            service_fee=round(self.service_fee_total, 2),
            total_cost=round(self.total_cost, 2),
            arrival_instant=self.request.arrival_instant,
            session_start=self.session_start,
            end_instant=self.end_instant,
        )
