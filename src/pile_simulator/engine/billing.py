"""Billing engine — integrates power draw against the tariff as simulated time advances.

For the interval ``[last_billed_instant, now)`` of a charging session:

  1. the interval is split at every tariff boundary it crosses
  2. per segment:  energy = power_kw × hours
                   cost   = energy × price_at(segment start)
  3. service_fee_total = energy_delivered_kwh × service_fee
  4. last_billed_instant = end of the billed interval

When the session has an energy target, billing stops at the exact instant
the target is reached:

  target_instant = last_billed + remaining_kwh / power_kw

Re-running a step with an unchanged ``now`` bills an empty interval, so a
repeated tick adds neither energy nor cost.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from pile_simulator.engine.session import ChargeSession, SessionStatus
from pile_simulator.engine.tariff import TariffTable
from pile_simulator.errors import InvalidTransition

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Step result
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BillingStepResult:
    """Immutable output of one billing step."""

    energy_kwh: float
    """Energy delivered during this step."""

    cost: float
    """Tariff cost of this step (service fee excluded)."""

    billed_until: datetime
    """End of the billed interval; equals ``now`` unless the target was reached earlier."""

    segments: int
    """Number of tariff segments the interval was split into."""

    target_reached: bool
    """True when the session's energy target has been delivered."""


# ═══════════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════════

class BillingEngine:
    """Stateless over sessions; reads the shared tariff only."""

    def __init__(self, tariff: TariffTable) -> None:
        self._tariff = tariff

    @property
    def tariff(self) -> TariffTable:
        return self._tariff

    def bill(self, session: ChargeSession, now: datetime) -> BillingStepResult:
        """Accrue energy and cost on a charging session up to ``now``."""
        if session.status is not SessionStatus.CHARGING:
            raise InvalidTransition(f"cannot bill session {session.id} while {session.status.value}")

        start = session.last_billed_instant
        end = now
        target_instant = session.estimated_end_instant()
        if target_instant is not None and target_instant <= end:
            end = target_instant

        if end <= start:
            return BillingStepResult(
                energy_kwh=0.0, cost=0.0, billed_until=start, segments=0,
                target_reached=session.remaining_energy_kwh == 0.0,
            )

        energy = 0.0
        cost = 0.0
        segments = 0
        for segment_start, segment_end, price in self._tariff.segments(start, end):
            hours = (segment_end - segment_start).total_seconds() / 3600
            segment_energy = session.power_kw * hours
            energy += segment_energy
            cost += segment_energy * price
            segments += 1

        session.energy_delivered_kwh += energy
        session.cost_accrued += cost
        target_reached = end == target_instant
        if target_reached:
            # microsecond rounding of the target instant must not leave a residue
            session.energy_delivered_kwh = session.request.requested_energy_kwh
        session.service_fee_total = session.energy_delivered_kwh * self._tariff.service_fee
        session.last_billed_instant = end

        logger.debug(
            "session %d billed %s → %s: %.4f kWh, %.4f cost over %d segment(s)",
            session.id, start.isoformat(), end.isoformat(), energy, cost, segments,
        )
        return BillingStepResult(
            energy_kwh=energy, cost=cost, billed_until=end,
            segments=segments, target_reached=target_reached,
        )

    def quote(self, start: datetime, duration: timedelta, power_kw: float) -> float:
        """Total price (tariff + service fee) of charging at ``power_kw`` for ``duration``."""
        energy = power_kw * duration.total_seconds() / 3600
        return self._tariff.cost_between(start, start + duration, power_kw) + energy * self._tariff.service_fee
