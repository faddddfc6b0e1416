"""Tests for the billing engine.

Covers:
  - per-segment energy and cost across a tariff boundary
  - service fee on delivered energy
  - idempotence of a repeated step and additivity of successive steps
  - stopping at the exact instant an energy target is reached
  - quote = tariff cost + service fee
"""

from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from pile_simulator.engine.billing import BillingEngine
from pile_simulator.engine.session import ChargeRequest, ChargeSession, SessionStatus
from pile_simulator.errors import InvalidTransition

SHANGHAI = ZoneInfo("Asia/Shanghai")


# ═══════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════

def at(hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime(2025, 6, 1, hour, minute, second, tzinfo=SHANGHAI)


def charging(start: datetime, power_kw: float = 30.0, energy: float | None = None) -> ChargeSession:
    session = ChargeSession(request=ChargeRequest(id=1, requested_energy_kwh=energy), power_kw=power_kw)
    session.start(start)
    return session


@pytest.fixture
def engine(tariff) -> BillingEngine:
    return BillingEngine(tariff)


# ═══════════════════════════════════════════════════════════════════════════
# Tests
# ═══════════════════════════════════════════════════════════════════════════

class TestBill:
    """06:30 → 07:30 at 30 kW: 15 kWh @0.4 + 15 kWh @0.7."""

    def test_across_boundary(self, engine):
        session = charging(at(6, 30))
        result = engine.bill(session, at(7, 30))
        assert result.energy_kwh == pytest.approx(30.0)
        assert result.cost == pytest.approx(16.5)
        assert result.segments == 2
        assert result.billed_until == at(7, 30)
        assert not result.target_reached
        assert session.energy_delivered_kwh == pytest.approx(30.0)
        assert session.cost_accrued == pytest.approx(16.5)
        assert session.service_fee_total == pytest.approx(24.0)
        assert session.total_cost == pytest.approx(40.5)
        assert session.last_billed_instant == at(7, 30)

    def test_repeated_step_is_idempotent(self, engine):
        session = charging(at(6, 30))
        engine.bill(session, at(7, 30))
        result = engine.bill(session, at(7, 30))
        assert result.energy_kwh == 0.0
        assert result.cost == 0.0
        assert result.segments == 0
        assert session.energy_delivered_kwh == pytest.approx(30.0)
        assert session.cost_accrued == pytest.approx(16.5)

    def test_successive_steps_add_up(self, engine):
        stepped = charging(at(6, 30))
        for minute in range(35, 95, 5):
            engine.bill(stepped, at(6, 30) + timedelta(minutes=minute - 30))
        single = charging(at(6, 30))
        engine.bill(single, at(7, 30))
        assert stepped.energy_delivered_kwh == pytest.approx(single.energy_delivered_kwh)
        assert stepped.cost_accrued == pytest.approx(single.cost_accrued)
        assert stepped.service_fee_total == pytest.approx(single.service_fee_total)

    def test_totals_never_decrease(self, engine):
        session = charging(at(9, 50))
        totals = []
        for minute in (0, 5, 10, 10, 20, 40):
            engine.bill(session, at(9, 50) + timedelta(minutes=minute))
            totals.append((session.energy_delivered_kwh, session.cost_accrued, session.service_fee_total))
        assert totals == sorted(totals)

    def test_only_charging_sessions(self, engine):
        session = ChargeSession(request=ChargeRequest(id=1), power_kw=30.0)
        with pytest.raises(InvalidTransition, match="while queued"):
            engine.bill(session, at(8))

    def test_reduced_power(self, engine):
        session = charging(at(8), power_kw=7.0)
        engine.bill(session, at(9))
        assert session.energy_delivered_kwh == pytest.approx(7.0)
        assert session.cost_accrued == pytest.approx(7.0 * 0.7)


class TestEnergyTarget:
    """15 kWh at 30 kW from 06:30 is reached at 07:00 sharp."""

    def test_stops_at_target_instant(self, engine):
        session = charging(at(6, 30), energy=15.0)
        result = engine.bill(session, at(7, 30))
        assert result.target_reached
        assert result.billed_until == at(7)
        assert session.energy_delivered_kwh == 15.0
        assert session.cost_accrued == pytest.approx(6.0)
        assert session.service_fee_total == pytest.approx(12.0)

    def test_not_reached_yet(self, engine):
        session = charging(at(6, 30), energy=15.0)
        result = engine.bill(session, at(6, 45))
        assert not result.target_reached
        assert session.remaining_energy_kwh == pytest.approx(7.5)

    def test_reached_across_steps(self, engine):
        session = charging(at(6, 30), energy=20.0)
        engine.bill(session, at(6, 50))
        result = engine.bill(session, at(7, 10))
        assert result.target_reached
        assert session.energy_delivered_kwh == 20.0
        # 15 kWh @0.4 until 07:00, then 5 kWh @0.7
        assert session.cost_accrued == pytest.approx(9.5)

    def test_open_ended_never_reaches_target(self, engine):
        session = charging(at(6, 30))
        assert not engine.bill(session, at(23)).target_reached


class TestQuote:
    def test_reference_quote(self, engine):
        assert engine.quote(at(8), timedelta(hours=12), 1.0) == pytest.approx(20.1)

    def test_quote_matches_billing(self, engine):
        session = charging(at(6, 30))
        engine.bill(session, at(7, 30))
        assert engine.quote(at(6, 30), timedelta(hours=1), 30.0) == pytest.approx(session.total_cost)

    def test_session_status_unchanged_by_billing(self, engine):
        session = charging(at(6, 30))
        engine.bill(session, at(7))
        assert session.status is SessionStatus.CHARGING
