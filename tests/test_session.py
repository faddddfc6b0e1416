"""Tests for the charge session state machine.

Covers:
  - allowed transitions and the instants they stamp
  - every disallowed transition raises InvalidTransition
  - remaining energy / estimated end instant
  - snapshot rounding
  - request validation
"""

from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from pile_simulator.config import ChargeType
from pile_simulator.engine.session import ChargeRequest, ChargeSession, SessionStatus
from pile_simulator.errors import InvalidTransition

SHANGHAI = ZoneInfo("Asia/Shanghai")


# ═══════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════

def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 6, 1, hour, minute, tzinfo=SHANGHAI)


def make_session(energy: float | None = None, power_kw: float = 30.0) -> ChargeSession:
    return ChargeSession(request=ChargeRequest(id=1, requested_energy_kwh=energy), power_kw=power_kw)


# ═══════════════════════════════════════════════════════════════════════════
# Transitions
# ═══════════════════════════════════════════════════════════════════════════

class TestTransitions:
    def test_new_session_is_queued(self):
        session = make_session()
        assert session.status is SessionStatus.QUEUED
        assert session.session_start is None
        assert not session.is_terminal

    def test_start(self):
        session = make_session()
        session.start(at(8))
        assert session.status is SessionStatus.CHARGING
        assert session.session_start == at(8)
        assert session.last_billed_instant == at(8)

    def test_complete(self):
        session = make_session()
        session.start(at(8))
        session.complete(at(9))
        assert session.status is SessionStatus.COMPLETED
        assert session.end_instant == at(9)
        assert session.is_terminal

    def test_interrupt(self):
        session = make_session()
        session.start(at(8))
        session.interrupt(at(8, 10))
        assert session.status is SessionStatus.INTERRUPTED
        assert session.end_instant == at(8, 10)

    def test_cancel_while_queued(self):
        session = make_session()
        session.cancel(at(8))
        assert session.status is SessionStatus.CANCELLED
        assert session.session_start is None

    @pytest.mark.parametrize("action", ["complete", "interrupt"])
    def test_queued_cannot_end_charging(self, action):
        with pytest.raises(InvalidTransition, match=f"cannot {action} session 1 while queued"):
            getattr(make_session(), action)(at(8))

    def test_charging_cannot_be_cancelled_or_restarted(self):
        session = make_session()
        session.start(at(8))
        with pytest.raises(InvalidTransition):
            session.cancel(at(9))
        with pytest.raises(InvalidTransition):
            session.start(at(9))

    @pytest.mark.parametrize("ending", ["complete", "interrupt"])
    @pytest.mark.parametrize("action", ["start", "complete", "interrupt", "cancel"])
    def test_terminal_is_final(self, ending, action):
        session = make_session()
        session.start(at(8))
        getattr(session, ending)(at(9))
        with pytest.raises(InvalidTransition):
            getattr(session, action)(at(10))


# ═══════════════════════════════════════════════════════════════════════════
# Energy target
# ═══════════════════════════════════════════════════════════════════════════

class TestEnergyTarget:
    def test_open_ended(self):
        session = make_session()
        session.start(at(8))
        assert session.remaining_energy_kwh is None
        assert session.estimated_end_instant() is None

    def test_estimated_end(self):
        session = make_session(energy=15.0, power_kw=30.0)
        session.start(at(8))
        assert session.estimated_end_instant() == at(8) + timedelta(minutes=30)

    def test_estimate_follows_delivery(self):
        session = make_session(energy=15.0, power_kw=30.0)
        session.start(at(8))
        session.energy_delivered_kwh = 5.0
        session.last_billed_instant = at(8, 10)
        assert session.remaining_energy_kwh == pytest.approx(10.0)
        assert session.estimated_end_instant() == at(8, 30)

    def test_no_estimate_unless_charging(self):
        assert make_session(energy=15.0).estimated_end_instant() is None

    def test_estimate_beyond_calendar_is_never_reached(self):
        session = make_session(energy=10_000.0, power_kw=1e-9)
        session.start(at(8))
        assert session.estimated_end_instant() is None


# ═══════════════════════════════════════════════════════════════════════════
# Snapshot and request
# ═══════════════════════════════════════════════════════════════════════════

class TestSnapshot:
    def test_rounding(self):
        session = make_session(energy=20.0)
        session.start(at(8))
        session.energy_delivered_kwh = 1.23456
        session.cost_accrued = 0.86419
        session.service_fee_total = 0.98765
        snapshot = session.to_snapshot()
        assert snapshot.energy_delivered_kwh == 1.235
        assert snapshot.cost_accrued == 0.86
        assert snapshot.service_fee == 0.99
        assert snapshot.total_cost == 1.85
        assert snapshot.status is SessionStatus.CHARGING

    def test_snapshot_is_detached(self):
        session = make_session()
        session.start(at(8))
        snapshot = session.to_snapshot()
        session.energy_delivered_kwh = 3.0
        assert snapshot.energy_delivered_kwh == 0.0


class TestChargeRequest:
    def test_defaults(self):
        request = ChargeRequest(id=7)
        assert request.charge_type is ChargeType.FAST
        assert request.requested_energy_kwh is None
        assert request.arrival_instant is None

    @pytest.mark.parametrize("fields", [
        {"id": -1},
        {"id": 1, "requested_energy_kwh": 0},
        {"id": 1, "requested_power_kw": -3},
        {"id": 1, "requested_energy_kwh": 1e12},
        {"id": 1, "requested_power_kw": 5_000},
        {"id": 1, "charge_type": "turbo"},
        {"id": 1, "arrival_instant": "2025-06-01T08:00:00"},  # naive
    ])
    def test_invalid(self, fields):
        with pytest.raises(ValidationError):
            ChargeRequest(**fields)
